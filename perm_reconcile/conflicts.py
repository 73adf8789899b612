"""Effective-action resolution and cross-rule conflict reporting."""

from __future__ import annotations

import logging
from itertools import combinations
from typing import Iterable, Optional, Sequence

from perm_reconcile.models import Conflict, ConflictResolution, Rule, RuleAction
from perm_reconcile.rules.patterns import display_command, rule_matches, rule_overlap

logger = logging.getLogger(__name__)


def precedence_key(rule: Rule) -> tuple[int, int]:
    """Sort key where larger means evaluated first: action, then scope."""
    return (rule.action.priority, rule.scope.rank)


def effective_rule(rules: Iterable[Rule], tool: str, command: str) -> Optional[Rule]:
    """Return the rule deciding ``command``, or ``None`` when nothing matches.

    deny is evaluated before ask before allow; within one action the most
    specific scope wins, then the earliest entry.
    """
    matching = [rule for rule in rules if rule_matches(rule, tool, command)]
    if not matching:
        return None
    return max(matching, key=lambda rule: (*precedence_key(rule), -rule.position))


def effective_action(
    rules: Iterable[Rule], tool: str, command: str
) -> Optional[RuleAction]:
    rule = effective_rule(rules, tool, command)
    return rule.action if rule is not None else None


def _conflict_for(left: Rule, right: Rule) -> Optional[Conflict]:
    if left.action == right.action:
        return None
    sample = rule_overlap(left, right)
    if sample is None:
        return None
    higher, lower = (
        (left, right) if precedence_key(left) > precedence_key(right) else (right, left)
    )
    resolution = (
        ConflictResolution.HIGHER_SCOPE_WINS
        if higher.scope.rank >= lower.scope.rank
        else ConflictResolution.MANUAL_REVIEW_REQUIRED
    )
    return Conflict(
        higher_rule=higher,
        lower_rule=lower,
        resolution=resolution,
        effective_action=higher.action,
        sample_command=display_command(sample),
    )


def find_conflicts(rules: Sequence[Rule]) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for left, right in combinations(rules, 2):
        conflict = _conflict_for(left, right)
        if conflict is not None:
            logger.debug(
                "conflict: %s overrides %s on %r",
                conflict.higher_rule.describe(),
                conflict.lower_rule.describe(),
                conflict.sample_command,
            )
            conflicts.append(conflict)
    return conflicts


def resolve_conflicts(
    user_rules: Iterable[Rule],
    project_shared_rules: Iterable[Rule],
    project_local_rules: Iterable[Rule],
) -> list[Conflict]:
    """Report every pair of rules whose actions differ over shared commands.

    The ``higher_rule`` of each record is the one that wins at query time.
    When it sits at a less specific scope than the rule it overrides (a user
    deny beating a project allow, say) the record asks for manual review; the
    outcome is still the higher rule's action.
    """
    rules = [*user_rules, *project_shared_rules, *project_local_rules]
    return find_conflicts(rules)
