"""Exact duplicate and redundant rule detection."""

from __future__ import annotations

import logging
from typing import Iterable

from perm_reconcile.models import Rule, Scope
from perm_reconcile.rules.patterns import rule_covers

logger = logging.getLogger(__name__)


def _order_key(rule: Rule) -> tuple[int, str, int]:
    return (-rule.scope.rank, rule.action.value, rule.position)


def _keeps_over(kept: Rule, redundant: Rule) -> bool:
    """Whether ``kept`` makes ``redundant`` removable.

    Same action is required. Across scopes only a copy at a more specific
    scope can absorb a less specific one, and never a user rule: the user
    file applies in every other project too. Within a scope the broader rule
    wins, and between mutually covering rules the earlier one is kept.
    """
    if kept.action != redundant.action or kept == redundant:
        return False
    if kept.scope != redundant.scope:
        if redundant.scope == Scope.USER:
            return False
        if kept.scope.rank < redundant.scope.rank:
            return False
        return rule_covers(kept, redundant)
    if not rule_covers(kept, redundant):
        return False
    if rule_covers(redundant, kept):
        return kept.position < redundant.position
    return True


def duplicate_pairs(rules: Iterable[Rule]) -> list[tuple[Rule, Rule]]:
    """Return ``(redundant, kept)`` pairs.

    Every ``kept`` rule is itself not redundant, so removing all the
    ``redundant`` rules at once leaves each command's effective action as it
    was.
    """
    ordered = sorted(rules, key=_order_key)
    survivors: list[Rule] = []
    pairs: list[tuple[Rule, Rule]] = []
    for rule in ordered:
        if any(_keeps_over(kept, rule) for kept in ordered if kept != rule):
            continue
        survivors.append(rule)

    for rule in ordered:
        if rule in survivors:
            continue
        # _keeps_over is transitive, so some survivor always absorbs the rule.
        keeper = next(kept for kept in survivors if _keeps_over(kept, rule))
        pairs.append((rule, keeper))
        logger.debug("redundant %s kept by %s", rule.describe(), keeper.describe())
    return pairs


def find_duplicates(rules: Iterable[Rule]) -> set[Rule]:
    return {redundant for redundant, _ in duplicate_pairs(rules)}
