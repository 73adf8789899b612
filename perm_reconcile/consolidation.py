"""Wildcard consolidation proposals.

A proposal replaces several narrow rules sharing an action and tool with one
boundary-form wildcard. It is only marked ``proposed`` when it passes every
safety check:

* completeness: over the observed command space of the tool, the wildcard
  matches nothing its sources did not already match, and it covers every
  source rule;
* risk ceiling: high-risk wildcards never auto-consolidate, medium-risk ones
  need the confirmation signal;
* scope uniformity: the target scope is at least as specific as every source;
* non-weakening: for allow/ask, no deny at an equal-or-broader scope matches a
  command the wildcard would newly cover.

The observed command space is every literal and prefix probe taken from all
rules of the tool, across all scopes and actions.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from perm_reconcile.constants import (
    COMMAND_SEPARATOR,
    PATH_SEPARATOR,
    WILDCARD,
)
from perm_reconcile.models import (
    ConsolidationCandidate,
    ConsolidationStatus,
    RiskTier,
    Rule,
    RuleAction,
    max_tier,
)
from perm_reconcile.risk import RiskClassifier
from perm_reconcile.rules.patterns import (
    PatternKind,
    find_unbalanced_delimiter,
    is_command_tool,
    is_path_tool,
    probes,
    rule_covers,
    rule_matches,
    rule_pattern,
)

logger = logging.getLogger(__name__)

CHECK_COMPLETENESS = "completeness"
CHECK_RISK_HIGH = "risk ceiling: high-risk pattern"
CHECK_RISK_MEDIUM = "risk ceiling: medium-risk pattern needs confirmation"
CHECK_SCOPE = "scope uniformity"
CHECK_NON_WEAKENING = "non-weakening: contradicts an existing deny"


@dataclass(frozen=True)
class ConsolidationContext:
    rules: tuple[Rule, ...] = ()
    classifier: RiskClassifier = field(default_factory=RiskClassifier)
    confirm_medium: bool = False

    def rules_for_tool(self, tool: str) -> list[Rule]:
        return [rule for rule in self.rules if rule.tool == tool]

    def observed_commands(self, tool: str) -> list[str]:
        seen: dict[str, None] = {}
        for rule in self.rules_for_tool(tool):
            for probe in probes(rule_pattern(rule)):
                seen.setdefault(probe, None)
        return list(seen)


def _joiner(tool: str) -> Optional[str]:
    if is_command_tool(tool):
        return COMMAND_SEPARATOR
    if is_path_tool(tool):
        return PATH_SEPARATOR
    return None


def _tokens(rule: Rule) -> Optional[tuple[str, ...]]:
    joiner = _joiner(rule.tool)
    pattern = rule_pattern(rule)
    if joiner is None or pattern.kind == PatternKind.ANY:
        return None
    if joiner == COMMAND_SEPARATOR:
        return tuple(pattern.literal.split())
    return tuple(pattern.literal.split(joiner))


def _cluster(rules: Sequence[Rule]) -> list[tuple[tuple[str, ...], list[Rule]]]:
    """Group rules under their deepest shared token prefix.

    Deeper prefixes are claimed first so every cluster gets the narrowest
    prefix that still spans two distinct patterns.
    """
    remaining: list[tuple[Rule, tuple[str, ...]]] = []
    for rule in rules:
        tokens = _tokens(rule)
        if tokens:
            remaining.append((rule, tokens))
    clusters: list[tuple[tuple[str, ...], list[Rule]]] = []
    depth = max((len(tokens) for _, tokens in remaining), default=0)
    while depth > 0 and remaining:
        buckets: dict[tuple[str, ...], list[tuple[Rule, tuple[str, ...]]]] = (
            defaultdict(list)
        )
        for rule, tokens in remaining:
            if len(tokens) >= depth:
                buckets[tokens[:depth]].append((rule, tokens))
        claimed: set[Rule] = set()
        for key in sorted(buckets):
            members = [rule for rule, _ in buckets[key]]
            if len({rule_pattern(rule) for rule in members}) < 2:
                continue
            clusters.append((key, members))
            claimed.update(members)
        remaining = [(rule, tokens) for rule, tokens in remaining if rule not in claimed]
        depth -= 1
    return clusters


def _candidate_texts(tool: str, prefix: tuple[str, ...]) -> list[str]:
    joiner = _joiner(tool)
    if joiner is None:
        return []
    literal = joiner.join(prefix)
    if not literal.strip() or find_unbalanced_delimiter(literal) is not None:
        return []
    if joiner == COMMAND_SEPARATOR:
        return [f"{literal} {WILDCARD}", f"{literal}{WILDCARD}"]
    return [f"{literal}{PATH_SEPARATOR}{WILDCARD * 2}", f"{literal}{WILDCARD * 2}"]


class Consolidator:
    def __init__(self, context: ConsolidationContext) -> None:
        self.context = context

    def propose(self, rules: Iterable[Rule]) -> list[ConsolidationCandidate]:
        groups: dict[tuple[RuleAction, str], list[Rule]] = defaultdict(list)
        for rule in rules:
            groups[(rule.action, rule.tool)].append(rule)

        candidates: list[ConsolidationCandidate] = []
        for action, tool in sorted(groups, key=lambda key: (key[0].value, key[1])):
            group = sorted(
                groups[(action, tool)],
                key=lambda rule: (rule.scope.rank, rule.position),
            )
            for prefix, members in _cluster(group):
                candidate = self._evaluate_cluster(action, tool, prefix, members)
                if candidate is not None:
                    candidates.append(candidate)
        return candidates

    def _evaluate_cluster(
        self,
        action: RuleAction,
        tool: str,
        prefix: tuple[str, ...],
        sources: list[Rule],
    ) -> Optional[ConsolidationCandidate]:
        target = max((rule.scope for rule in sources), key=lambda scope: scope.rank)
        evaluated: list[ConsolidationCandidate] = []
        for text in _candidate_texts(tool, prefix):
            rule = Rule(
                action=action,
                tool=tool,
                pattern=text,
                scope=target,
                position=-1,
                raw=f"{tool}({text})",
            )
            candidate = self.evaluate(rule, sources)
            if candidate.auto_applicable:
                return candidate
            evaluated.append(candidate)
        if not evaluated:
            return None
        # Prefer the narrowest form unless only a broader one covers the sources.
        covering = [
            item for item in evaluated if CHECK_COMPLETENESS not in item.failed_checks
        ]
        chosen = covering[0] if covering else evaluated[0]
        logger.debug(
            "consolidation %s needs review: %s",
            chosen.rule.describe(),
            ", ".join(chosen.failed_checks),
        )
        return chosen

    def evaluate(self, rule: Rule, sources: Sequence[Rule]) -> ConsolidationCandidate:
        failed: list[str] = []
        if not self._is_complete(rule, sources):
            failed.append(CHECK_COMPLETENESS)

        scopes = {source.scope for source in sources}
        risk = self.context.classifier.classify(rule)
        if len(scopes) > 1:
            risk = max_tier(risk, RiskTier.MEDIUM)
        if risk == RiskTier.HIGH:
            failed.append(CHECK_RISK_HIGH)
        elif risk == RiskTier.MEDIUM and not self.context.confirm_medium:
            failed.append(CHECK_RISK_MEDIUM)

        if len(scopes) > 1 and any(
            rule.scope.rank < scope.rank for scope in scopes
        ):
            failed.append(CHECK_SCOPE)

        if rule.action != RuleAction.DENY and self._contradicts_deny(rule, sources):
            failed.append(CHECK_NON_WEAKENING)

        names = ", ".join(source.text for source in sources)
        if failed:
            status = ConsolidationStatus.MANUAL_REVIEW_REQUIRED
            reason = f"cannot replace {names}: {'; '.join(failed)}"
        else:
            status = ConsolidationStatus.PROPOSED
            reason = f"replaces {names} without matching new commands"
        return ConsolidationCandidate(
            rule=rule,
            sources=tuple(sources),
            risk=risk,
            status=status,
            reason=reason,
            failed_checks=tuple(failed),
        )

    def _is_complete(self, rule: Rule, sources: Sequence[Rule]) -> bool:
        if not all(rule_covers(rule, source) for source in sources):
            return False
        for command in self.context.observed_commands(rule.tool):
            if rule_matches(rule, rule.tool, command) and not any(
                rule_matches(source, rule.tool, command) for source in sources
            ):
                return False
        return True

    def _contradicts_deny(self, rule: Rule, sources: Sequence[Rule]) -> bool:
        denies = [
            other
            for other in self.context.rules_for_tool(rule.tool)
            if other.action == RuleAction.DENY and other.scope.rank <= rule.scope.rank
        ]
        if not denies:
            return False
        commands = set(self.context.observed_commands(rule.tool))
        commands.update(probes(rule_pattern(rule)))
        for deny in denies:
            commands.update(probes(rule_pattern(deny)))
        newly_covered = [
            command
            for command in commands
            if rule_matches(rule, rule.tool, command)
            and not any(rule_matches(source, rule.tool, command) for source in sources)
        ]
        return any(
            rule_matches(deny, rule.tool, command)
            for deny in denies
            for command in newly_covered
        )


def propose_consolidation(
    rules: Iterable[Rule], context: Optional[ConsolidationContext] = None
) -> list[ConsolidationCandidate]:
    rules = list(rules)
    if context is None:
        context = ConsolidationContext(rules=tuple(rules))
    return Consolidator(context).propose(rules)
