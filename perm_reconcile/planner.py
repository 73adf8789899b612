from __future__ import annotations

import logging
from typing import Optional

from perm_reconcile.config import ReconcilerConfig
from perm_reconcile.conflicts import resolve_conflicts
from perm_reconcile.consolidation import (
    CHECK_RISK_MEDIUM,
    ConsolidationContext,
    Consolidator,
)
from perm_reconcile.duplicates import duplicate_pairs
from perm_reconcile.errors import AmbiguousConsolidationError
from perm_reconcile.models import (
    SCOPES_BY_SPECIFICITY,
    ChangeKind,
    ConsolidationCandidate,
    PlannedChange,
    ReconcilePlan,
    RiskTier,
    Rule,
    RuleSet,
    Scope,
)
from perm_reconcile.risk import RiskClassifier
from perm_reconcile.rules.normalize import normalize_with_notes
from perm_reconcile.scopes import ScopeLocator, load_scopes

logger = logging.getLogger(__name__)


def _is_confirmable(candidate: ConsolidationCandidate) -> bool:
    return candidate.failed_checks == (CHECK_RISK_MEDIUM,)


class ReconcilePlanner:
    def __init__(
        self,
        config: Optional[ReconcilerConfig] = None,
        classifier: Optional[RiskClassifier] = None,
    ) -> None:
        self.config = config or ReconcilerConfig()
        self.classifier = classifier or RiskClassifier.from_config(self.config)

        self.changes: list[PlannedChange] = []
        self.findings: list[Exception] = []
        self.errors: list[Exception] = []

    def build_for(self, locator: ScopeLocator) -> ReconcilePlan:
        loaded = load_scopes(locator, known_tools=self.config.known_tools)
        return self.build(
            loaded.rule_sets,
            findings=[*loaded.aliases, *loaded.invalid_rules],
            errors=loaded.errors,
        )

    def build(
        self,
        rule_sets: dict[Scope, RuleSet],
        findings: Optional[list[Exception]] = None,
        errors: Optional[list[Exception]] = None,
    ) -> ReconcilePlan:
        self.changes = []
        self.findings = list(findings or [])
        self.errors = list(errors or [])

        sets = {
            scope: rule_sets.get(scope) or RuleSet(scope=scope)
            for scope in SCOPES_BY_SPECIFICITY
        }
        normalized = self._plan_normalization(sets)
        all_rules = [rule for scope in SCOPES_BY_SPECIFICITY for rule in normalized[scope]]

        redundant = self._plan_duplicates(all_rules)
        remaining = [rule for rule in all_rules if rule not in redundant]

        context = ConsolidationContext(
            rules=tuple(all_rules),
            classifier=self.classifier,
            confirm_medium=self.config.confirm_medium,
        )
        candidates = Consolidator(context).propose(remaining)
        consolidated = self._plan_consolidations(candidates)

        # Normalizing a rule that is about to disappear is noise.
        gone = redundant | consolidated
        self.changes = [
            change
            for change in self.changes
            if change.kind != ChangeKind.NORMALIZE or change.rule not in gone
        ]

        conflicts = resolve_conflicts(
            *[
                [rule for rule in remaining if rule.scope == scope]
                for scope in SCOPES_BY_SPECIFICITY
            ]
        )

        derived = self._derive_rule_sets(sets, remaining, consolidated, candidates)
        plan = ReconcilePlan(
            rule_sets=derived,
            changes=self.changes,
            conflicts=conflicts,
            candidates=candidates,
            findings=self.findings,
            errors=self.errors,
        )
        logger.debug("plan summary: %s", plan.summary())
        return plan

    def _plan_normalization(self, sets: dict[Scope, RuleSet]) -> dict[Scope, list[Rule]]:
        normalized: dict[Scope, list[Rule]] = {}
        for scope, rule_set in sets.items():
            rules: list[Rule] = []
            for rule in rule_set.rules:
                result, notes = normalize_with_notes(rule)
                rules.append(result)
                if notes:
                    self.changes.append(
                        PlannedChange(
                            kind=ChangeKind.NORMALIZE,
                            rule=result,
                            from_scope=scope,
                            to_scope=scope,
                            reason="; ".join(notes) or "normalized rule text",
                            risk=RiskTier.LOW,
                            auto=True,
                        )
                    )
            normalized[scope] = rules
        return normalized

    def _plan_duplicates(self, rules: list[Rule]) -> set[Rule]:
        redundant: set[Rule] = set()
        for rule, kept in duplicate_pairs(rules):
            redundant.add(rule)
            if kept.scope == rule.scope and kept.text == rule.text:
                reason = f"exact duplicate of entry #{kept.position + 1}"
            elif kept.text == rule.text:
                reason = f"duplicated by {kept.describe()}"
            else:
                reason = f"covered by {kept.describe()}"
            self.changes.append(
                PlannedChange(
                    kind=ChangeKind.REMOVE,
                    rule=rule,
                    from_scope=rule.scope,
                    to_scope=None,
                    reason=reason,
                    risk=RiskTier.LOW,
                    sources=(kept,),
                    auto=True,
                )
            )
        return redundant

    def _plan_consolidations(self, candidates: list[ConsolidationCandidate]) -> set[Rule]:
        consolidated: set[Rule] = set()
        for candidate in candidates:
            if not candidate.auto_applicable:
                self.findings.append(
                    AmbiguousConsolidationError(
                        candidate.rule.text, list(candidate.failed_checks)
                    )
                )
                if not _is_confirmable(candidate):
                    continue
            else:
                consolidated.update(candidate.sources)

            scopes = {source.scope for source in candidate.sources}
            self.changes.append(
                PlannedChange(
                    kind=ChangeKind.CONSOLIDATE,
                    rule=candidate.rule,
                    from_scope=next(iter(scopes)) if len(scopes) == 1 else None,
                    to_scope=candidate.rule.scope,
                    reason=candidate.reason,
                    risk=candidate.risk,
                    sources=candidate.sources,
                    auto=candidate.auto_applicable,
                )
            )
        return consolidated

    @staticmethod
    def _derive_rule_sets(
        sets: dict[Scope, RuleSet],
        remaining: list[Rule],
        consolidated: set[Rule],
        candidates: list[ConsolidationCandidate],
    ) -> dict[Scope, RuleSet]:
        derived: dict[Scope, RuleSet] = {}
        for scope in SCOPES_BY_SPECIFICITY:
            rules = [
                rule
                for rule in remaining
                if rule.scope == scope and rule not in consolidated
            ]
            rules.extend(
                candidate.rule
                for candidate in candidates
                if candidate.auto_applicable and candidate.rule.scope == scope
            )
            derived[scope] = RuleSet(scope=scope, rules=tuple(rules), path=sets[scope].path)
        return derived
