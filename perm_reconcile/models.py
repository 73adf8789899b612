from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class RuleAction(str, Enum):
    ALLOW = "allow"
    ASK = "ask"
    DENY = "deny"

    @property
    def priority(self) -> int:
        return _ACTION_PRIORITY[self]


_ACTION_PRIORITY = {
    RuleAction.DENY: 2,
    RuleAction.ASK: 1,
    RuleAction.ALLOW: 0,
}


class Scope(str, Enum):
    USER = "user"
    PROJECT_SHARED = "project_shared"
    PROJECT_LOCAL = "project_local"

    @property
    def rank(self) -> int:
        """Specificity: higher rank overrides lower rank."""
        return _SCOPE_RANK[self]


_SCOPE_RANK = {
    Scope.USER: 0,
    Scope.PROJECT_SHARED: 1,
    Scope.PROJECT_LOCAL: 2,
}

SCOPES_BY_SPECIFICITY: tuple[Scope, ...] = (
    Scope.USER,
    Scope.PROJECT_SHARED,
    Scope.PROJECT_LOCAL,
)


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def level(self) -> int:
        return _TIER_LEVEL[self]


_TIER_LEVEL = {
    RiskTier.LOW: 1,
    RiskTier.MEDIUM: 2,
    RiskTier.HIGH: 3,
}


def max_tier(*tiers: RiskTier) -> RiskTier:
    return max(tiers, key=lambda tier: tier.level, default=RiskTier.LOW)


class ConsolidationStatus(str, Enum):
    PROPOSED = "proposed"
    MANUAL_REVIEW_REQUIRED = "manual_review_required"


class ConflictResolution(str, Enum):
    HIGHER_SCOPE_WINS = "higher_scope_wins"
    MANUAL_REVIEW_REQUIRED = "manual_review_required"


class ChangeKind(str, Enum):
    NORMALIZE = "normalize"
    REMOVE = "remove"
    CONSOLIDATE = "consolidate"


@dataclass(frozen=True)
class Rule:
    action: RuleAction
    tool: str
    pattern: Optional[str]
    scope: Scope
    position: int = 0
    raw: str = field(default="", compare=False)

    @property
    def text(self) -> str:
        if self.pattern is None:
            return self.tool
        return f"{self.tool}({self.pattern})"

    def describe(self) -> str:
        return f"{self.scope.value}:{self.action.value} {self.text}"


@dataclass(frozen=True)
class RuleSet:
    scope: Scope
    rules: tuple[Rule, ...] = ()
    path: Optional[Path] = None

    def by_action(self, action: RuleAction) -> list[Rule]:
        return [rule for rule in self.rules if rule.action == action]


@dataclass(frozen=True)
class ConsolidationCandidate:
    rule: Rule
    sources: tuple[Rule, ...]
    risk: RiskTier
    status: ConsolidationStatus
    reason: str
    failed_checks: tuple[str, ...] = ()

    @property
    def auto_applicable(self) -> bool:
        return self.status == ConsolidationStatus.PROPOSED


@dataclass(frozen=True)
class Conflict:
    """Two rules with different actions over an overlapping command space.

    ``higher_rule`` is the rule that decides the overlap under action
    priority (deny > ask > allow) then scope specificity.
    """

    higher_rule: Rule
    lower_rule: Rule
    resolution: ConflictResolution
    effective_action: RuleAction
    sample_command: str


@dataclass(frozen=True)
class PlannedChange:
    kind: ChangeKind
    rule: Rule
    from_scope: Optional[Scope]
    to_scope: Optional[Scope]
    reason: str
    risk: RiskTier
    sources: tuple[Rule, ...] = ()
    auto: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "action": self.kind.value,
            "rule": self.rule.text,
            "fromScope": self.from_scope.value if self.from_scope else None,
            "toScope": self.to_scope.value if self.to_scope else None,
            "reason": self.reason,
            "risk": self.risk.value,
            "auto": self.auto,
            "sources": [source.text for source in self.sources],
        }


@dataclass
class ReconcilePlan:
    rule_sets: dict[Scope, RuleSet]
    changes: list[PlannedChange]
    conflicts: list[Conflict]
    candidates: list[ConsolidationCandidate]
    findings: list[Exception]
    errors: list[Exception]

    def is_valid(self) -> bool:
        return not self.errors

    def auto_changes(self) -> list[PlannedChange]:
        return [change for change in self.changes if change.auto]

    def summary(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in ChangeKind}
        for change in self.changes:
            counts[change.kind.value] += 1
        counts["changes"] = len(self.changes)
        counts["auto"] = len(self.auto_changes())
        counts["conflicts"] = len(self.conflicts)
        counts["candidates"] = len(self.candidates)
        counts["findings"] = len(self.findings)
        counts["errors"] = len(self.errors)
        return counts

    def as_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary(),
            "rules": {
                scope.value: [rule.describe() for rule in rule_set.rules]
                for scope, rule_set in self.rule_sets.items()
            },
            "changes": [change.as_dict() for change in self.changes],
            "conflicts": [
                {
                    "higher": conflict.higher_rule.describe(),
                    "lower": conflict.lower_rule.describe(),
                    "resolution": conflict.resolution.value,
                    "effective": conflict.effective_action.value,
                    "sample": conflict.sample_command,
                }
                for conflict in self.conflicts
            ],
            "candidates": [
                {
                    "rule": candidate.rule.describe(),
                    "sources": [source.describe() for source in candidate.sources],
                    "risk": candidate.risk.value,
                    "status": candidate.status.value,
                    "reason": candidate.reason,
                }
                for candidate in self.candidates
            ],
            "findings": [str(item) for item in self.findings],
            "errors": [str(item) for item in self.errors],
        }


@dataclass(frozen=True)
class ScopeSource:
    scope: Scope
    path: Path
    exists: bool
    alias_of: Optional[Scope] = None

    def as_dict(self) -> dict[str, str]:
        return {
            "scope": self.scope.value,
            "path": str(self.path),
            "status": "missing" if not self.exists else "present",
            "detail": f"alias of {self.alias_of.value}" if self.alias_of else "",
        }
