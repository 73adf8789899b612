"""Fixed risk tiers for rules and consolidation candidates."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from perm_reconcile.config import ReconcilerConfig
from perm_reconcile.constants import (
    FIND_ACTION_FLAGS,
    HIGH_RISK_PRIMITIVES,
    MCP_TOOL_PREFIX,
    MEDIUM_RISK_PRIMITIVES,
    MEDIUM_RISK_TOOLS,
    OPEN_ENDED_HIGH_RISK_PRIMITIVES,
    SHELL_OPERATORS,
    UNSCOPED_PATH_PREFIXES,
    WRAPPER_COMMANDS,
    WRITE_TOOLS,
)
from perm_reconcile.models import RiskTier, Rule, max_tier
from perm_reconcile.rules.patterns import (
    Pattern,
    PatternKind,
    is_command_tool,
    is_path_tool,
    rule_pattern,
)

_OPERATOR_RE = re.compile(
    r"\s*(?:" + "|".join(re.escape(op) for op in SHELL_OPERATORS) + r")\s*"
)
_ASSIGNMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=\S*$")
_DURATION_RE = re.compile(r"^\d+(?:\.\d+)?[smhd]?$")


def _strip_assignments(segment: str) -> str:
    tokens = segment.split()
    while tokens and _ASSIGNMENT_RE.match(tokens[0]):
        tokens.pop(0)
    if tokens and "/" in tokens[0]:
        # /usr/bin/rm is still rm.
        tokens[0] = tokens[0].rsplit("/", 1)[-1] or tokens[0]
    return " ".join(tokens)


def _unwrap(segment: str) -> str:
    """Drop leading wrappers such as ``env``, ``timeout 5`` or ``xargs -0``."""
    tokens = segment.split()
    while tokens and tokens[0] in WRAPPER_COMMANDS:
        tokens.pop(0)
        while tokens and (
            tokens[0].startswith("-")
            or _ASSIGNMENT_RE.match(tokens[0])
            or _DURATION_RE.match(tokens[0])
        ):
            tokens.pop(0)
    return _strip_assignments(" ".join(tokens))


def _starts_with_primitive(segment: str, primitive: str) -> bool:
    return segment == primitive or segment.startswith(f"{primitive} ")


def _normalize_primitives(items: Iterable[str], tier: RiskTier) -> list[tuple[str, RiskTier]]:
    return [(" ".join(item.split()), tier) for item in items]


class RiskClassifier:
    def __init__(
        self,
        high: Iterable[str] = HIGH_RISK_PRIMITIVES,
        medium: Iterable[str] = MEDIUM_RISK_PRIMITIVES,
        open_ended_high: Iterable[str] = OPEN_ENDED_HIGH_RISK_PRIMITIVES,
    ) -> None:
        self._primitives = _normalize_primitives(
            high, RiskTier.HIGH
        ) + _normalize_primitives(medium, RiskTier.MEDIUM)
        self._open_ended = _normalize_primitives(open_ended_high, RiskTier.HIGH)

    @classmethod
    def from_config(cls, config: Optional[ReconcilerConfig]) -> "RiskClassifier":
        if config is None:
            return cls()
        return cls(
            high=(*HIGH_RISK_PRIMITIVES, *config.high_risk),
            medium=(*MEDIUM_RISK_PRIMITIVES, *config.medium_risk),
        )

    def classify(self, rule: Rule) -> RiskTier:
        return self.classify_pattern(rule_pattern(rule))

    def classify_pattern(self, pattern: Pattern) -> RiskTier:
        tool = pattern.tool
        if is_command_tool(tool):
            if pattern.kind == PatternKind.ANY:
                return RiskTier.HIGH
            return self._classify_command(pattern)
        if tool in MEDIUM_RISK_TOOLS:
            return RiskTier.MEDIUM
        if is_path_tool(tool):
            return self._classify_path(pattern)
        if tool.startswith(MCP_TOOL_PREFIX) and pattern.kind == PatternKind.ANY:
            return RiskTier.MEDIUM
        return RiskTier.LOW

    def _classify_path(self, pattern: Pattern) -> RiskTier:
        writes = pattern.tool in WRITE_TOOLS
        if pattern.kind == PatternKind.ANY:
            return RiskTier.HIGH if writes else RiskTier.MEDIUM
        if (
            pattern.kind == PatternKind.PREFIX
            and pattern.literal in UNSCOPED_PATH_PREFIXES
        ):
            return RiskTier.HIGH if writes else RiskTier.MEDIUM
        return RiskTier.LOW

    def _classify_command(self, pattern: Pattern) -> RiskTier:
        segments = [
            _strip_assignments(segment)
            for segment in _OPERATOR_RE.split(pattern.literal)
        ]
        tiers: list[RiskTier] = []
        for index, segment in enumerate(segments):
            open_ended = (
                pattern.kind == PatternKind.PREFIX and index == len(segments) - 1
            )
            tiers.append(self._classify_segment(segment, pattern, open_ended))
        return max_tier(*tiers)

    def _classify_segment(
        self, segment: str, pattern: Pattern, open_ended: bool
    ) -> RiskTier:
        if open_ended and not segment:
            return RiskTier.HIGH
        tokens = segment.split()
        if tokens[:1] == ["find"] and any(flag in tokens for flag in FIND_ACTION_FLAGS):
            return RiskTier.HIGH
        unwrapped = _unwrap(segment)
        if unwrapped != segment:
            if open_ended and not unwrapped:
                return RiskTier.HIGH
            inner = self._classify_segment(unwrapped, pattern, open_ended)
            if inner == RiskTier.HIGH:
                return inner
        else:
            inner = RiskTier.LOW

        primitives = self._primitives
        if open_ended:
            # Any argument may follow, including ``-c`` or ``-exec``.
            primitives = self._open_ended + primitives
        found = inner
        for primitive, tier in primitives:
            if tier.level <= found.level:
                continue
            if _starts_with_primitive(segment, primitive):
                found = tier
            elif open_ended and pattern.has_boundary:
                if _starts_with_primitive(primitive, segment):
                    found = tier
            elif open_ended and primitive.startswith(segment):
                found = tier
        return found
