"""Semantics-preserving rule cleanup."""

from __future__ import annotations

from dataclasses import replace

from perm_reconcile.constants import LEGACY_WILDCARD_SUFFIX, WILDCARD
from perm_reconcile.models import Rule
from perm_reconcile.rules.patterns import collapse_unquoted_whitespace, is_command_tool


def normalize_with_notes(rule: Rule) -> tuple[Rule, list[str]]:
    """Return the normalized rule and a note for every transform applied.

    Only transforms that leave ``compile_pattern`` unchanged are used:
    trailing whitespace, unquoted whitespace runs in command patterns and the
    legacy ``:*`` suffix. Quoting is never touched.
    """
    notes: list[str] = []
    if rule.raw and rule.raw != rule.raw.strip():
        notes.append("trimmed surrounding whitespace")
    if rule.pattern is None:
        return rule, notes

    pattern = rule.pattern.rstrip()
    if pattern != rule.pattern:
        notes.append("trimmed trailing whitespace")

    if is_command_tool(rule.tool):
        collapsed = collapse_unquoted_whitespace(pattern)
        if collapsed != pattern:
            notes.append("collapsed repeated whitespace")
            pattern = collapsed
        if pattern.endswith(LEGACY_WILDCARD_SUFFIX):
            base = pattern[: -len(LEGACY_WILDCARD_SUFFIX)].rstrip()
            pattern = f"{base} {WILDCARD}" if base else WILDCARD
            notes.append(f"rewrote deprecated {LEGACY_WILDCARD_SUFFIX!r} wildcard")

    if pattern == rule.pattern:
        return rule, notes
    return replace(rule, pattern=pattern), notes


def normalize(rule: Rule) -> Rule:
    normalized, _ = normalize_with_notes(rule)
    return normalized
