"""Rule text parsing and the pattern-matching relation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterable, Optional

from perm_reconcile.constants import (
    BUILTIN_TOOLS,
    COMMAND_SEPARATOR,
    COMMAND_TOOLS,
    LEGACY_WILDCARD_SUFFIX,
    MCP_TOOL_PREFIX,
    PATH_SEPARATOR,
    PATH_TOOLS,
    WILDCARD,
)
from perm_reconcile.errors import InvalidRuleError
from perm_reconcile.models import Rule, RuleAction, Scope

_TOOL_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*$")

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {value: key for key, value in _OPENERS.items()}
_QUOTES = ("'", '"')

# Stands in for "any continuation" when probing wildcard patterns.
PROBE = "\x00"


class PatternKind(str, Enum):
    ANY = "any"
    EXACT = "exact"
    PREFIX = "prefix"


@dataclass(frozen=True)
class Pattern:
    tool: str
    kind: PatternKind
    literal: str = ""
    separator: Optional[str] = None

    @property
    def has_boundary(self) -> bool:
        return self.kind == PatternKind.PREFIX and self.separator is not None


def is_command_tool(tool: str) -> bool:
    return tool in COMMAND_TOOLS


def is_path_tool(tool: str) -> bool:
    return tool in PATH_TOOLS


def separator_for(tool: str) -> Optional[str]:
    if is_command_tool(tool):
        return COMMAND_SEPARATOR
    if is_path_tool(tool):
        return PATH_SEPARATOR
    return None


def is_known_tool(tool: str, extra_tools: Iterable[str] = ()) -> bool:
    if tool in BUILTIN_TOOLS or tool in extra_tools:
        return True
    return tool.startswith(MCP_TOOL_PREFIX) and len(tool) > len(MCP_TOOL_PREFIX)


def tool_covers(rule_tool: str, tool: str) -> bool:
    """Whether a rule naming ``rule_tool`` applies to invocations of ``tool``.

    MCP rules may name a whole server (``mcp__github``), which covers every
    tool it exposes (``mcp__github__create_issue``).
    """
    if rule_tool == tool:
        return True
    if rule_tool.startswith(MCP_TOOL_PREFIX):
        return tool.startswith(f"{rule_tool}__")
    return False


def collapse_unquoted_whitespace(text: str) -> str:
    """Collapse runs of two or more unquoted whitespace characters to a space."""
    out: list[str] = []
    quote: Optional[str] = None
    index = 0
    size = len(text)
    while index < size:
        char = text[index]
        if quote is not None:
            out.append(char)
            if char == "\\" and quote == '"' and index + 1 < size:
                out.append(text[index + 1])
                index += 2
                continue
            if char == quote:
                quote = None
            index += 1
            continue
        if char == "\\" and index + 1 < size:
            out.append(text[index : index + 2])
            index += 2
            continue
        if char in _QUOTES:
            quote = char
            out.append(char)
            index += 1
            continue
        if char.isspace():
            end = index
            while end < size and text[end].isspace():
                end += 1
            out.append(" " if end - index > 1 else char)
            index = end
            continue
        out.append(char)
        index += 1
    return "".join(out)


def find_unbalanced_delimiter(text: str) -> Optional[str]:
    stack: list[str] = []
    quote: Optional[str] = None
    index = 0
    size = len(text)
    while index < size:
        char = text[index]
        if char == "\\" and quote != "'":
            index += 2
            continue
        if quote is not None:
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char in _OPENERS:
            stack.append(char)
        elif char in _CLOSERS:
            if not stack or stack[-1] != _CLOSERS[char]:
                return f"unexpected {char!r}"
            stack.pop()
        index += 1
    if quote is not None:
        return f"unterminated {quote} quote"
    if stack:
        return f"unclosed {stack[-1]!r}"
    return None


def canonical_command(tool: str, command: str) -> str:
    if is_command_tool(tool):
        return collapse_unquoted_whitespace(command).rstrip()
    return command.rstrip()


def parse_rule_text(
    raw: str,
    action: RuleAction,
    scope: Scope,
    position: int = 0,
    known_tools: Iterable[str] = (),
) -> Rule:
    text = raw.strip()
    if not text:
        raise InvalidRuleError(raw, "empty rule", scope, action.value)

    open_index = text.find("(")
    if open_index == -1:
        if ")" in text:
            raise InvalidRuleError(raw, "unbalanced parentheses", scope, action.value)
        tool, pattern = text, None
    else:
        if not text.endswith(")"):
            detail = (
                "unexpected text after closing parenthesis"
                if ")" in text[open_index:]
                else "unbalanced parentheses"
            )
            raise InvalidRuleError(raw, detail, scope, action.value)
        tool = text[:open_index]
        pattern = text[open_index + 1 : -1]
        if not pattern.strip():
            raise InvalidRuleError(raw, "empty pattern", scope, action.value)
        problem = find_unbalanced_delimiter(pattern)
        if problem is not None:
            raise InvalidRuleError(
                raw, f"unbalanced delimiters: {problem}", scope, action.value
            )

    if not _TOOL_RE.match(tool):
        raise InvalidRuleError(raw, "malformed tool identifier", scope, action.value)
    if not is_known_tool(tool, known_tools):
        raise InvalidRuleError(raw, f"unknown tool {tool!r}", scope, action.value)

    return Rule(
        action=action,
        tool=tool,
        pattern=pattern,
        scope=scope,
        position=position,
        raw=raw,
    )


@lru_cache(maxsize=4096)
def compile_pattern(tool: str, pattern: Optional[str]) -> Pattern:
    if pattern is None:
        return Pattern(tool=tool, kind=PatternKind.ANY)

    text = canonical_command(tool, pattern)
    if text == WILDCARD:
        return Pattern(tool=tool, kind=PatternKind.ANY)

    if is_command_tool(tool) and text.endswith(LEGACY_WILDCARD_SUFFIX):
        literal = text[: -len(LEGACY_WILDCARD_SUFFIX)].rstrip()
        if not literal:
            return Pattern(tool=tool, kind=PatternKind.ANY)
        return Pattern(tool, PatternKind.PREFIX, literal, COMMAND_SEPARATOR)

    stripped = text.rstrip(WILDCARD)
    if stripped == text:
        return Pattern(tool, PatternKind.EXACT, text)

    separator = separator_for(tool)
    if is_command_tool(tool) and stripped[-1:].isspace():
        literal = stripped.rstrip()
        if not literal:
            return Pattern(tool=tool, kind=PatternKind.ANY)
        return Pattern(tool, PatternKind.PREFIX, literal, separator)
    if separator is not None and stripped.endswith(separator):
        return Pattern(tool, PatternKind.PREFIX, stripped[: -len(separator)], separator)
    if not stripped:
        return Pattern(tool=tool, kind=PatternKind.ANY)
    return Pattern(tool, PatternKind.PREFIX, stripped)


def rule_pattern(rule: Rule) -> Pattern:
    return compile_pattern(rule.tool, rule.pattern)


def _is_boundary(pattern: Pattern, char: str) -> bool:
    if is_command_tool(pattern.tool):
        return char.isspace()
    return char == pattern.separator


def pattern_matches(pattern: Pattern, command: str) -> bool:
    if pattern.kind == PatternKind.ANY:
        return True
    candidate = canonical_command(pattern.tool, command)
    if pattern.kind == PatternKind.EXACT:
        return candidate == pattern.literal
    if not candidate.startswith(pattern.literal):
        return False
    if pattern.separator is None:
        return True
    rest = candidate[len(pattern.literal) :]
    return not rest or _is_boundary(pattern, rest[0])


def rule_matches(rule: Rule, tool: str, command: str) -> bool:
    if not tool_covers(rule.tool, tool):
        return False
    pattern = rule_pattern(rule)
    if rule.tool != tool:
        return pattern.kind == PatternKind.ANY
    return pattern_matches(pattern, command)


def probes(pattern: Pattern) -> list[str]:
    """Representative commands spanning everything ``pattern`` can match."""
    if pattern.kind == PatternKind.ANY:
        return []
    if pattern.kind == PatternKind.EXACT:
        return [pattern.literal]
    if pattern.separator is not None:
        return [pattern.literal, f"{pattern.literal}{pattern.separator}{PROBE}"]
    return [pattern.literal, f"{pattern.literal}{PROBE}"]


def covers(outer: Pattern, inner: Pattern) -> bool:
    """Every command matched by ``inner`` is matched by ``outer``."""
    if outer.kind == PatternKind.ANY:
        return True
    if inner.kind == PatternKind.ANY:
        return False
    return all(pattern_matches(outer, probe) for probe in probes(inner))


def overlap(left: Pattern, right: Pattern) -> Optional[str]:
    """Return a command matched by both patterns, or ``None``."""
    if left.kind == PatternKind.ANY and right.kind == PatternKind.ANY:
        return WILDCARD
    if left.kind == PatternKind.ANY:
        return probes(right)[0]
    if right.kind == PatternKind.ANY:
        return probes(left)[0]
    for probe in probes(left) + probes(right):
        if pattern_matches(left, probe) and pattern_matches(right, probe):
            return probe
    return None


def rule_covers(outer: Rule, inner: Rule) -> bool:
    if outer.tool == inner.tool:
        return covers(rule_pattern(outer), rule_pattern(inner))
    if tool_covers(outer.tool, inner.tool):
        return rule_pattern(outer).kind == PatternKind.ANY
    return False


def rule_overlap(left: Rule, right: Rule) -> Optional[str]:
    if left.tool == right.tool:
        return overlap(rule_pattern(left), rule_pattern(right))
    if tool_covers(left.tool, right.tool) and rule_pattern(left).kind == PatternKind.ANY:
        return _sample(right)
    if tool_covers(right.tool, left.tool) and rule_pattern(right).kind == PatternKind.ANY:
        return _sample(left)
    return None


def _sample(rule: Rule) -> str:
    found = probes(rule_pattern(rule))
    return found[0] if found else WILDCARD


def display_command(command: str) -> str:
    return command.replace(PROBE, "…")
