"""Read and write the ``permissions`` block of a settings payload."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Iterable, Optional

from perm_reconcile.constants import PERMISSIONS_KEY
from perm_reconcile.errors import InvalidRuleError
from perm_reconcile.models import Rule, RuleAction, RuleSet, Scope
from perm_reconcile.rules.patterns import parse_rule_text


def permission_lists(payload: dict[str, Any]) -> dict[RuleAction, list[Any]]:
    permissions = payload.get(PERMISSIONS_KEY)
    if not isinstance(permissions, dict):
        permissions = {}
    lists: dict[RuleAction, list[Any]] = {}
    for action in RuleAction:
        entries = permissions.get(action.value, [])
        lists[action] = list(entries) if isinstance(entries, list) else []
    return lists


def parse_rule_set(
    payload: dict[str, Any],
    scope: Scope,
    path: Optional[Path] = None,
    known_tools: Iterable[str] = (),
) -> tuple[RuleSet, list[InvalidRuleError]]:
    extra_tools = tuple(known_tools)
    rules: list[Rule] = []
    invalid: list[InvalidRuleError] = []
    for action, entries in permission_lists(payload).items():
        for position, raw in enumerate(entries):
            if not isinstance(raw, str):
                invalid.append(
                    InvalidRuleError(repr(raw), "not a string", scope, action.value)
                )
                continue
            try:
                rules.append(
                    parse_rule_text(
                        raw,
                        action=action,
                        scope=scope,
                        position=position,
                        known_tools=extra_tools,
                    )
                )
            except InvalidRuleError as exc:
                invalid.append(exc)
    return RuleSet(scope=scope, rules=tuple(rules), path=path), invalid


def render_payload(
    payload: dict[str, Any], lists: dict[RuleAction, list[Any]]
) -> dict[str, Any]:
    """Return a copy of ``payload`` with the permission lists replaced.

    Keys other than allow/ask/deny are kept untouched, and an action list that
    did not exist and stays empty is not introduced.
    """
    rendered = deepcopy(payload)
    permissions = rendered.get(PERMISSIONS_KEY)
    if not isinstance(permissions, dict):
        permissions = {}
    for action in RuleAction:
        entries = lists.get(action, [])
        if entries or action.value in permissions:
            permissions[action.value] = list(entries)
    if permissions or PERMISSIONS_KEY in rendered:
        rendered[PERMISSIONS_KEY] = permissions
    return rendered
