"""Tests for the interactive change selector TUI."""

from __future__ import annotations

import pytest

from perm_reconcile.models import (
    ChangeKind,
    PlannedChange,
    ReconcilePlan,
    RiskTier,
    RuleAction,
    Scope,
)
from perm_reconcile.rules.patterns import parse_rule_text
from perm_reconcile.tui.change_selector import (
    ChangeSelectorApp,
    filter_changes_by_selection,
)


def _change(text: str, kind: ChangeKind, risk: RiskTier, auto: bool) -> PlannedChange:
    rule = parse_rule_text(text, action=RuleAction.ALLOW, scope=Scope.USER)
    return PlannedChange(
        kind=kind,
        rule=rule,
        from_scope=Scope.USER,
        to_scope=Scope.USER,
        reason="test",
        risk=risk,
        auto=auto,
    )


def _make_plan() -> ReconcilePlan:
    return ReconcilePlan(
        rule_sets={},
        changes=[
            _change("Bash(npm run *)", ChangeKind.NORMALIZE, RiskTier.LOW, True),
            _change("Bash(npm install *)", ChangeKind.CONSOLIDATE, RiskTier.MEDIUM, False),
            _change("Bash(git push *)", ChangeKind.CONSOLIDATE, RiskTier.HIGH, False),
            _change("Bash(npm test)", ChangeKind.REMOVE, RiskTier.LOW, True),
        ],
        conflicts=[],
        candidates=[],
        findings=[],
        errors=[],
    )


@pytest.mark.asyncio(loop_scope="function")
async def test_high_risk_changes_are_not_listed() -> None:
    app = ChangeSelectorApp(_make_plan())
    async with app.run_test():
        sel = app.query_one("SelectionList")
        assert len(sel._options) == 3


@pytest.mark.asyncio(loop_scope="function")
async def test_auto_changes_start_selected() -> None:
    app = ChangeSelectorApp(_make_plan())
    async with app.run_test():
        sel = app.query_one("SelectionList")
        assert set(sel.selected) == {0, 3}


@pytest.mark.asyncio(loop_scope="function")
async def test_select_all_action() -> None:
    app = ChangeSelectorApp(_make_plan())
    async with app.run_test() as pilot:
        await pilot.press("a")
        sel = app.query_one("SelectionList")
        assert len(sel.selected) == 3


@pytest.mark.asyncio(loop_scope="function")
async def test_select_none_action() -> None:
    app = ChangeSelectorApp(_make_plan())
    async with app.run_test() as pilot:
        await pilot.press("n")
        sel = app.query_one("SelectionList")
        assert len(sel.selected) == 0


@pytest.mark.asyncio(loop_scope="function")
async def test_confirm_returns_selected_indices() -> None:
    app = ChangeSelectorApp(_make_plan())
    async with app.run_test():
        app.action_confirm()
    assert app.return_value == [0, 3]


@pytest.mark.asyncio(loop_scope="function")
async def test_quit_returns_empty() -> None:
    app = ChangeSelectorApp(_make_plan())
    async with app.run_test() as pilot:
        await pilot.press("q")
    assert app.return_value == []


def test_filter_changes_by_selection() -> None:
    plan = _make_plan()
    changes = filter_changes_by_selection(plan, [1, 3])
    assert [change.rule.text for change in changes] == [
        "Bash(npm install *)",
        "Bash(npm test)",
    ]


def test_filter_drops_high_risk_even_if_selected() -> None:
    plan = _make_plan()
    assert filter_changes_by_selection(plan, [2]) == []


def test_filter_empty_selection() -> None:
    assert filter_changes_by_selection(_make_plan(), []) == []
