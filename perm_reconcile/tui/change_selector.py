"""Interactive Textual-based selector for planned permission changes."""

from __future__ import annotations

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header, SelectionList, Static
from textual.widgets.selection_list import Selection

from perm_reconcile.models import PlannedChange, ReconcilePlan, RiskTier


def is_selectable(change: PlannedChange) -> bool:
    return change.risk != RiskTier.HIGH


class ChangeSelectorApp(App[list[int]]):
    """Pick which planned changes to write.

    Automatic changes start selected. Selecting a medium-risk consolidation
    counts as confirming it. High-risk changes are never listed.
    """

    TITLE = "Permission Changes"
    CSS_DEFAULT = """
    Screen {
        layout: vertical;
    }
    #info {
        height: 3;
        content-align: center middle;
        background: $primary-darken-2;
        color: $text;
        padding: 0 1;
    }
    SelectionList {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("a", "select_all", "Select All"),
        Binding("n", "select_none", "Select None"),
        Binding("enter", "confirm", "Confirm"),
        Binding("q", "quit_app", "Quit"),
    ]

    def __init__(self, plan: ReconcilePlan) -> None:
        super().__init__()
        self._plan = plan
        self._selectable_indices: list[int] = []

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static(
            f"Changes: {len(self._plan.changes)} | "
            f"Conflicts: {len(self._plan.conflicts)} | "
            f"Use [a] select all, [n] select none, [enter] confirm",
            id="info",
        )

        selections: list[Selection[int]] = []
        for i, change in enumerate(self._plan.changes):
            if not is_selectable(change):
                continue
            self._selectable_indices.append(i)
            label = (
                f"[{change.risk.value}] {change.kind.value}: "
                f"{change.rule.describe()} ({change.reason})"
            )
            selections.append(Selection(Text(label), i, change.auto))

        yield SelectionList[int](*selections)
        yield Footer()

    def action_select_all(self) -> None:
        sel = self.query_one(SelectionList)
        sel.select_all()

    def action_select_none(self) -> None:
        sel = self.query_one(SelectionList)
        sel.deselect_all()

    def action_confirm(self) -> None:
        sel = self.query_one(SelectionList)
        self.exit(sorted(sel.selected))

    def action_quit_app(self) -> None:
        self.exit([])


def filter_changes_by_selection(
    plan: ReconcilePlan, selected_indices: list[int]
) -> list[PlannedChange]:
    """Return the selected changes in plan order, dropping high-risk ones."""
    selected_set = set(selected_indices)
    return [
        change
        for i, change in enumerate(plan.changes)
        if i in selected_set and is_selectable(change)
    ]
