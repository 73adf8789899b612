from typing import Optional

from rich.console import Console

from perm_reconcile.constants import APP_NAME
from perm_reconcile.models import ReconcilePlan, Rule, ScopeSource
from perm_reconcile.tui.enums import UIStyle
from perm_reconcile.tui.sections import ReportSection
from perm_reconcile.tui.tables import (
    ApplyTable,
    CandidateTable,
    CheckTable,
    ConflictTable,
    PlanTable,
    ScopeTable,
)


class ReconcileConsoleUI:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_plan(self, plan: ReconcilePlan, mode: str) -> None:
        self.console.print(
            ReportSection.block(
                "plan overview",
                PlanTable.summary_block(plan, mode=mode),
                style=UIStyle.BLUE.value,
            )
        )

        if plan.changes:
            self.console.print(
                ReportSection.block(
                    "changes",
                    PlanTable.changes_table(plan.changes),
                    style=UIStyle.CYAN.value,
                )
            )
        else:
            self.console.print(
                ReportSection.message(
                    "changes", "No changes required.", style=UIStyle.DIM.value
                )
            )

        review = [item for item in plan.candidates if not item.auto_applicable]
        if review:
            self.console.print(
                ReportSection.block(
                    "consolidations needing review",
                    CandidateTable.candidates_table(review),
                    style=UIStyle.YELLOW.value,
                )
            )

        if plan.conflicts:
            self.console.print(
                ReportSection.block(
                    "conflicts",
                    ConflictTable.conflicts_table(plan.conflicts),
                    style=UIStyle.MAGENTA.value,
                )
            )

        if plan.findings:
            self.console.print(
                ReportSection.listing("findings", plan.findings, style=UIStyle.YELLOW.value)
            )
        if plan.errors:
            self.console.print(
                ReportSection.listing("errors", plan.errors, style=UIStyle.RED.value)
            )

        if plan.auto_changes() and mode.startswith("plan"):
            self.console.print(
                ReportSection.message(
                    "next",
                    "Apply the automatic changes, or pick them one by one.\n"
                    f"- {APP_NAME} apply\n"
                    f"- {APP_NAME} apply --interactive",
                    style=UIStyle.DIM.value,
                )
            )

    def render_apply_result(
        self, applied: int, failed: int, failures: list[str], backups: int = 0
    ) -> None:
        self.console.print(
            ApplyTable.stats_panel(applied=applied, failed=failed, backups=backups)
        )
        if failures:
            self.console.print(
                ReportSection.listing("failures", failures, style=UIStyle.RED.value)
            )

    def render_check(self, tool: str, command: str, rule: Optional[Rule]) -> None:
        self.console.print(
            ReportSection.block(
                "effective action",
                CheckTable.decision_block(tool, command, rule),
                style=UIStyle.BLUE.value,
            )
        )

    def render_scopes(
        self, sources: list[ScopeSource], findings: list[Exception]
    ) -> None:
        self.console.print(
            ReportSection.block(
                "scopes", ScopeTable.sources_table(sources), style=UIStyle.BLUE.value
            )
        )
        if findings:
            self.console.print(
                ReportSection.listing("findings", findings, style=UIStyle.YELLOW.value)
            )

    def render_selection_cancelled(self) -> None:
        self.console.print(
            ReportSection.message(
                "apply", "Nothing selected; no files written.", style=UIStyle.YELLOW.value
            )
        )
