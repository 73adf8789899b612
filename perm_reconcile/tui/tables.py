from collections import Counter
from typing import Optional

from rich.markup import escape
from rich.panel import Panel
from rich.table import Column, Table

from perm_reconcile.models import (
    Conflict,
    ConsolidationCandidate,
    PlannedChange,
    ReconcilePlan,
    Rule,
    ScopeSource,
)
from perm_reconcile.tui.enums import (
    ACTION_STYLE,
    CHANGE_KIND_STYLE,
    RESOLUTION_STYLE,
    RISK_STYLE,
    UIStyle,
)
from perm_reconcile.utils import compact_home_path


def _styled(value: str, style: str) -> str:
    return f"[{style}]{escape(value)}[/{style}]"


class PlanTable:
    @staticmethod
    def summary_block(plan: ReconcilePlan, mode: str):
        counts = Counter(change.kind.value for change in plan.changes)
        chips = [f"{key}={value}" for key, value in sorted(counts.items()) if value > 0]
        if not chips:
            chips = ["none"]
        rule_counts = "  ".join(
            f"{scope.value}={len(rule_set.rules)}"
            for scope, rule_set in plan.rule_sets.items()
        )

        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        table.add_row("Mode", mode)
        table.add_row("Changes", f"{len(plan.changes)} ({len(plan.auto_changes())} auto)")
        table.add_row("Kinds", "  ".join(chips))
        table.add_row("Conflicts", str(len(plan.conflicts)))
        table.add_row("Rules after", rule_counts)
        return table

    @staticmethod
    def changes_table(changes: list[PlannedChange]) -> Table:
        table = Table(
            Column(header="Change", width=12),
            Column(header="Rule", overflow="fold", max_width=48),
            Column(header="Scope", width=30),
            Column(header="Risk", width=8),
            Column(header="Auto", width=5),
            Column(header="Reason", overflow="fold"),
            expand=True,
            header_style="bold",
        )
        for change in changes:
            kind_style = CHANGE_KIND_STYLE.get(change.kind, UIStyle.WHITE.value)
            risk_style = RISK_STYLE.get(change.risk, UIStyle.WHITE.value)
            from_scope = change.from_scope.value if change.from_scope else "mixed"
            to_scope = change.to_scope.value if change.to_scope else "-"
            table.add_row(
                _styled(change.kind.value, kind_style),
                _styled(f"{change.rule.action.value} {change.rule.text}", UIStyle.WHITE.value),
                f"{from_scope} -> {to_scope}",
                _styled(change.risk.value, risk_style),
                "yes" if change.auto else "no",
                escape(change.reason),
            )
        return table


class ConflictTable:
    @staticmethod
    def conflicts_table(conflicts: list[Conflict]) -> Table:
        table = Table(
            Column(header="Wins", overflow="fold"),
            Column(header="Over", overflow="fold"),
            Column(header="Effective", width=9),
            Column(header="Example", overflow="fold", max_width=32),
            Column(header="Resolution", width=22),
            expand=True,
            header_style="bold",
        )
        for conflict in conflicts:
            action_style = ACTION_STYLE.get(conflict.effective_action, UIStyle.WHITE.value)
            resolution_style = RESOLUTION_STYLE.get(
                conflict.resolution, UIStyle.WHITE.value
            )
            table.add_row(
                escape(conflict.higher_rule.describe()),
                escape(conflict.lower_rule.describe()),
                _styled(conflict.effective_action.value, action_style),
                escape(conflict.sample_command),
                _styled(conflict.resolution.value, resolution_style),
            )
        return table


class CandidateTable:
    @staticmethod
    def candidates_table(candidates: list[ConsolidationCandidate]) -> Table:
        table = Table(
            Column(header="Wildcard", overflow="fold"),
            Column(header="Replaces", overflow="fold"),
            Column(header="Risk", width=8),
            Column(header="Status", width=22),
            Column(header="Reason", overflow="fold"),
            expand=True,
            header_style="bold",
        )
        for candidate in candidates:
            risk_style = RISK_STYLE.get(candidate.risk, UIStyle.WHITE.value)
            status_style = (
                UIStyle.GREEN.value if candidate.auto_applicable else UIStyle.YELLOW.value
            )
            table.add_row(
                escape(candidate.rule.describe()),
                escape("\n".join(source.describe() for source in candidate.sources)),
                _styled(candidate.risk.value, risk_style),
                _styled(candidate.status.value, status_style),
                escape(candidate.reason),
            )
        return table


class ApplyTable:
    @staticmethod
    def stats_panel(applied: int, failed: int, backups: int = 0) -> Panel:
        stats: dict[str, str] = {
            "applied": str(applied),
            "failed": str(failed),
            "backups": str(backups),
        }
        table = Table(show_header=False, box=None)
        for key, value in stats.items():
            table.add_row(f"[bold]{key}[/bold]", value)
        return Panel(
            table,
            title="apply",
            border_style=UIStyle.GREEN.value if failed == 0 else UIStyle.RED.value,
        )


class CheckTable:
    @staticmethod
    def decision_block(tool: str, command: str, rule: Optional[Rule]) -> Table:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        table.add_row("Tool", escape(tool))
        table.add_row("Command", escape(command))
        if rule is None:
            table.add_row("Action", _styled("no rule (default prompt)", UIStyle.DIM.value))
            return table
        style = ACTION_STYLE.get(rule.action, UIStyle.WHITE.value)
        table.add_row("Action", _styled(rule.action.value, style))
        table.add_row("Decided by", escape(rule.describe()))
        return table


class ScopeTable:
    @staticmethod
    def sources_table(sources: list[ScopeSource]) -> Table:
        table = Table(
            Column(header="Scope", width=16),
            Column(header="Path", overflow="ellipsis"),
            Column(header="Status", width=9),
            Column(header="Detail", overflow="fold"),
            expand=True,
            header_style="bold",
        )
        for source in sources:
            row = source.as_dict()
            style = UIStyle.GREEN.value if source.exists else UIStyle.DIM.value
            if source.alias_of is not None:
                style = UIStyle.YELLOW.value
            table.add_row(
                row["scope"],
                escape(compact_home_path(row["path"])),
                _styled(row["status"], style),
                row["detail"],
            )
        return table
