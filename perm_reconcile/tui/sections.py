from typing import Iterable

from rich.console import RenderableType
from rich.markup import escape
from rich.panel import Panel

from perm_reconcile.tui.enums import UIStyle
from perm_reconcile.utils import compact_home_paths_in_text


class ReportSection:
    """Bordered blocks that make up plan, apply, check and scopes output."""

    @staticmethod
    def block(title: str, body: RenderableType, style: str = UIStyle.BLUE.value) -> Panel:
        return Panel(body, title=title, border_style=style, padding=(0, 1))

    @staticmethod
    def message(title: str, text: str, style: str = UIStyle.DIM.value) -> Panel:
        return ReportSection.block(title, escape(text), style=style)

    @staticmethod
    def listing(title: str, items: Iterable[object], style: str) -> Panel:
        """One line per item, with home paths shortened to ``~``."""
        lines = [escape(compact_home_paths_in_text(str(item))) for item in items]
        return Panel(
            "\n".join(f"- {line}" for line in lines),
            title=title,
            subtitle=f"{len(lines)} total",
            border_style=style,
            padding=(0, 1),
        )
