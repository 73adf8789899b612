import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from perm_reconcile.config import ReconcilerConfig, load_config
from perm_reconcile.conflicts import effective_rule
from perm_reconcile.errors import ReconcileAppError
from perm_reconcile.executor import ReconcileExecutor
from perm_reconcile.models import ReconcilePlan
from perm_reconcile.planner import ReconcilePlanner
from perm_reconcile.rules.normalize import normalize
from perm_reconcile.scopes import ScopeLocator, load_scopes
from perm_reconcile.tui import ReconcileConsoleUI
from perm_reconcile.tui.change_selector import (
    ChangeSelectorApp,
    filter_changes_by_selection,
)

logger = logging.getLogger(__name__)


def _project_option(func):
    return click.option(
        "--project",
        "project",
        type=click.Path(path_type=Path, file_okay=False),
        default=None,
        help="Project root holding .claude/ (defaults to the current directory).",
    )(func)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _config_from_obj(obj: Dict[str, Any]) -> ReconcilerConfig:
    return obj["config"]


def _locator(project: Optional[Path]) -> ScopeLocator:
    return ScopeLocator(project_root=project)


def _build_plan(config: ReconcilerConfig, locator: ScopeLocator) -> ReconcilePlan:
    try:
        return ReconcilePlanner(config=config).build_for(locator)
    except Exception as exc:
        raise click.ClickException(f"Fatal: {exc}")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Log planning details.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Reconciler config YAML (defaults to the XDG config location).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[Path]) -> None:
    """Reconcile allow/ask/deny permission rules across settings scopes."""
    _configure_logging(verbose)
    try:
        config = load_config(config_path)
    except ReconcileAppError as exc:
        raise click.ClickException(str(exc))
    ctx.obj = {"config": config}


@cli.command(help="Build and print a dry-run reconciliation plan.")
@_project_option
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON.")
@click.pass_obj
def plan(obj: Dict[str, Any], project: Optional[Path], as_json: bool) -> None:
    plan_result = _build_plan(_config_from_obj(obj), _locator(project))

    if as_json:
        click.echo(json.dumps(plan_result.as_dict(), indent=2))
    else:
        ReconcileConsoleUI(Console()).render_plan(plan_result, mode="plan")

    if plan_result.errors:
        raise click.exceptions.Exit(1)


@cli.command(help="Apply planned changes to the settings files.")
@_project_option
@click.option(
    "--confirm-medium",
    is_flag=True,
    help="Allow medium-risk consolidations to apply automatically.",
)
@click.option(
    "-i",
    "--interactive",
    is_flag=True,
    help="Pick the changes to apply; picking a medium-risk change confirms it.",
)
@click.pass_obj
def apply(
    obj: Dict[str, Any],
    project: Optional[Path],
    confirm_medium: bool,
    interactive: bool,
) -> None:
    ui = ReconcileConsoleUI(Console())
    config = _config_from_obj(obj).with_confirmation(confirm_medium)
    locator = _locator(project)
    plan_result = _build_plan(config, locator)

    ui.render_plan(plan_result, mode="apply")

    if plan_result.errors:
        raise click.ClickException(
            "Apply aborted due to settings errors above."
        )

    if interactive:
        selected = ChangeSelectorApp(plan_result).run() or []
        changes = filter_changes_by_selection(plan_result, selected)
        if not changes:
            ui.render_selection_cancelled()
            return
    else:
        changes = plan_result.auto_changes()

    if not changes:
        ui.render_apply_result(applied=0, failed=0, failures=[])
        return

    executor = ReconcileExecutor(locator)
    applied, failed, failures = executor.execute(changes)
    ui.render_apply_result(applied, failed, failures, backups=len(executor.backups))

    if failed:
        raise click.exceptions.Exit(1)


@cli.command(help="Show which rule decides a tool invocation.")
@click.argument("tool")
@click.argument("command", required=False, default="")
@_project_option
@click.pass_obj
def check(obj: Dict[str, Any], tool: str, command: str, project: Optional[Path]) -> None:
    config = _config_from_obj(obj)
    loaded = load_scopes(_locator(project), known_tools=config.known_tools)
    if loaded.errors:
        raise click.ClickException("; ".join(str(item) for item in loaded.errors))

    rules = [
        normalize(rule)
        for rule_set in loaded.rule_sets.values()
        for rule in rule_set.rules
    ]
    rule = effective_rule(rules, tool, command)
    logger.debug("checked %s(%s) against %d rules", tool, command, len(rules))
    ReconcileConsoleUI(Console()).render_check(tool, command, rule)


@cli.command(help="List the settings file behind each scope.")
@_project_option
@click.pass_obj
def scopes(obj: Dict[str, Any], project: Optional[Path]) -> None:
    config = _config_from_obj(obj)
    loaded = load_scopes(_locator(project), known_tools=config.known_tools)
    ReconcileConsoleUI(Console()).render_scopes(
        loaded.sources, [*loaded.aliases, *loaded.errors]
    )


def main() -> int:
    try:
        cli(standalone_mode=False)
    except click.exceptions.Exit as exc:
        code = exc.exit_code
        return code if isinstance(code, int) else 1
    except click.ClickException as exc:
        exc.show()
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
