"""Reconciler configuration loaded from YAML."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from perm_reconcile.constants import APP_NAME, CONFIG_FILENAME
from perm_reconcile.errors import InvalidConfigError
from perm_reconcile.utils import xdg_config_home


@dataclass(frozen=True)
class ReconcilerConfig:
    known_tools: tuple[str, ...] = ()
    high_risk: tuple[str, ...] = ()
    medium_risk: tuple[str, ...] = ()
    confirm_medium: bool = False
    source: Optional[Path] = field(default=None, compare=False)

    def with_confirmation(self, confirm_medium: bool) -> "ReconcilerConfig":
        if not confirm_medium:
            return self
        return replace(self, confirm_medium=True)


def default_config_path() -> Path:
    return xdg_config_home() / APP_NAME / CONFIG_FILENAME


def _string_list(raw: Any, key: str, path: Path) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise InvalidConfigError(path, f"{key} must be a list of strings")
    return tuple(item.strip() for item in raw if item.strip())


def load_config(path: Optional[Path] = None) -> ReconcilerConfig:
    """Load config from ``path`` or the XDG default; missing files give defaults."""
    config_path = path or default_config_path()
    if not config_path.exists():
        if path is not None:
            raise InvalidConfigError(config_path, "file not found")
        return ReconcilerConfig()

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise InvalidConfigError(config_path, str(exc)) from exc
    if not isinstance(raw, dict):
        raise InvalidConfigError(config_path, "top level must be a mapping")

    risk = raw.get("risk") or {}
    if not isinstance(risk, dict):
        raise InvalidConfigError(config_path, "risk must be a mapping")

    confirm = raw.get("confirm_medium", False)
    if not isinstance(confirm, bool):
        raise InvalidConfigError(config_path, "confirm_medium must be a boolean")

    return ReconcilerConfig(
        known_tools=_string_list(raw.get("known_tools"), "known_tools", config_path),
        high_risk=_string_list(risk.get("high"), "risk.high", config_path),
        medium_risk=_string_list(risk.get("medium"), "risk.medium", config_path),
        confirm_medium=confirm,
        source=config_path,
    )
