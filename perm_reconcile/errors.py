from pathlib import Path
from typing import Optional

from perm_reconcile.models import Scope


class ReconcileAppError(Exception):
    """Base user-facing application error."""


class SettingsFileError(ReconcileAppError):
    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{message}: {path}")


class MissingSettingsFileError(SettingsFileError):
    def __init__(self, path: Path) -> None:
        super().__init__(path=path, message="Missing settings file")


class InvalidJsonFormatError(SettingsFileError):
    def __init__(self, path: Path, detail: str) -> None:
        self.detail = detail
        super().__init__(path=path, message=f"Invalid JSON format ({detail})")


class InvalidSettingsSchemaError(SettingsFileError):
    def __init__(self, path: Path, detail: str) -> None:
        self.detail = detail
        super().__init__(path=path, message=f"Invalid settings schema ({detail})")


class InvalidConfigError(SettingsFileError):
    def __init__(self, path: Path, detail: str) -> None:
        self.detail = detail
        super().__init__(path=path, message=f"Invalid reconciler config ({detail})")


class ReconcileFinding(ReconcileAppError):
    """Non-fatal problem reported alongside a reconciliation result."""


class InvalidRuleError(ReconcileFinding):
    def __init__(
        self,
        raw: str,
        detail: str,
        scope: Optional[Scope] = None,
        action: Optional[str] = None,
    ) -> None:
        self.raw = raw
        self.detail = detail
        self.scope = scope
        self.action = action
        where = f" [{scope.value}:{action}]" if scope is not None and action else ""
        super().__init__(f"Invalid rule{where} {raw!r} ({detail})")


class AmbiguousConsolidationError(ReconcileFinding):
    def __init__(self, candidate_text: str, failed_checks: list[str]) -> None:
        self.candidate_text = candidate_text
        self.failed_checks = failed_checks
        super().__init__(
            f"Consolidation to {candidate_text} needs manual review "
            f"({', '.join(failed_checks)})"
        )


class ScopeAliasDetectedError(ReconcileFinding):
    def __init__(self, scopes: list[Scope], path: Path) -> None:
        self.scopes = scopes
        self.path = path
        names = ", ".join(scope.value for scope in scopes)
        super().__init__(f"Scopes {names} resolve to the same settings file: {path}")
