"""Settings file access for one scope."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from jsonschema import Draft202012Validator

from perm_reconcile.errors import (
    InvalidJsonFormatError,
    InvalidRuleError,
    InvalidSettingsSchemaError,
    MissingSettingsFileError,
)
from perm_reconcile.models import RuleSet, Scope
from perm_reconcile.rules.parser import parse_rule_set
from perm_reconcile.utils import backup_file, read_json, write_json

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "settings.schema.json"

_SCHEMA_CACHE: dict[str, dict[str, Any]] = {}


def load_settings_schema(path: Path = SCHEMA_PATH) -> dict[str, Any]:
    key = str(path.resolve())
    cached = _SCHEMA_CACHE.get(key)
    if cached is not None:
        return cached
    schema = json.loads(path.read_text(encoding="utf-8"))
    _SCHEMA_CACHE[key] = schema
    return schema


def format_schema_error(error: Any) -> str:
    path = ".".join([str(part) for part in error.path])
    return f"{error.message} at {path}" if path else str(error.message)


class SettingsRepository:
    def __init__(
        self,
        path: Path,
        scope: Scope,
        validator: Optional[Draft202012Validator] = None,
    ) -> None:
        self._path = path
        self._scope = scope
        self._validator = validator or Draft202012Validator(load_settings_schema())

    @property
    def path(self) -> Path:
        return self._path

    @property
    def scope(self) -> Scope:
        return self._scope

    def exists(self) -> bool:
        return self._path.exists()

    def load_payload(self) -> dict[str, Any]:
        if not self._path.exists() or self._path.stat().st_size == 0:
            return {}
        try:
            payload = read_json(self._path)
        except json.JSONDecodeError as exc:
            raise InvalidJsonFormatError(self._path, str(exc)) from exc
        self.validate(payload)
        return payload

    def validate(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            raise InvalidSettingsSchemaError(self._path, "must be a JSON object")
        error = next(iter(self._validator.iter_errors(payload)), None)
        if error is not None:
            raise InvalidSettingsSchemaError(self._path, format_schema_error(error))

    def load_rule_set(
        self, known_tools: Iterable[str] = ()
    ) -> tuple[RuleSet, list[InvalidRuleError]]:
        payload = self.load_payload()
        rule_set, invalid = parse_rule_set(
            payload, scope=self._scope, path=self._path, known_tools=known_tools
        )
        logger.debug(
            "loaded %d rules (%d invalid) for %s from %s",
            len(rule_set.rules),
            len(invalid),
            self._scope.value,
            self._path,
        )
        return rule_set, invalid

    def check_writable(self, payload: dict[str, Any]) -> None:
        if not self._path.exists():
            raise MissingSettingsFileError(self._path)
        self.validate(payload)

    def save_payload(self, payload: dict[str, Any]) -> Path:
        self.check_writable(payload)
        backup = backup_file(self._path)
        write_json(self._path, payload)
        logger.info("wrote %s (backup %s)", self._path, backup)
        return backup
