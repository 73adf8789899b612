"""Tests for SettingsRepository."""

import json
from pathlib import Path

import pytest

from perm_reconcile.errors import (
    InvalidJsonFormatError,
    InvalidSettingsSchemaError,
    MissingSettingsFileError,
)
from perm_reconcile.models import Scope
from perm_reconcile.rules.repository import SettingsRepository


def test_missing_file_is_empty(tmp_path: Path) -> None:
    repo = SettingsRepository(tmp_path / "settings.json", Scope.USER)
    assert not repo.exists()
    assert repo.load_payload() == {}
    rule_set, invalid = repo.load_rule_set()
    assert rule_set.rules == ()
    assert invalid == []


def test_empty_file_is_empty(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("", encoding="utf-8")
    assert SettingsRepository(path, Scope.USER).load_payload() == {}


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(InvalidJsonFormatError) as exc_info:
        SettingsRepository(path, Scope.USER).load_payload()
    assert exc_info.value.path == path


def test_schema_violation_raises(tmp_path: Path, write_json) -> None:
    path = tmp_path / "settings.json"
    write_json(path, {"permissions": {"allow": "Bash(ls)"}})
    with pytest.raises(InvalidSettingsSchemaError) as exc_info:
        SettingsRepository(path, Scope.USER).load_payload()
    assert "permissions.allow" in exc_info.value.detail


def test_non_object_payload_raises(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(InvalidSettingsSchemaError):
        SettingsRepository(path, Scope.USER).load_payload()


def test_load_rule_set_uses_scope_and_path(tmp_path: Path, write_json) -> None:
    path = tmp_path / "settings.local.json"
    write_json(path, {"permissions": {"allow": ["Bash(npm test)", "Nope(x)"]}})
    rule_set, invalid = SettingsRepository(path, Scope.PROJECT_LOCAL).load_rule_set()
    assert rule_set.path == path
    assert [rule.scope for rule in rule_set.rules] == [Scope.PROJECT_LOCAL]
    assert len(invalid) == 1


def test_save_payload_writes_backup(tmp_path: Path, write_json) -> None:
    path = tmp_path / "settings.json"
    write_json(path, {"permissions": {"allow": ["Bash(ls)"]}})
    repo = SettingsRepository(path, Scope.USER)

    backup = repo.save_payload({"permissions": {"allow": []}})

    assert backup.exists()
    assert backup.name.startswith("settings.json.bak-")
    assert json.loads(backup.read_text(encoding="utf-8")) == {
        "permissions": {"allow": ["Bash(ls)"]}
    }
    assert json.loads(path.read_text(encoding="utf-8")) == {"permissions": {"allow": []}}


def test_save_payload_requires_existing_file(tmp_path: Path) -> None:
    repo = SettingsRepository(tmp_path / "settings.json", Scope.USER)
    with pytest.raises(MissingSettingsFileError):
        repo.save_payload({})


def test_save_payload_validates(tmp_path: Path, write_json) -> None:
    path = tmp_path / "settings.json"
    write_json(path, {})
    with pytest.raises(InvalidSettingsSchemaError):
        SettingsRepository(path, Scope.USER).save_payload({"permissions": []})
