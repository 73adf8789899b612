from pathlib import Path

from perm_reconcile.errors import InvalidJsonFormatError, ScopeAliasDetectedError
from perm_reconcile.models import Scope
from perm_reconcile.scopes import ScopeLocator, detect_scope_aliases, load_scopes


def test_locator_paths(tmp_path: Path, project_root: Path) -> None:
    locator = ScopeLocator(project_root=project_root)
    assert locator.paths() == {
        Scope.USER: tmp_path / ".claude" / "settings.json",
        Scope.PROJECT_SHARED: project_root / ".claude" / "settings.json",
        Scope.PROJECT_LOCAL: project_root / ".claude" / "settings.local.json",
    }


def test_distinct_files_are_not_aliases(project_root: Path) -> None:
    findings, aliases = detect_scope_aliases(ScopeLocator(project_root).paths())
    assert findings == []
    assert aliases == {}


def test_project_at_home_aliases_user_scope(tmp_path: Path) -> None:
    findings, aliases = detect_scope_aliases(ScopeLocator(project_root=tmp_path).paths())

    assert aliases == {Scope.USER: Scope.PROJECT_SHARED}
    assert len(findings) == 1
    assert findings[0].scopes == [Scope.USER, Scope.PROJECT_SHARED]


def test_symlinked_settings_load_once(
    project_root: Path, user_settings: Path, shared_settings: Path, write_json
) -> None:
    write_json(user_settings, {"permissions": {"allow": ["Bash(npm test)"]}})
    shared_settings.parent.mkdir(parents=True)
    shared_settings.symlink_to(user_settings)

    loaded = load_scopes(ScopeLocator(project_root=project_root))

    assert len(loaded.aliases) == 1
    assert isinstance(loaded.aliases[0], ScopeAliasDetectedError)
    assert loaded.aliases[0].path == user_settings.resolve()
    assert loaded.rule_sets[Scope.USER].rules == ()
    assert [rule.scope for rule in loaded.rule_sets[Scope.PROJECT_SHARED].rules] == [
        Scope.PROJECT_SHARED
    ]
    sources = {source.scope: source for source in loaded.sources}
    assert sources[Scope.USER].alias_of == Scope.PROJECT_SHARED
    assert sources[Scope.PROJECT_LOCAL].exists is False


def test_load_scopes_collects_file_errors(
    project_root: Path, local_settings: Path, shared_settings: Path, write_json
) -> None:
    local_settings.parent.mkdir(parents=True)
    local_settings.write_text("{broken", encoding="utf-8")
    write_json(shared_settings, {"permissions": {"deny": ["Bash(sudo *)", "Bash("]}})

    loaded = load_scopes(ScopeLocator(project_root=project_root))

    assert len(loaded.errors) == 1
    assert isinstance(loaded.errors[0], InvalidJsonFormatError)
    assert loaded.rule_sets[Scope.PROJECT_LOCAL].rules == ()
    assert len(loaded.rule_sets[Scope.PROJECT_SHARED].rules) == 1
    assert len(loaded.invalid_rules) == 1
