"""Scope file discovery, alias detection and loading."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from perm_reconcile.constants import (
    CLAUDE_DIRNAME,
    LOCAL_SETTINGS_FILENAME,
    SETTINGS_FILENAME,
)
from perm_reconcile.errors import (
    InvalidRuleError,
    ScopeAliasDetectedError,
    SettingsFileError,
)
from perm_reconcile.models import SCOPES_BY_SPECIFICITY, RuleSet, Scope, ScopeSource
from perm_reconcile.rules.repository import SettingsRepository
from perm_reconcile.utils import same_store

logger = logging.getLogger(__name__)


class ScopeLocator:
    def __init__(
        self, project_root: Optional[Path] = None, home: Optional[Path] = None
    ) -> None:
        self.project_root = (project_root or Path.cwd()).expanduser()
        self.home = (home or Path.home()).expanduser()

    def path_for(self, scope: Scope) -> Path:
        if scope == Scope.USER:
            return self.home / CLAUDE_DIRNAME / SETTINGS_FILENAME
        if scope == Scope.PROJECT_SHARED:
            return self.project_root / CLAUDE_DIRNAME / SETTINGS_FILENAME
        return self.project_root / CLAUDE_DIRNAME / LOCAL_SETTINGS_FILENAME

    def paths(self) -> dict[Scope, Path]:
        return {scope: self.path_for(scope) for scope in SCOPES_BY_SPECIFICITY}


def detect_scope_aliases(
    paths: dict[Scope, Path],
) -> tuple[list[ScopeAliasDetectedError], dict[Scope, Scope]]:
    """Find scopes that share one underlying store.

    Returns the findings and a map from each aliased scope to the scope that
    owns the store, which is the most specific scope of the group.
    """
    groups: list[list[Scope]] = []
    for scope in sorted(paths, key=lambda item: item.rank, reverse=True):
        for group in groups:
            if same_store(paths[group[0]], paths[scope]):
                group.append(scope)
                break
        else:
            groups.append([scope])

    findings: list[ScopeAliasDetectedError] = []
    aliases: dict[Scope, Scope] = {}
    for group in groups:
        if len(group) < 2:
            continue
        owner = group[0]
        for alias in group[1:]:
            aliases[alias] = owner
        ordered = sorted(group, key=lambda item: item.rank)
        findings.append(ScopeAliasDetectedError(ordered, paths[owner].resolve()))
    return findings, aliases


@dataclass
class LoadedScopes:
    rule_sets: dict[Scope, RuleSet]
    sources: list[ScopeSource]
    invalid_rules: list[InvalidRuleError] = field(default_factory=list)
    aliases: list[ScopeAliasDetectedError] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)


def load_scopes(
    locator: ScopeLocator, known_tools: Iterable[str] = ()
) -> LoadedScopes:
    paths = locator.paths()
    alias_findings, aliases = detect_scope_aliases(paths)
    extra_tools = tuple(known_tools)

    rule_sets: dict[Scope, RuleSet] = {}
    sources: list[ScopeSource] = []
    invalid: list[InvalidRuleError] = []
    errors: list[Exception] = []
    for scope in SCOPES_BY_SPECIFICITY:
        path = paths[scope]
        sources.append(
            ScopeSource(
                scope=scope,
                path=path,
                exists=path.exists(),
                alias_of=aliases.get(scope),
            )
        )
        if scope in aliases:
            logger.info(
                "%s aliases %s (%s); loading it once",
                scope.value,
                aliases[scope].value,
                path,
            )
            rule_sets[scope] = RuleSet(scope=scope, path=path)
            continue
        try:
            rule_set, bad_rules = SettingsRepository(path, scope).load_rule_set(
                extra_tools
            )
        except SettingsFileError as exc:
            errors.append(exc)
            rule_sets[scope] = RuleSet(scope=scope, path=path)
            continue
        rule_sets[scope] = rule_set
        invalid.extend(bad_rules)

    return LoadedScopes(
        rule_sets=rule_sets,
        sources=sources,
        invalid_rules=invalid,
        aliases=alias_findings,
        errors=errors,
    )
