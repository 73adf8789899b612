from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

from perm_reconcile.models import ChangeKind, PlannedChange, Rule, RuleAction, Scope
from perm_reconcile.rules.parser import permission_lists, render_payload
from perm_reconcile.rules.repository import SettingsRepository
from perm_reconcile.scopes import ScopeLocator

logger = logging.getLogger(__name__)


@dataclass
class ScopeDocument:
    """Pending edits for one settings file, keyed by original list positions."""

    repository: SettingsRepository
    payload: dict[str, Any]
    lists: dict[RuleAction, list[Any]]
    replaced: dict[tuple[RuleAction, int], str] = field(default_factory=dict)
    removed: set[tuple[RuleAction, int]] = field(default_factory=set)
    appended: list[tuple[RuleAction, str]] = field(default_factory=list)

    @property
    def dirty(self) -> bool:
        return bool(self.replaced or self.removed or self.appended)

    def check_entry(self, rule: Rule) -> Optional[str]:
        entries = self.lists.get(rule.action, [])
        expected = rule.raw or rule.text
        if rule.position >= len(entries) or entries[rule.position] != expected:
            return (
                f"{self.repository.path} changed since plan: "
                f"{rule.action.value}[{rule.position}] is no longer {expected!r}"
            )
        return None

    def rendered(self) -> dict[str, Any]:
        lists: dict[RuleAction, list[Any]] = {}
        for action, entries in self.lists.items():
            updated: list[Any] = []
            for position, entry in enumerate(entries):
                key = (action, position)
                if key in self.removed:
                    continue
                updated.append(self.replaced.get(key, entry))
            for appended_action, text in self.appended:
                if appended_action == action and text not in updated:
                    updated.append(text)
            lists[action] = updated
        return render_payload(self.payload, lists)


class ExecutionContext:
    def __init__(self, locator: ScopeLocator) -> None:
        self.locator = locator
        self.documents: dict[Scope, ScopeDocument] = {}

    def document(self, scope: Scope) -> ScopeDocument:
        document = self.documents.get(scope)
        if document is None:
            repository = SettingsRepository(self.locator.path_for(scope), scope)
            payload = repository.load_payload()
            document = ScopeDocument(
                repository=repository,
                payload=payload,
                lists=permission_lists(payload),
            )
            self.documents[scope] = document
        return document


class ChangeHandler(Protocol):
    def handle(
        self, change: PlannedChange, context: ExecutionContext
    ) -> tuple[bool, Optional[str]]: ...


class NormalizeHandler:
    def handle(
        self, change: PlannedChange, context: ExecutionContext
    ) -> tuple[bool, Optional[str]]:
        rule = change.rule
        document = context.document(rule.scope)
        failure = document.check_entry(rule)
        if failure is not None:
            return False, failure
        key = (rule.action, rule.position)
        if key in document.removed:
            return False, None
        document.replaced[key] = rule.text
        return True, None


class RemoveHandler:
    def handle(
        self, change: PlannedChange, context: ExecutionContext
    ) -> tuple[bool, Optional[str]]:
        rule = change.rule
        document = context.document(rule.scope)
        failure = document.check_entry(rule)
        if failure is not None:
            return False, failure
        document.removed.add((rule.action, rule.position))
        return True, None


class ConsolidateHandler:
    def handle(
        self, change: PlannedChange, context: ExecutionContext
    ) -> tuple[bool, Optional[str]]:
        if not change.sources:
            return False, f"Consolidation without sources: {change.rule.text}"
        # All sources are verified before any edit is staged.
        for source in change.sources:
            failure = context.document(source.scope).check_entry(source)
            if failure is not None:
                return False, failure
        for source in change.sources:
            context.document(source.scope).removed.add((source.action, source.position))
        target = context.document(change.rule.scope)
        target.appended.append((change.rule.action, change.rule.text))
        return True, None


class ReconcileExecutor:
    def __init__(self, locator: ScopeLocator) -> None:
        self.locator = locator
        self.handlers: dict[ChangeKind, ChangeHandler] = {
            ChangeKind.NORMALIZE: NormalizeHandler(),
            ChangeKind.REMOVE: RemoveHandler(),
            ChangeKind.CONSOLIDATE: ConsolidateHandler(),
        }
        self.backups: list[Path] = []

    def execute(
        self, changes: Iterable[PlannedChange]
    ) -> tuple[int, int, list[str]]:
        applied = 0
        failed = 0
        failures: list[str] = []
        context = ExecutionContext(self.locator)

        # Removals first so a later normalize of the same entry is skipped.
        ordered = sorted(
            changes, key=lambda change: change.kind != ChangeKind.REMOVE
        )
        for change in ordered:
            try:
                handler = self.handlers.get(change.kind)
                if handler is None:
                    failed += 1
                    failures.append(f"Unknown change kind: {change.kind.value}")
                    continue

                changed, failure = handler.handle(change, context)
                if failure is not None:
                    failed += 1
                    failures.append(failure)
                    continue
                if changed:
                    applied += 1
            except Exception as exc:
                failed += 1
                failures.append(
                    f"{change.kind.value} failed for {change.rule.describe()}: {exc}"
                )

        pending: list[tuple[Scope, ScopeDocument, dict[str, Any]]] = []
        rejected = False
        for scope, document in context.documents.items():
            if not document.dirty:
                continue
            try:
                payload = document.rendered()
                document.repository.check_writable(payload)
            except Exception as exc:
                rejected = True
                failed += 1
                failures.append(f"write failed for {scope.value}: {exc}")
                continue
            pending.append((scope, document, payload))

        if rejected:
            failures.append("no settings files written")
            logger.debug("%d change(s) not written, %d failed", applied, failed)
            return 0, failed, failures

        # Files gaining a consolidated wildcard go first so a failed write
        # never leaves its sources removed.
        pending.sort(key=lambda item: not item[1].appended)
        for index, (scope, document, payload) in enumerate(pending):
            try:
                self.backups.append(document.repository.save_payload(payload))
            except Exception as exc:
                failed += 1
                failures.append(f"write failed for {scope.value}: {exc}")
                skipped = [item[0].value for item in pending[index + 1 :]]
                if skipped:
                    failures.append(f"not written: {', '.join(skipped)}")
                break

        logger.debug("applied %d change(s), %d failed", applied, failed)
        return applied, failed, failures


def execute_apply(
    changes: Iterable[PlannedChange], locator: ScopeLocator
) -> tuple[int, int, list[str]]:
    return ReconcileExecutor(locator).execute(changes)
