from perm_reconcile.duplicates import duplicate_pairs, find_duplicates
from perm_reconcile.models import RuleAction, Scope
from perm_reconcile.rules.patterns import parse_rule_text


def _rule(text, action=RuleAction.ALLOW, scope=Scope.PROJECT_SHARED, position=0):
    return parse_rule_text(text, action=action, scope=scope, position=position)


def test_cross_scope_duplicate_removes_less_specific_copy() -> None:
    shared = _rule("Bash(npm test)", scope=Scope.PROJECT_SHARED)
    local = _rule("Bash(npm test)", scope=Scope.PROJECT_LOCAL)

    pairs = duplicate_pairs([shared, local])

    assert pairs == [(shared, local)]


def test_exact_duplicate_in_one_scope_keeps_first_entry() -> None:
    first = _rule("Bash(npm test)", position=0)
    second = _rule("Bash(npm test)", position=3)

    assert duplicate_pairs([second, first]) == [(second, first)]


def test_covered_rule_in_same_scope_is_redundant() -> None:
    broad = _rule("Bash(git *)", position=0)
    narrow = _rule("Bash(git diff)", position=1)
    assert find_duplicates([broad, narrow]) == {narrow}


def test_broader_rule_at_less_specific_scope_is_kept() -> None:
    user = _rule("Bash(git *)", scope=Scope.USER)
    local = _rule("Bash(git diff)", scope=Scope.PROJECT_LOCAL)
    assert find_duplicates([user, local]) == set()


def test_different_actions_are_never_duplicates() -> None:
    allow = _rule("Bash(npm test)", action=RuleAction.ALLOW)
    deny = _rule("Bash(npm test)", action=RuleAction.DENY)
    assert find_duplicates([allow, deny]) == set()


def test_equivalent_spellings_are_duplicates() -> None:
    legacy = _rule("Bash(npm run:*)", position=0)
    modern = _rule("Bash(npm run *)", position=1)
    assert duplicate_pairs([legacy, modern]) == [(modern, legacy)]


def test_project_copies_collapse_onto_local_copy() -> None:
    local = _rule("Bash(npm test)", scope=Scope.PROJECT_LOCAL)
    shared = _rule("Bash(npm test)", scope=Scope.PROJECT_SHARED)
    user = _rule("Bash(npm test)", scope=Scope.USER)

    pairs = dict(duplicate_pairs([user, shared, local]))

    assert pairs == {shared: local}


def test_user_rule_is_never_removed_for_a_project_copy() -> None:
    user = _rule("Bash(npm test)", scope=Scope.USER)
    shared = _rule("Bash(npm test)", scope=Scope.PROJECT_SHARED)
    local = _rule("Bash(npm *)", scope=Scope.PROJECT_LOCAL)

    assert find_duplicates([user, shared, local]) == {shared}


def test_duplicates_within_user_scope_are_still_removed() -> None:
    first = _rule("Bash(npm test)", scope=Scope.USER, position=0)
    second = _rule("Bash(npm test)", scope=Scope.USER, position=1)

    assert duplicate_pairs([first, second]) == [(second, first)]
