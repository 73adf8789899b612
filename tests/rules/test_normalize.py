import pytest

from perm_reconcile.models import RuleAction, Scope
from perm_reconcile.rules.normalize import normalize, normalize_with_notes
from perm_reconcile.rules.patterns import compile_pattern, parse_rule_text


def _rule(text: str):
    return parse_rule_text(text, action=RuleAction.ALLOW, scope=Scope.USER)


SAMPLES = [
    "Bash(npm run:*)",
    "Bash(:*)",
    "Bash(git  status )",
    "  Bash(git diff *)  ",
    'Bash(echo "a   b"   c)',
    "Bash(ls*)",
    "Bash",
    "Bash(*)",
    "Read(src/** )",
    "WebFetch(domain:example.com)",
]


def test_legacy_suffix_is_rewritten() -> None:
    normalized, notes = normalize_with_notes(_rule("Bash(npm run:*)"))
    assert normalized.pattern == "npm run *"
    assert notes == ["rewrote deprecated ':*' wildcard"]


def test_bare_legacy_suffix_becomes_star() -> None:
    assert normalize(_rule("Bash(:*)")).pattern == "*"


def test_whitespace_is_cleaned() -> None:
    normalized, notes = normalize_with_notes(_rule("  Bash(git  status )  "))
    assert normalized.text == "Bash(git status)"
    assert "trimmed surrounding whitespace" in notes
    assert "trimmed trailing whitespace" in notes
    assert "collapsed repeated whitespace" in notes


def test_quoted_whitespace_is_untouched() -> None:
    normalized = normalize(_rule('Bash(echo "a   b")'))
    assert normalized.pattern == 'echo "a   b"'


def test_clean_rule_is_returned_unchanged() -> None:
    rule = _rule("Bash(git diff *)")
    normalized, notes = normalize_with_notes(rule)
    assert normalized is rule
    assert notes == []


def test_bash_star_is_not_rewritten_to_bare_tool() -> None:
    assert normalize(_rule("Bash(*)")).text == "Bash(*)"
    assert normalize(_rule("Bash")).text == "Bash"


def test_normalize_keeps_raw_and_position() -> None:
    rule = parse_rule_text(
        "Bash(npm run:*)", action=RuleAction.DENY, scope=Scope.USER, position=4
    )
    normalized = normalize(rule)
    assert normalized.raw == "Bash(npm run:*)"
    assert normalized.position == 4
    assert normalized.action == RuleAction.DENY


@pytest.mark.parametrize("text", SAMPLES)
def test_normalize_is_idempotent(text: str) -> None:
    once = normalize(_rule(text))
    assert normalize(once) == once


@pytest.mark.parametrize("text", SAMPLES)
def test_normalize_preserves_matching(text: str) -> None:
    rule = _rule(text)
    normalized = normalize(rule)
    assert compile_pattern(rule.tool, rule.pattern) == compile_pattern(
        normalized.tool, normalized.pattern
    )
