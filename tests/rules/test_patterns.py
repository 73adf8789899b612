import pytest

from perm_reconcile.errors import InvalidRuleError
from perm_reconcile.models import RuleAction, Scope
from perm_reconcile.rules.patterns import (
    PROBE,
    PatternKind,
    collapse_unquoted_whitespace,
    compile_pattern,
    covers,
    display_command,
    overlap,
    parse_rule_text,
    pattern_matches,
    rule_covers,
    rule_matches,
    tool_covers,
)


def _rule(text: str, action: RuleAction = RuleAction.ALLOW, scope: Scope = Scope.PROJECT_SHARED):
    return parse_rule_text(text, action=action, scope=scope)


def test_parse_tool_with_pattern() -> None:
    rule = _rule("Bash(git diff *)")
    assert rule.tool == "Bash"
    assert rule.pattern == "git diff *"
    assert rule.raw == "Bash(git diff *)"
    assert rule.text == "Bash(git diff *)"


def test_parse_bare_tool_has_no_pattern() -> None:
    rule = _rule("WebSearch")
    assert rule.pattern is None
    assert rule.text == "WebSearch"


def test_parse_accepts_mcp_and_configured_tools() -> None:
    assert _rule("mcp__github__create_issue").tool == "mcp__github__create_issue"
    rule = parse_rule_text(
        "CustomTool(x)",
        action=RuleAction.ALLOW,
        scope=Scope.USER,
        known_tools=("CustomTool",),
    )
    assert rule.tool == "CustomTool"


@pytest.mark.parametrize(
    ("raw", "detail"),
    [
        ("", "empty rule"),
        ("   ", "empty rule"),
        ("Bash(git diff", "unbalanced parentheses"),
        ("Bash)", "unbalanced parentheses"),
        ("Bash(ls) now", "unexpected text after closing parenthesis"),
        ("Bash()", "empty pattern"),
        ("Bash(echo 'hi)", "unbalanced delimiters: unterminated ' quote"),
        ("Bash(ls [a)", "unbalanced delimiters: unclosed '['"),
        ("ba sh", "malformed tool identifier"),
        ("Frobnicate(x)", "unknown tool 'Frobnicate'"),
    ],
)
def test_parse_rejects_malformed_rules(raw: str, detail: str) -> None:
    with pytest.raises(InvalidRuleError) as exc_info:
        _rule(raw)
    assert exc_info.value.detail == detail
    assert exc_info.value.scope == Scope.PROJECT_SHARED
    assert exc_info.value.action == "allow"


def test_compile_pattern_kinds() -> None:
    assert compile_pattern("Bash", None).kind == PatternKind.ANY
    assert compile_pattern("Bash", "*").kind == PatternKind.ANY
    assert compile_pattern("Bash", ":*").kind == PatternKind.ANY

    exact = compile_pattern("Bash", "git diff")
    assert exact.kind == PatternKind.EXACT
    assert exact.literal == "git diff"

    boundary = compile_pattern("Bash", "git diff *")
    assert boundary.kind == PatternKind.PREFIX
    assert boundary.literal == "git diff"
    assert boundary.has_boundary

    glued = compile_pattern("Bash", "ls*")
    assert glued.kind == PatternKind.PREFIX
    assert glued.literal == "ls"
    assert not glued.has_boundary


def test_legacy_suffix_compiles_like_boundary_wildcard() -> None:
    assert compile_pattern("Bash", "npm run:*") == compile_pattern("Bash", "npm run *")


def test_boundary_wildcard_matches_prefix_and_continuations() -> None:
    pattern = compile_pattern("Bash", "git diff *")
    assert pattern_matches(pattern, "git diff")
    assert pattern_matches(pattern, "git diff --stat")
    assert pattern_matches(pattern, "git  diff   HEAD")
    assert not pattern_matches(pattern, "git diffx")
    assert not pattern_matches(pattern, "git status")


def test_glued_wildcard_is_plain_prefix() -> None:
    pattern = compile_pattern("Bash", "ls*")
    assert pattern_matches(pattern, "ls")
    assert pattern_matches(pattern, "lsof -i")
    assert not pattern_matches(pattern, "cat ls")


def test_exact_pattern_ignores_unquoted_whitespace_runs() -> None:
    pattern = compile_pattern("Bash", "npm  test")
    assert pattern_matches(pattern, "npm test")
    assert pattern_matches(pattern, "npm test  ")
    assert not pattern_matches(pattern, "npm test --watch")


def test_path_wildcards() -> None:
    pattern = compile_pattern("Read", "src/**")
    assert pattern.has_boundary
    assert pattern_matches(pattern, "src/app/main.py")
    assert pattern_matches(pattern, "src")
    assert not pattern_matches(pattern, "srcx/main.py")


def test_collapse_keeps_quoted_whitespace() -> None:
    assert collapse_unquoted_whitespace('echo  "a   b"    c') == 'echo "a   b" c'
    assert collapse_unquoted_whitespace("grep 'x  y'  f") == "grep 'x  y' f"


def test_covers_and_overlap() -> None:
    broad = compile_pattern("Bash", "git *")
    narrow = compile_pattern("Bash", "git diff")
    assert covers(broad, narrow)
    assert not covers(narrow, broad)

    sudo_any = compile_pattern("Bash", "sudo *")
    restart = compile_pattern("Bash", "sudo systemctl restart nginx")
    assert overlap(sudo_any, restart) == "sudo systemctl restart nginx"
    assert overlap(compile_pattern("Bash", "ls"), compile_pattern("Bash", "pwd")) is None


def test_rule_matches_checks_tool() -> None:
    rule = _rule("Bash(git diff *)")
    assert rule_matches(rule, "Bash", "git diff HEAD")
    assert not rule_matches(rule, "Read", "git diff HEAD")


def test_mcp_server_rule_covers_its_tools() -> None:
    server = _rule("mcp__github")
    tool = _rule("mcp__github__create_issue")
    assert tool_covers("mcp__github", "mcp__github__create_issue")
    assert not tool_covers("mcp__github", "mcp__gitlab__create_issue")
    assert rule_matches(server, "mcp__github__create_issue", "")
    assert rule_covers(server, tool)
    assert not rule_covers(tool, server)


def test_display_command_hides_probe_marker() -> None:
    assert display_command(f"git diff {PROBE}") == "git diff …"
