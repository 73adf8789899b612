from typing import Final


APP_NAME: Final[str] = "perm-reconcile"

CLAUDE_DIRNAME: Final[str] = ".claude"
SETTINGS_FILENAME: Final[str] = "settings.json"
LOCAL_SETTINGS_FILENAME: Final[str] = "settings.local.json"
CONFIG_FILENAME: Final[str] = "config.yaml"

PERMISSIONS_KEY: Final[str] = "permissions"

# Tools whose patterns are shell command lines.
COMMAND_TOOLS: Final[tuple[str, ...]] = ("Bash",)

# Tools whose patterns are filesystem paths.
PATH_TOOLS: Final[tuple[str, ...]] = (
    "Read",
    "Edit",
    "Write",
    "MultiEdit",
    "NotebookEdit",
    "NotebookRead",
    "Glob",
    "Grep",
    "LS",
)

WRITE_TOOLS: Final[tuple[str, ...]] = ("Edit", "Write", "MultiEdit", "NotebookEdit")

BUILTIN_TOOLS: Final[tuple[str, ...]] = (
    *COMMAND_TOOLS,
    *PATH_TOOLS,
    "WebFetch",
    "WebSearch",
    "Task",
    "TodoWrite",
    "Skill",
    "SlashCommand",
    "BashOutput",
    "KillShell",
    "ExitPlanMode",
)

MCP_TOOL_PREFIX: Final[str] = "mcp__"

COMMAND_SEPARATOR: Final[str] = " "
PATH_SEPARATOR: Final[str] = "/"
WILDCARD: Final[str] = "*"
LEGACY_WILDCARD_SUFFIX: Final[str] = ":*"

SHELL_OPERATORS: Final[tuple[str, ...]] = ("&&", "||", ";", "|")

# Command prefixes, compared token by token against shell segments.
HIGH_RISK_PRIMITIVES: Final[tuple[str, ...]] = (
    "sudo",
    "su",
    "doas",
    "pkexec",
    "chmod",
    "chown",
    "chgrp",
    "rm",
    "rmdir",
    "dd",
    "mkfs",
    "shred",
    "truncate",
    "git reset --hard",
    "git clean",
    "git push --force",
    "git push -f",
    "git branch -D",
    "git checkout --",
    "eval",
    "exec",
    "kill",
    "killall",
    "pkill",
    "reboot",
    "shutdown",
)

MEDIUM_RISK_PRIMITIVES: Final[tuple[str, ...]] = (
    "curl",
    "wget",
    "ssh",
    "scp",
    "sftp",
    "rsync",
    "nc",
    "ncat",
    "telnet",
    "ftp",
    "http",
    "gh",
    "git push",
    "git pull",
    "git fetch",
    "git clone",
    "git remote",
    "docker",
    "kubectl",
    "npm install",
    "npm i",
    "npm publish",
    "npx",
    "pnpm add",
    "pnpm install",
    "yarn add",
    "yarn install",
    "pip install",
    "pip3 install",
    "pipx install",
    "uv add",
    "uv pip install",
    "uvx",
    "poetry add",
    "cargo install",
    "go install",
    "gem install",
    "brew install",
    "apt install",
    "apt-get install",
    "dnf install",
    "yum install",
)

MEDIUM_RISK_TOOLS: Final[tuple[str, ...]] = ("WebFetch", "WebSearch")

# Path patterns that reach outside any project.
UNSCOPED_PATH_PREFIXES: Final[tuple[str, ...]] = ("", "/", "~", "$HOME")

# Interpreters, exec wrappers and runners. With an open-ended argument list
# these can run any command at all.
OPEN_ENDED_HIGH_RISK_PRIMITIVES: Final[tuple[str, ...]] = (
    "python",
    "python3",
    "pypy",
    "pypy3",
    "node",
    "deno",
    "bun",
    "perl",
    "ruby",
    "php",
    "lua",
    "awk",
    "osascript",
    "bash",
    "sh",
    "zsh",
    "dash",
    "ksh",
    "fish",
    "source",
    "env",
    "xargs",
    "find",
    "nohup",
    "timeout",
    "nice",
    "time",
    "watch",
    "command",
    "builtin",
    "npx",
    "bunx",
    "uvx",
    "pipx run",
    "npm exec",
    "pnpm exec",
    "pnpm dlx",
    "yarn dlx",
    "uv run",
    "poetry run",
)

# Leading commands that run the rest of the segment as another command.
WRAPPER_COMMANDS: Final[tuple[str, ...]] = (
    "env",
    "nohup",
    "timeout",
    "nice",
    "time",
    "command",
    "builtin",
    "xargs",
)

FIND_ACTION_FLAGS: Final[tuple[str, ...]] = (
    "-delete",
    "-exec",
    "-execdir",
    "-ok",
    "-okdir",
)
