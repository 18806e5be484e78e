"""Shell function generator for directory navigation.

A child process cannot change its parent's directory, so the generated
function runs git-wt with GWT_USE_FD3=1, routes descriptor 3 into a capture
and the normal output to the terminal, then evaluates the captured line only
if it is a `cd` command and git-wt succeeded.
"""

from __future__ import annotations

import re
import shlex
import shutil

from gitwt.errors import UsageError

_ALIAS_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")

# Commands whose result is a directory to enter
NAVIGATING_COMMANDS = ("go", "new")


def find_binary() -> str:
    return shutil.which("git-wt") or "git-wt"


class InvalidAliasName(UsageError):
    pass


def render_alias(
    name: str,
    binary: str | None = None,
    *,
    no_tty: bool = False,
    non_interactive: bool = False,
    no_color: bool = False,
    parent_dir: str | None = None,
    debug: bool = False,
) -> str:
    """Return the source of a POSIX shell function named `name`."""
    if not _ALIAS_NAME.match(name):
        raise InvalidAliasName(
            f"Invalid alias name: {name!r}",
            hint="Use letters, digits, '_' or '-', not starting with a digit",
        )
    binary = binary or find_binary()

    flags = []
    if no_tty:
        flags.append("--no-tty")
    if non_interactive:
        flags.append("--non-interactive")
    if no_color:
        flags.append("--no-color")

    env_prefix = "GWT_USE_FD3=1"
    if parent_dir:
        # {repo} is expanded by git-wt itself
        env_prefix += f" GWT_PARENT_DIR={shlex.quote(parent_dir)}"

    navigating = "|".join(NAVIGATING_COMMANDS)
    lines = [
        "# Shell function wrapper for git-wt to enable directory navigation",
        f"{name}() {{",
        f"    local git_wt_bin={shlex.quote(binary)}",
        f'    local flags="{" ".join(flags)}"',
        '    case "$1" in',
        f"        {navigating})",
        '            local sub="$1"',
        "            shift",
        "            local cd_cmd exit_code",
        f'            cd_cmd=$({env_prefix} "$git_wt_bin" "$sub" "$@" $flags 3>&1 1>&2)',
        "            exit_code=$?",
    ]
    if debug:
        lines.append("            [ -n \"$cd_cmd\" ] && echo \"[DEBUG] cd_cmd: '$cd_cmd'\" >&2")
    lines += [
        '            case "$cd_cmd" in',
        '                "cd "*) [ "$exit_code" -eq 0 ] && eval "$cd_cmd" ;;',
        "            esac",
        "            return $exit_code",
        "            ;;",
        "        rm)",
        '            "$git_wt_bin" "$@" $flags',
        "            ;;",
        "        *)",
        '            "$git_wt_bin" "$@"',
        "            ;;",
        "    esac",
        "}",
    ]
    return "\n".join(lines) + "\n"
