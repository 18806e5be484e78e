"""Error types and process exit codes."""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitwt.git import CommandResult


class ExitCode(IntEnum):
    """Documented exit statuses so wrapper scripts can branch on outcome."""

    OK = 0
    FAILURE = 1
    USAGE = 2
    NOTHING_TO_SELECT = 3
    INVALID_SELECTION = 4
    LOCK_TIMEOUT = 75
    CANCELLED = 130


class GitWtError(Exception):
    """Base error. Carries its own message and an optional remediation hint."""

    exit_code: int = ExitCode.FAILURE

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


class NotInRepository(GitWtError):
    def __init__(self, path: str | None = None):
        where = f" ({path})" if path else ""
        super().__init__(f"Not in a git repository{where}")


class GitCommandError(GitWtError):
    """An external git invocation exited non-zero."""

    def __init__(self, result: CommandResult, message: str | None = None):
        detail = result.stderr.strip() or result.stdout.strip()
        super().__init__(message or f"git {' '.join(result.args[1:])} failed", hint=None)
        self.result = result
        self.detail = detail


class WorktreeNotFound(GitWtError):
    pass


class InvalidBranchName(GitWtError):
    pass


class NothingToSelect(GitWtError):
    exit_code = ExitCode.NOTHING_TO_SELECT

    def __init__(self, message: str = "Nothing to select"):
        super().__init__(message)


class SelectionCancelled(GitWtError):
    exit_code = ExitCode.CANCELLED

    def __init__(self, message: str = "Cancelled"):
        super().__init__(message)


class InvalidSelectionInput(GitWtError):
    """Numbered-prompt input that is not a valid 1-based index list."""

    exit_code = ExitCode.INVALID_SELECTION


class LockTimeout(GitWtError):
    exit_code = ExitCode.LOCK_TIMEOUT

    def __init__(self, lock_path: str, timeout: float):
        super().__init__(
            "Another git-wt operation is in progress",
            hint=(
                "Wait for the other operation to complete. If no git-wt process is running, "
                f"remove the stale lock at {lock_path}"
            ),
        )
        self.lock_path = lock_path
        self.timeout = timeout


class NotATerminal(GitWtError):
    """Raw mode could not be entered; callers switch to numbered selection."""


class DecodeTimeout(GitWtError):
    """An escape sequence did not complete within the continuation timeout."""

    def __init__(self, message: str = "Incomplete escape sequence"):
        super().__init__(message)


class ControlChannelUnavailable(GitWtError):
    """Writing to the reserved control descriptor failed."""


class UsageError(GitWtError):
    """Arguments are missing or inconsistent for the requested mode."""

    exit_code = ExitCode.USAGE
