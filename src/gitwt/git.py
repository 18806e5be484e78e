"""Git invocation and worktree discovery."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from gitwt.errors import GitCommandError, NotInRepository

logger = logging.getLogger("gitwt.git")


@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured output of an external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_command(args: list[str] | tuple[str, ...], cwd: Path | None = None) -> CommandResult:
    """Run a command and capture its output. Never raises on non-zero exit."""
    logger.debug("run: %s (cwd=%s)", " ".join(args), cwd or ".")
    try:
        result = subprocess.run(
            list(args),
            cwd=cwd,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        return CommandResult(tuple(args), 127, "", str(exc))
    return CommandResult(tuple(args), result.returncode, result.stdout, result.stderr)


def run_git(*args: str, cwd: Path | None = None) -> CommandResult:
    return run_command(("git", *args), cwd=cwd)


def git_output(*args: str, cwd: Path | None = None) -> str:
    """Run git and return stripped stdout, raising GitCommandError on failure."""
    result = run_git(*args, cwd=cwd)
    if not result.ok:
        raise GitCommandError(result)
    return result.stdout.strip()


@dataclass(frozen=True)
class Worktree:
    """One entry of `git worktree list --porcelain`."""

    path: Path
    branch: str
    commit: str
    is_bare: bool = False
    is_detached: bool = False
    is_main: bool = False

    def contains(self, path: Path) -> bool:
        """True if path is this worktree or lies inside it."""
        path = Path(path)
        return path == self.path or self.path in path.parents


def parse_worktree_porcelain(text: str) -> list[Worktree]:
    """Parse porcelain output. The first record is the main worktree."""
    worktrees: list[Worktree] = []
    record: dict[str, str | bool] = {}

    def flush() -> None:
        if "path" not in record:
            return
        branch = str(record.get("branch", "HEAD"))
        if branch.startswith("refs/heads/"):
            branch = branch[len("refs/heads/") :]
        worktrees.append(
            Worktree(
                path=Path(str(record["path"])),
                branch=branch,
                commit=str(record.get("commit", "unknown")),
                is_bare=bool(record.get("bare", False)),
                is_detached=bool(record.get("detached", False)),
                is_main=not worktrees,
            )
        )

    for line in text.splitlines():
        if line.startswith("worktree "):
            flush()
            record = {"path": line[len("worktree ") :]}
        elif line.startswith("HEAD "):
            record["commit"] = line[len("HEAD ") :]
        elif line.startswith("branch "):
            record["branch"] = line[len("branch ") :]
        elif line == "bare":
            record["bare"] = True
        elif line == "detached":
            record["detached"] = True
    flush()
    return worktrees


def list_worktrees(cwd: Path | None = None) -> list[Worktree]:
    return parse_worktree_porcelain(git_output("worktree", "list", "--porcelain", cwd=cwd))


@dataclass(frozen=True)
class RepoInfo:
    """Location of the current worktree and the repository it belongs to."""

    root: Path
    common_dir: Path
    main_root: Path
    name: str
    is_worktree: bool


def get_repo_info(cwd: Path | None = None) -> RepoInfo:
    """Describe the repository containing cwd.

    Raises NotInRepository outside a git work tree.
    """
    path = Path(cwd) if cwd else Path.cwd()
    top = run_git("rev-parse", "--show-toplevel", cwd=path)
    common = run_git("rev-parse", "--git-common-dir", cwd=path)
    if not top.ok or not common.ok:
        raise NotInRepository(str(path))

    root = Path(top.stdout.strip()).resolve()
    common_dir = Path(common.stdout.strip())
    # --git-common-dir may return relative path like ".git"
    if not common_dir.is_absolute():
        common_dir = (path / common_dir).resolve()
    main_root = common_dir.parent
    return RepoInfo(
        root=root,
        common_dir=common_dir,
        main_root=main_root,
        name=main_root.name,
        is_worktree=root != main_root,
    )


def add_worktree(
    path: Path, branch: str, *, create_branch: bool, base: str | None = None, cwd: Path | None = None
) -> None:
    args = ["worktree", "add"]
    if create_branch:
        args += ["-b", branch, str(path)]
        if base:
            args.append(base)
    else:
        args += [str(path), branch]
    git_output(*args, cwd=cwd)


def remove_worktree(path: Path, *, force: bool = False, cwd: Path | None = None) -> None:
    args = ["worktree", "remove"]
    if force:
        args.append("--force")
    git_output(*args, str(path), cwd=cwd)


def prune_worktrees(cwd: Path | None = None) -> None:
    git_output("worktree", "prune", cwd=cwd)


def delete_branch(branch: str, *, force: bool = False, cwd: Path | None = None) -> None:
    git_output("branch", "-D" if force else "-d", branch, cwd=cwd)


def branch_exists(branch: str, cwd: Path | None = None) -> bool:
    return run_git("show-ref", "--verify", "--quiet", f"refs/heads/{branch}", cwd=cwd).ok


def local_branches(cwd: Path | None = None) -> set[str]:
    output = git_output("for-each-ref", "--format=%(refname:short)", "refs/heads/", cwd=cwd)
    return {line.strip() for line in output.splitlines() if line.strip()}
