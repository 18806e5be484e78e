"""Worktree service - discovery, naming and locked mutations."""

from __future__ import annotations

import contextlib
import logging
import os
import re
import shutil
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from gitwt import git
from gitwt.config import Config
from gitwt.errors import GitWtError, InvalidBranchName, WorktreeNotFound
from gitwt.git import RepoInfo, Worktree
from gitwt.lock import LockHandle, LockManager

logger = logging.getLogger("gitwt.worktrees")

MAIN_ALIASES = {"main", "master", "[main]"}
MAIN_DISPLAY_NAME = "[main]"
METADATA_DIRNAME = "git-wt"
MAX_BRANCH_LENGTH = 250
RESERVED_BRANCH_NAMES = {"HEAD", "ORIG_HEAD", "FETCH_HEAD", "MERGE_HEAD", "refs", "remotes"}
_FORBIDDEN_BRANCH_CHARS = re.compile(r"[\s~^:?*\[\\`;$&|()<>{}'\"]")


def validate_branch_name(name: str) -> None:
    """Raise InvalidBranchName for names git or the shell would mangle."""

    def fail(reason: str) -> None:
        raise InvalidBranchName(f"Invalid branch name '{name}': {reason}")

    if not name:
        fail("name is empty")
    if len(name) > MAX_BRANCH_LENGTH:
        fail(f"longer than {MAX_BRANCH_LENGTH} characters")
    if name.startswith("-"):
        fail("cannot start with '-'")
    if name.startswith("/") or name.endswith("/"):
        fail("cannot start or end with '/'")
    if name in RESERVED_BRANCH_NAMES:
        fail("reserved name")
    if ".." in name or "/." in name or name.startswith("."):
        fail("cannot contain '..' or path components starting with '.'")
    if name.endswith(".lock"):
        fail("cannot end with '.lock'")
    if "@{" in name:
        fail("cannot contain '@{'")
    match = _FORBIDDEN_BRANCH_CHARS.search(name)
    if match:
        fail(f"contains forbidden character {match.group()!r}")


@dataclass(frozen=True)
class WorktreeEntry:
    """A worktree with the data needed to show it in a menu."""

    worktree: Worktree
    display_name: str
    modified_at: float

    @property
    def path(self) -> Path:
        return self.worktree.path


class WorktreeService:
    """Operations on the worktrees of one repository."""

    def __init__(self, config: Config, cwd: Path | None = None, repo: RepoInfo | None = None):
        self._config = config
        self._cwd = Path(cwd or Path.cwd()).resolve()
        self._repo = repo or git.get_repo_info(self._cwd)
        self._lock = LockManager(
            self._repo.common_dir / METADATA_DIRNAME,
            stale_after=float(config.stale_lock_seconds),
        )

    @property
    def repo(self) -> RepoInfo:
        return self._repo

    @property
    def lock_manager(self) -> LockManager:
        return self._lock

    @property
    def trees_dir(self) -> Path:
        """Parent directory for new worktrees."""
        return self.resolve_parent_dir(self._config.parent_dir)

    def resolve_parent_dir(self, template: str | None) -> Path:
        if not template:
            return self._repo.main_root.parent / f"{self._repo.name}-trees"
        path = Path(os.path.expanduser(template.replace("{repo}", self._repo.name)))
        if not path.is_absolute():
            path = self._repo.main_root / path
        return Path(os.path.normpath(path))

    def worktree_path_for(self, branch: str, parent_dir: str | None = None) -> Path:
        base = self.resolve_parent_dir(parent_dir) if parent_dir else self.trees_dir
        return base / branch

    def display_name(self, worktree: Worktree) -> str:
        if worktree.is_main:
            return MAIN_DISPLAY_NAME
        try:
            return worktree.path.relative_to(self.trees_dir).as_posix()
        except ValueError:
            return worktree.path.name

    def worktrees(self) -> list[Worktree]:
        return [wt for wt in git.list_worktrees(cwd=self._repo.root) if not wt.is_bare]

    def entries(self, exclude_current: bool = False) -> list[WorktreeEntry]:
        """Worktrees with display data, most recently modified first."""
        worktrees = self.worktrees()
        current = self.current(worktrees) if exclude_current else None
        result = []
        for wt in worktrees:
            if current is not None and wt == current:
                continue
            try:
                mtime = wt.path.stat().st_mtime
            except OSError:
                mtime = 0.0
            result.append(WorktreeEntry(worktree=wt, display_name=self.display_name(wt), modified_at=mtime))
        result.sort(key=lambda e: e.modified_at, reverse=True)
        return result

    def current(self, worktrees: list[Worktree] | None = None) -> Worktree | None:
        """The worktree containing cwd. Nested worktrees resolve to the deepest."""
        containing = [wt for wt in (worktrees or self.worktrees()) if wt.contains(self._cwd)]
        if not containing:
            return None
        return max(containing, key=lambda wt: len(wt.path.parts))

    def find(self, name: str) -> Worktree:
        """Resolve a user-supplied name to a worktree.

        Raises:
            WorktreeNotFound: with similar branch names as the hint
        """
        worktrees = self.worktrees()
        if name in MAIN_ALIASES:
            for wt in worktrees:
                if wt.is_main:
                    return wt
        for wt in worktrees:
            if wt.branch == name:
                return wt
        for wt in worktrees:
            if wt.path.as_posix().endswith("/" + name.strip("/")):
                return wt

        lowered = name.lower()
        similar = sorted(wt.branch for wt in worktrees if lowered in wt.branch.lower() or wt.branch.lower() in lowered)
        hint = f"Did you mean: {', '.join(similar)}" if similar else "Run 'git-wt list' to see available worktrees"
        raise WorktreeNotFound(f"Worktree '{name}' not found", hint=hint)

    @contextlib.contextmanager
    def locked(self, timeout: float | None = None) -> Iterator[LockHandle]:
        """Hold the repository lock. Raises LockTimeout."""
        wait = float(self._config.lock_timeout) if timeout is None else timeout
        with self._lock.acquire(wait) as handle:
            yield handle

    def create(
        self, branch: str, base: str | None = None, parent_dir: str | None = None, timeout: float | None = None
    ) -> Path:
        """Create a worktree (and branch if needed), returning its path."""
        validate_branch_name(branch)
        path = self.worktree_path_for(branch, parent_dir)
        if path.exists():
            raise GitWtError(f"Directory already exists: {path}", hint="Choose another branch name or remove it")

        root = self._repo.root
        with self.locked(timeout):
            path.parent.mkdir(parents=True, exist_ok=True)
            exists = git.branch_exists(branch, cwd=root)
            git.add_worktree(path, branch, create_branch=not exists, base=None if exists else base, cwd=root)
        logger.debug("Created worktree %s for %s", path, branch)

        self.copy_config_files(self._repo.main_root, path)
        return path

    def copy_config_files(self, src_root: Path, dst_root: Path) -> list[str]:
        """Copy configured untracked files into a new worktree. Returns names copied."""
        copied = []
        for name in self._config.copy_file_list:
            src = src_root / name
            dst = dst_root / name
            if not src.exists():
                continue
            try:
                if src.is_dir():
                    shutil.copytree(src, dst, dirs_exist_ok=True)
                else:
                    dst.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(src, dst)
            except OSError as exc:
                logger.warning("Could not copy %s: %s", name, exc)
                continue
            copied.append(name)
        return copied

    def remove(
        self, worktree: Worktree, *, force: bool = False, delete_branch: bool = False, timeout: float | None = None
    ) -> None:
        if worktree.is_main:
            raise GitWtError("Cannot remove the main worktree")
        if worktree == self.current():
            raise GitWtError(
                f"Cannot remove the current worktree: {worktree.path}",
                hint="Switch to another worktree first (git-wt go main)",
            )
        root = self._repo.main_root
        with self.locked(timeout):
            git.remove_worktree(worktree.path, force=force, cwd=root)
            if delete_branch and not worktree.is_detached:
                git.delete_branch(worktree.branch, force=force, cwd=root)
        logger.debug("Removed worktree %s", worktree.path)

    def stale_entries(self) -> list[Worktree]:
        """Worktrees whose directory vanished or whose branch was deleted."""
        branches = git.local_branches(cwd=self._repo.root)
        stale = []
        for wt in self.worktrees():
            if wt.is_main:
                continue
            if not wt.path.exists() or (not wt.is_detached and wt.branch not in branches):
                stale.append(wt)
        return stale

    def clean(
        self, worktrees: list[Worktree], *, force: bool = False, timeout: float | None = None
    ) -> list[Worktree]:
        """Remove the given worktrees and prune administrative data."""
        removed = []
        root = self._repo.main_root
        current = self.current()
        with self.locked(timeout):
            for wt in worktrees:
                if wt == current:
                    logger.warning("Skipping current worktree %s", wt.path)
                    continue
                if wt.path.exists():
                    git.remove_worktree(wt.path, force=force, cwd=root)
                removed.append(wt)
            git.prune_worktrees(cwd=root)
        return removed
