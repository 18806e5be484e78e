"""Pytest fixtures for git-wt tests."""

import logging
import shutil
import subprocess
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def clear_caches(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Clear the config cache and isolate config/env before each test."""
    from gitwt.config import clear_config_cache

    for name in ("GWT_USE_FD3", "GWT_PARENT_DIR", "GWT_DEBUG", "GWT_NO_COLOR", "GWT_NO_TTY", "GWT_NON_INTERACTIVE", "GWT_LOCK_TIMEOUT", "NO_COLOR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GWT_CONFIG_DIR", str(tmp_path / ".config" / "git-wt"))
    clear_config_cache()
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level

    yield

    # Also clear after test (cleanup); CLI runs reconfigure the root logger
    clear_config_cache()
    root.handlers[:] = handlers
    root.setLevel(level)


def git(*args: str, cwd: Path) -> str:
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A repository at <tmp>/repo on branch main with one commit."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")

    for key in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(key, "Test")
    for key in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(key, "test@example.com")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))

    repo = tmp_path / "repo"
    repo.mkdir()
    git("init", "-q", cwd=repo)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=repo)
    (repo / "README.md").write_text("hello\n")
    git("add", "README.md", cwd=repo)
    git("commit", "-q", "-m", "init", cwd=repo)
    return repo.resolve()


@pytest.fixture
def run_git():
    """The git() helper, for tests that need extra repository setup."""
    return git
