"""Configuration: JSON file plus GWT_* environment overrides."""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger("gitwt.config")

CONFIG_FILENAME = "config.json"
ENV_PREFIX = "GWT_"

# Loaded once per process for the default directory
_cached: "Config | None" = None


def clear_config_cache() -> None:
    """Forget the cached config so the next load re-reads file and env."""
    global _cached
    _cached = None


def get_default_config_dir() -> Path:
    """$GWT_CONFIG_DIR, else ~/.config/git-wt."""
    override = os.environ.get("GWT_CONFIG_DIR")
    if override:
        return Path(override)
    return Path.home() / ".config" / "git-wt"


class ConfigMeta:
    """Human descriptions of each setting, shown by `git-wt config`."""

    SETTINGS: dict[str, str] = {
        "parent_dir": "Worktree parent directory (empty = ../{repo}-trees)",
        "lock_timeout": "Seconds to wait for another git-wt operation",
        "stale_lock_seconds": "Age after which a lock is considered abandoned",
        "copy_files": "Comma-separated files copied into new worktrees",
        "no_color": "Disable colored output",
        "no_tty": "Always use numbered selection",
        "non_interactive": "Never prompt",
        "debug": "Verbose diagnostics on stderr",
    }


def _coerce(raw: str, target_type: type) -> Any:
    """Convert a string from the command line or environment."""
    if target_type is bool:
        return raw.strip().lower() in ("true", "1", "yes", "on")
    if target_type is float:
        return float(raw)
    if target_type is int:
        return int(raw)
    return raw


class Config:
    """Settings resolved from defaults, then the file, then the environment.

    Only values set through `set` reach the file; environment overrides live
    for the process only.
    """

    DEFAULTS: dict[str, Any] = {
        "parent_dir": "",
        "lock_timeout": 30.0,
        "stale_lock_seconds": 600.0,
        "copy_files": ".env,.env.local,.claude",
        "no_color": False,
        "no_tty": False,
        "non_interactive": False,
        "debug": False,
    }

    def __init__(self, config_dir: Path | None = None):
        self._dir = config_dir or get_default_config_dir()
        self._stored: dict[str, Any] = {}
        self._env: dict[str, Any] = {}

    @property
    def config_dir(self) -> Path:
        return self._dir

    @property
    def path(self) -> Path:
        return self._dir / CONFIG_FILENAME

    @classmethod
    def load(cls, config_dir: Path | None = None) -> "Config":
        """Read file and environment. The default directory's result is cached."""
        global _cached

        use_cache = config_dir is None
        if use_cache and _cached is not None:
            return _cached

        config = cls(config_dir)
        config._stored = config._read_file()
        config._env = config._read_env()
        if use_cache:
            _cached = config
        return config

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        for layer in (self._env, self._stored, self.DEFAULTS):
            if name in layer:
                return layer[name]
        raise AttributeError(f"Config has no attribute '{name}'")

    @property
    def copy_file_list(self) -> list[str]:
        return [part.strip() for part in str(self.copy_files).split(",") if part.strip()]

    def get_settings(self) -> list[tuple[str, str, Any]]:
        """(key, description, effective value) for every setting."""
        return [(key, desc, getattr(self, key)) for key, desc in ConfigMeta.SETTINGS.items()]

    def set(self, key: str, value: Any) -> None:
        """Persist one setting. Strings are converted to the default's type.

        Raises:
            KeyError: unknown setting
            ValueError: value cannot be converted
        """
        if key not in self.DEFAULTS:
            raise KeyError(key)
        if isinstance(value, str):
            value = _coerce(value, type(self.DEFAULTS[key]))
        self._stored[key] = value
        self._dir.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._stored, indent=2))

    def _read_file(self) -> dict[str, Any]:
        try:
            content = self.path.read_text()
        except FileNotFoundError:
            return {}
        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable config file %s", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config file %s: expected a JSON object", self.path)
            return {}
        return {key: value for key, value in data.items() if key in self.DEFAULTS}

    def _read_env(self) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for key, default in self.DEFAULTS.items():
            raw = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
            if raw is None:
                continue
            try:
                overrides[key] = _coerce(raw, type(default))
            except ValueError:
                logger.warning("Ignoring %s%s=%r: not a valid %s", ENV_PREFIX, key.upper(), raw, type(default).__name__)
        return overrides
