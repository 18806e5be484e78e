"""Shared formatting utilities for labels, ages and glyphs."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitwt.ui.terminal import TerminalCapabilities
    from gitwt.worktrees import WorktreeEntry

# (suffix, seconds), largest first
DURATION_UNITS: list[tuple[str, int]] = [
    ("y", 365 * 24 * 3600),
    ("mo", 30 * 24 * 3600),
    ("w", 7 * 24 * 3600),
    ("d", 24 * 3600),
    ("h", 3600),
    ("m", 60),
    ("s", 1),
]


def format_duration(seconds: float) -> str:
    """Format an age using its two most significant units.

    Args:
        seconds: Elapsed time; negative values are treated as zero

    Returns:
        A compact string such as "45s", "2m 30s" or "1d 1h"
    """
    remaining = max(0, int(seconds))
    if remaining == 0:
        return "0s"
    parts: list[str] = []
    for suffix, size in DURATION_UNITS:
        if remaining >= size:
            count, remaining = divmod(remaining, size)
            parts.append(f"{count}{suffix}")
            if len(parts) == 2:
                break
        elif parts:
            # Units must be adjacent: "1h 0m" is shown as "1h"
            break
    return " ".join(parts)


@dataclass(frozen=True)
class Glyphs:
    pointer: str
    checked: str
    unchecked: str
    success: str
    error: str
    up: str
    down: str

    @classmethod
    def for_capabilities(cls, caps: TerminalCapabilities) -> "Glyphs":
        return UNICODE_GLYPHS if caps.supports_utf8 else ASCII_GLYPHS


UNICODE_GLYPHS = Glyphs(
    pointer="❯",
    checked="☑",
    unchecked="☐",
    success="✓",
    error="✗",
    up="↑",
    down="↓",
)

ASCII_GLYPHS = Glyphs(
    pointer=">",
    checked="[*]",
    unchecked="[ ]",
    success="[OK]",
    error="[ERR]",
    up="Up",
    down="Down",
)


def format_worktree_label(entry: WorktreeEntry, now: float | None = None) -> str:
    """Menu label: "<display> @ <branch> - <age> ago"."""
    now = time.time() if now is None else now
    age = format_duration(now - entry.modified_at) if entry.modified_at else "unknown"
    suffix = f"{age} ago" if entry.modified_at else age
    return f"{entry.display_name} @ {entry.worktree.branch} - {suffix}"
