"""Terminal capability detection and raw-mode lifecycle.

This is the only module that touches termios. The selection state machine and
renderer depend on KeyEvent and rich's Console, never on OS primitives.
"""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import IO

from gitwt.errors import NotATerminal


@dataclass(frozen=True)
class TerminalCapabilities:
    """What the current invocation may use. Defaults are the conservative set."""

    is_interactive: bool = False
    supports_color: bool = False
    supports_utf8: bool = False


CONSERVATIVE = TerminalCapabilities()


def _isatty(stream: IO | None) -> bool:
    if stream is None:
        return False
    try:
        return bool(stream.isatty())
    except (AttributeError, ValueError, OSError):
        # Closed or replaced streams (pytest capture, CliRunner)
        return False


def _locale_is_utf8(environ: Mapping[str, str]) -> bool:
    # First non-empty wins, matching the C library's precedence
    for name in ("LC_ALL", "LC_CTYPE", "LANG"):
        value = environ.get(name)
        if value:
            lowered = value.lower()
            return "utf-8" in lowered or "utf8" in lowered
    return False


def probe(
    stdin: IO | None = None,
    stdout: IO | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    force_non_interactive: bool = False,
    disable_color: bool = False,
) -> TerminalCapabilities:
    """Inspect the standard streams and environment. Never raises."""
    if force_non_interactive:
        return CONSERVATIVE

    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    env = os.environ if environ is None else environ

    out_tty = _isatty(stdout)
    interactive = _isatty(stdin) and out_tty

    if disable_color or "NO_COLOR" in env:
        return TerminalCapabilities(is_interactive=interactive)

    term = env.get("TERM", "")
    color = out_tty and bool(term) and term != "dumb"
    return TerminalCapabilities(
        is_interactive=interactive,
        supports_color=color,
        supports_utf8=_locale_is_utf8(env),
    )


@contextlib.contextmanager
def raw_mode(fd: int) -> Iterator[int]:
    """Put fd into unbuffered, unechoed mode for the duration of the block.

    Output post-processing stays on so newlines printed by the renderer keep
    returning to column 0. Raises NotATerminal if fd has no terminal
    attributes. The saved attributes are restored on every exit path.
    """
    import termios

    try:
        saved = termios.tcgetattr(fd)
    except (termios.error, OSError) as exc:
        raise NotATerminal(f"Descriptor {fd} is not a terminal") from exc

    attrs = termios.tcgetattr(fd)
    attrs[0] &= ~(termios.IXON | termios.ICRNL)
    attrs[3] &= ~(termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG)
    attrs[6][termios.VMIN] = 1
    attrs[6][termios.VTIME] = 0
    try:
        termios.tcsetattr(fd, termios.TCSAFLUSH, attrs)
    except (termios.error, OSError) as exc:
        raise NotATerminal(f"Cannot enter raw mode on descriptor {fd}") from exc
    try:
        yield fd
    finally:
        termios.tcsetattr(fd, termios.TCSAFLUSH, saved)
