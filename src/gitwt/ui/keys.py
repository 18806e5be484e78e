"""Raw byte stream to logical key events.

Reads one byte at a time from a descriptor already in raw mode. Escape
sequences are assembled with a short continuation timeout so a lone ESC is
still usable as cancel.
"""

from __future__ import annotations

import os
import select
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from readchar import key

from gitwt.errors import DecodeTimeout
from gitwt.ui.signals import ResizeFlag

ESC_SEQUENCE_TIMEOUT_MS = 50
POLL_INTERVAL_MS = 100
MAX_CSI_LENGTH = 16


class KeyKind(Enum):
    UP = "up"
    DOWN = "down"
    TOGGLE = "toggle"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    RESIZE = "resize"
    CHAR = "char"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class KeyEvent:
    kind: KeyKind
    char: str | None = None

    @classmethod
    def of(cls, kind: KeyKind) -> "KeyEvent":
        return _PLAIN[kind]


_PLAIN = {kind: KeyEvent(kind) for kind in KeyKind if kind is not KeyKind.CHAR}

# Complete escape sequences. Horizontal arrows are recognised so they are not
# mistaken for ESC followed by text, but have no meaning in a vertical list.
ESCAPE_SEQUENCES: dict[str, KeyKind] = {
    key.UP: KeyKind.UP,
    key.DOWN: KeyKind.DOWN,
    key.LEFT: KeyKind.UNKNOWN,
    key.RIGHT: KeyKind.UNKNOWN,
    "\x1bOA": KeyKind.UP,
    "\x1bOB": KeyKind.DOWN,
    "\x1bOC": KeyKind.UNKNOWN,
    "\x1bOD": KeyKind.UNKNOWN,
}

SINGLE_KEYS: dict[str, KeyKind] = {
    key.CR: KeyKind.CONFIRM,
    key.LF: KeyKind.CONFIRM,
    key.SPACE: KeyKind.TOGGLE,
    key.CTRL_C: KeyKind.CANCEL,
    "q": KeyKind.CANCEL,
    "Q": KeyKind.CANCEL,
    "k": KeyKind.UP,
    "j": KeyKind.DOWN,
}


def decode_single(ch: str) -> KeyEvent:
    """Classify one non-escape character."""
    kind = SINGLE_KEYS.get(ch)
    if kind is not None:
        return KeyEvent.of(kind)
    if ch.isprintable() and ch.isascii():
        return KeyEvent(KeyKind.CHAR, ch)
    return KeyEvent.of(KeyKind.UNKNOWN)


class _ResizeInterrupt(Exception):
    pass


class KeyDecoder:
    """Blocking reader producing one KeyEvent per call.

    The resize flag is checked before every read, so a delivered resize is
    reported ahead of keystrokes already buffered in the terminal.
    """

    def __init__(
        self,
        fd: int,
        resize_flag: ResizeFlag | None = None,
        *,
        escape_timeout_ms: int = ESC_SEQUENCE_TIMEOUT_MS,
        poll_interval_ms: int = POLL_INTERVAL_MS,
    ):
        self.fd = fd
        self.resize_flag = resize_flag
        self.escape_timeout_ms = escape_timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self._pending: list[bytes] = []

    def __iter__(self) -> Iterator[KeyEvent]:
        while True:
            yield self.read_event()

    def read_event(self) -> KeyEvent:
        while True:
            if self._resized():
                return KeyEvent.of(KeyKind.RESIZE)
            if self._pending:
                ch = self._pending.pop(0)
            else:
                ch = self._read_byte(self.poll_interval_ms)
                if ch is None:
                    continue
                if not ch:
                    # EOF on the terminal; nothing more can be chosen
                    return KeyEvent.of(KeyKind.CANCEL)
            if ch == key.ESC.encode():
                return self._decode_escape()
            return decode_single(ch.decode("latin-1"))

    def _resized(self) -> bool:
        return self.resize_flag is not None and self.resize_flag.consume()

    def _read_byte(self, timeout_ms: int) -> bytes | None:
        """One byte, b"" on EOF, None if nothing arrived within timeout_ms."""
        ready, _, _ = select.select([self.fd], [], [], max(0.0, timeout_ms / 1000.0))
        if not ready:
            return None
        return os.read(self.fd, 1)

    def _continuation(self) -> bytes:
        if self._resized():
            raise _ResizeInterrupt
        if self._pending:
            return self._pending.pop(0)
        ch = self._read_byte(self.escape_timeout_ms)
        if not ch:
            raise DecodeTimeout()
        return ch

    def _decode_escape(self) -> KeyEvent:
        try:
            return self._decode_escape_body()
        except DecodeTimeout:
            return KeyEvent.of(KeyKind.CANCEL)
        except _ResizeInterrupt:
            # Partial sequence is dropped
            return KeyEvent.of(KeyKind.RESIZE)

    def _decode_escape_body(self) -> KeyEvent:
        introducer = self._continuation()
        if introducer == b"O":
            final = self._continuation()
            seq = "\x1bO" + final.decode("latin-1")
            return KeyEvent.of(ESCAPE_SEQUENCES.get(seq, KeyKind.UNKNOWN))
        if introducer != b"[":
            # ESC followed by an ordinary key: cancel now, keep the key
            self._pending.insert(0, introducer)
            return KeyEvent.of(KeyKind.CANCEL)

        body = b""
        while len(body) < MAX_CSI_LENGTH:
            ch = self._continuation()
            body += ch
            if 0x40 <= ch[0] <= 0x7E:
                seq = "\x1b[" + body.decode("latin-1")
                return KeyEvent.of(ESCAPE_SEQUENCES.get(seq, KeyKind.UNKNOWN))
        return KeyEvent.of(KeyKind.UNKNOWN)
