"""Signal bridge between asynchronous notifications and the menu loop.

Handlers here do nothing but flip a flag or raise. The key decoder polls the
flag between reads and turns it into a Resize event; rendering state is never
touched from signal context.
"""

from __future__ import annotations

import contextlib
import logging
import signal
from collections.abc import Iterator

logger = logging.getLogger("gitwt.signals")


class ResizeFlag:
    """Single boolean set by the SIGWINCH handler and cleared by the reader.

    A plain attribute store is atomic under the GIL. threading.Event is not
    used because its internal lock can be held by the interrupted frame.
    """

    __slots__ = ("_pending",)

    def __init__(self) -> None:
        self._pending = False

    def set(self) -> None:
        self._pending = True

    def consume(self) -> bool:
        """Return True once per delivered notification batch."""
        if self._pending:
            self._pending = False
            return True
        return False

    @property
    def pending(self) -> bool:
        return self._pending


resize_flag = ResizeFlag()


def _on_terminate(signum, frame):
    raise KeyboardInterrupt


@contextlib.contextmanager
def resize_signals(flag: ResizeFlag = resize_flag) -> Iterator[ResizeFlag]:
    """Install SIGWINCH (flag only) and SIGTERM/SIGHUP (unwind) handlers.

    Termination signals are turned into KeyboardInterrupt so that the raw-mode
    and cursor cleanup in enclosing finally blocks runs. Previous handlers are
    restored on exit. Outside the main thread nothing is installed.
    """
    wanted = {
        "SIGWINCH": lambda signum, frame: flag.set(),
        "SIGTERM": _on_terminate,
        "SIGHUP": _on_terminate,
    }
    previous: dict[int, object] = {}
    try:
        for name, handler in wanted.items():
            signum = getattr(signal, name, None)
            if signum is None:
                continue
            previous[signum] = signal.signal(signum, handler)
    except ValueError:
        logger.debug("Not on the main thread; resize notifications disabled")
    try:
        yield flag
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
