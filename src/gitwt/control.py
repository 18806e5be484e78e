"""Directory-change reporting to the invoking shell.

When the shell wrapper sets GWT_USE_FD3=1 it redirects descriptor 3 to a
capture and evaluates what it reads. The protocol is a single line:

    cd <absolute-path>\\n

Nothing else may ever be written to descriptor 3, and the control line must
never appear on the display streams while the wrapper is listening.
"""

from __future__ import annotations

import logging
import os
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import TextIO

from gitwt.errors import ControlChannelUnavailable
from gitwt.models import NavigationResult

logger = logging.getLogger("gitwt.control")

CONTROL_FD = 3
SHELL_INTEGRATION_ENV = "GWT_USE_FD3"


def shell_integration_enabled(environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    return env.get(SHELL_INTEGRATION_ENV, "") == "1"


def format_cd_line(path: Path | str) -> str:
    """Build the control line. Paths with shell metacharacters are quoted."""
    return f"cd {shlex.quote(str(path))}\n"


class ControlChannelWriter:
    """Emit a NavigationResult on the control descriptor or as human text."""

    def __init__(
        self,
        stdout: TextIO,
        *,
        use_control_fd: bool = False,
        control_fd: int = CONTROL_FD,
        show_command: bool = False,
    ):
        self.stdout = stdout
        self.use_control_fd = use_control_fd
        self.control_fd = control_fd
        self.show_command = show_command

    @classmethod
    def from_environment(
        cls, stdout: TextIO, *, show_command: bool = False, environ: Mapping[str, str] | None = None
    ) -> "ControlChannelWriter":
        return cls(stdout, use_control_fd=shell_integration_enabled(environ), show_command=show_command)

    def emit(self, result: NavigationResult) -> None:
        if result.cancelled or result.target_path is None:
            return
        path = Path(result.target_path).absolute()
        if self.use_control_fd:
            try:
                self._write_control(path)
                return
            except ControlChannelUnavailable as exc:
                logger.warning("%s; printing the path instead", exc.message)
            self._write_human(path)
            return
        if self.show_command:
            self.stdout.write(format_cd_line(path))
            self.stdout.flush()
            return
        self._write_human(path)

    def _write_control(self, path: Path) -> None:
        data = format_cd_line(path).encode()
        try:
            while data:
                written = os.write(self.control_fd, data)
                data = data[written:]
        except OSError as exc:
            raise ControlChannelUnavailable(f"Cannot write to descriptor {self.control_fd}: {exc.strerror or exc}") from exc

    def _write_human(self, path: Path) -> None:
        self.stdout.write(f"Navigate to: {path}\n")
        self.stdout.flush()
