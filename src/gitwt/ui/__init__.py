"""UI module."""

from .base import MenuUI
from .menu import TerminalMenu, drive_selection
from .terminal import TerminalCapabilities, probe

__all__ = [
    "MenuUI",
    "TerminalCapabilities",
    "TerminalMenu",
    "drive_selection",
    "probe",
]
