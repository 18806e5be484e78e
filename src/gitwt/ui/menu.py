"""Terminal menu: interactive arrow-key selection with numbered fallback."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import TextIO

from rich.console import Console
from rich.control import Control
from rich.prompt import Confirm

from gitwt.errors import NotATerminal, NothingToSelect, SelectionCancelled
from gitwt.models import SelectableItem, build_items
from gitwt.ui.fallback import NumberedPrompt
from gitwt.ui.keys import KeyDecoder, KeyEvent, KeyKind
from gitwt.ui.render import Renderer
from gitwt.ui.selection import SelectionMode, SelectionState, SelectionStatus
from gitwt.ui.signals import resize_signals
from gitwt.ui.terminal import TerminalCapabilities, raw_mode


def drive_selection(state: SelectionState, events: Iterable[KeyEvent], renderer: Renderer | None = None) -> SelectionState:
    """Feed events into state until it reaches a terminal status."""
    if renderer is not None:
        renderer.draw(state)
    for event in events:
        redraw = state.handle(event)
        if state.done:
            break
        if renderer is not None:
            renderer.draw(state, redraw)
    return state


class TerminalMenu:
    """MenuUI backed by raw-mode key decoding or a numbered prompt."""

    def __init__(
        self,
        caps: TerminalCapabilities,
        console: Console | None = None,
        *,
        numbered: bool = False,
        stdin_fd: int | None = None,
        input_stream: TextIO | None = None,
        retry_invalid: bool = False,
    ):
        self.caps = caps
        self.console = console or Console(
            stderr=True,
            color_system="auto" if caps.supports_color else None,
        )
        self.numbered = numbered
        self.stdin_fd = stdin_fd
        self.input_stream = input_stream
        self.retry_invalid = retry_invalid

    @property
    def interactive(self) -> bool:
        return self.caps.is_interactive and not self.numbered

    def select(self, items: list[SelectableItem], title: str = "") -> SelectableItem:
        return self._choose(items, title, SelectionMode.SINGLE)[0]

    def multi_select(self, items: list[SelectableItem], title: str = "") -> list[SelectableItem]:
        return self._choose(items, title, SelectionMode.MULTI)

    def confirm(self, message: str, default: bool = False) -> bool:
        if self.interactive:
            labels = ["Yes", "No"] if default else ["No", "Yes"]
            try:
                choice = self.select(build_items(labels), title=message)
            except SelectionCancelled:
                return False
            return choice.label == "Yes"
        stream = self.input_stream or sys.stdin
        return Confirm.ask(message, console=self.console, default=default, stream=stream)

    def _choose(self, items: list[SelectableItem], title: str, mode: SelectionMode) -> list[SelectableItem]:
        if not items:
            raise NothingToSelect()
        if self.interactive:
            try:
                return self._choose_interactive(items, title, mode)
            except NotATerminal:
                pass
        prompt = NumberedPrompt(self.console, input_stream=self.input_stream, retry_invalid=self.retry_invalid)
        return prompt.ask(items, title, multi=mode is SelectionMode.MULTI)

    def _choose_interactive(
        self, items: list[SelectableItem], title: str, mode: SelectionMode
    ) -> list[SelectableItem]:
        fd = self.stdin_fd
        if fd is None:
            try:
                fd = sys.stdin.fileno()
            except (AttributeError, ValueError, OSError) as exc:
                raise NotATerminal("stdin has no file descriptor") from exc
        state = SelectionState(item_count=len(items), mode=mode)
        renderer = Renderer(self.console, items, self.caps, title=title, mode=mode)

        # NotATerminal from raw_mode propagates before anything is drawn
        with raw_mode(fd), resize_signals() as flag:
            self.console.control(Control.show_cursor(False))
            try:
                drive_selection(state, KeyDecoder(fd, flag), renderer)
            except KeyboardInterrupt:
                state.handle(KeyEvent.of(KeyKind.CANCEL))
            finally:
                renderer.erase()
                self.console.control(Control.show_cursor(True))

        if state.status is not SelectionStatus.CONFIRMED:
            raise SelectionCancelled()
        return [items[i] for i in state.selected_ordinals()]
