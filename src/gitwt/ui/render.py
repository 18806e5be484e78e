"""Minimal-diff menu renderer on top of rich's Console.

The renderer remembers the lines it drew last. Later draws move the cursor
back to the first line and rewrite only rows whose content changed; unchanged
rows are skipped with a cursor move. A resize repaints from a cleared screen
because line wrapping may have shifted everything above the cursor.
"""

from __future__ import annotations

from rich.console import Console
from rich.control import Control
from rich.segment import ControlType
from rich.text import Text

from gitwt.models import SelectableItem
from gitwt.ui.formatting import Glyphs
from gitwt.ui.selection import Redraw, SelectionMode, SelectionState
from gitwt.ui.terminal import TerminalCapabilities

ERASE_LINE = Control((ControlType.ERASE_IN_LINE, 2))


def calculate_visible_range(
    cursor: int,
    total_items: int,
    max_visible: int,
    scroll_offset: int,
) -> tuple[int, int, int]:
    """Calculate visible range for a scrolling list.

    Returns:
        Tuple of (new_scroll_offset, visible_start, visible_end)
    """
    if total_items == 0:
        return 0, 0, 0

    cursor = max(0, min(cursor, total_items - 1))

    # Adjust scroll to keep cursor visible
    if cursor < scroll_offset:
        scroll_offset = cursor
    elif cursor >= scroll_offset + max_visible:
        scroll_offset = cursor - max_visible + 1

    scroll_offset = max(0, min(scroll_offset, total_items - max_visible))
    visible_end = min(scroll_offset + max_visible, total_items)

    return scroll_offset, scroll_offset, visible_end


class Renderer:
    """Draws a SelectionState for a fixed list of items."""

    def __init__(
        self,
        console: Console,
        items: list[SelectableItem],
        caps: TerminalCapabilities,
        *,
        title: str = "",
        mode: SelectionMode = SelectionMode.SINGLE,
        show_instructions: bool = True,
    ):
        self.console = console
        self.items = items
        self.caps = caps
        self.title = title
        self.mode = mode
        self.show_instructions = show_instructions
        self.glyphs = Glyphs.for_capabilities(caps)
        self._frame: list[Text] = []
        self._scroll = 0

    @property
    def drawn_lines(self) -> int:
        return len(self._frame)

    def _style(self, style: str) -> str:
        return style if self.caps.supports_color else ""

    def _chrome_lines(self) -> int:
        return int(bool(self.title)) + int(self.show_instructions)

    def max_visible(self) -> int:
        # Console.size is re-read from the terminal on every access
        height = self.console.size.height
        room = height - self._chrome_lines() - 1
        if room >= len(self.items):
            return len(self.items)
        # Two more lines go to the scroll indicators
        return max(1, room - 2)

    def format_row(self, item: SelectableItem, state: SelectionState) -> Text:
        is_cursor = item.ordinal == state.cursor
        pointer = self.glyphs.pointer if is_cursor else " " * len(self.glyphs.pointer)
        row = Text(no_wrap=True, overflow="ellipsis")
        row.append(pointer, style=self._style("bold cyan"))
        row.append(" ")
        if self.mode is SelectionMode.MULTI:
            if item.ordinal in state.chosen:
                row.append(self.glyphs.checked, style=self._style("green"))
            else:
                row.append(self.glyphs.unchecked, style=self._style("dim"))
            row.append(" ")
        row.append(item.label, style=self._style("bold") if is_cursor else "")
        return row

    def instructions(self) -> Text:
        parts = [f"{self.glyphs.up}/{self.glyphs.down} move"]
        if self.mode is SelectionMode.MULTI:
            parts.append("space toggle")
        parts += ["enter confirm", "q cancel"]
        return Text("  ".join(parts), style=self._style("dim"))

    def build_frame(self, state: SelectionState) -> list[Text]:
        lines: list[Text] = []
        if self.title:
            lines.append(Text(self.title, style=self._style("bold")))

        total = len(self.items)
        visible = self.max_visible()
        self._scroll, start, end = calculate_visible_range(state.cursor, total, visible, self._scroll)
        windowed = visible < total
        if windowed:
            above = f"  {self.glyphs.up} {start} more" if start > 0 else ""
            lines.append(Text(above, style=self._style("dim")))
        lines += [self.format_row(item, state) for item in self.items[start:end]]
        if windowed:
            below = f"  {self.glyphs.down} {total - end} more" if end < total else ""
            lines.append(Text(below, style=self._style("dim")))

        if self.show_instructions:
            lines.append(self.instructions())
        return lines

    def draw(self, state: SelectionState, redraw: Redraw = Redraw.ROWS) -> list[int]:
        """Render state. Returns the indices of the frame lines that were written."""
        if redraw is Redraw.NONE and self._frame:
            return []
        frame = self.build_frame(state)

        if not self._frame:
            written = list(range(len(frame)))
        elif redraw is Redraw.FULL or len(frame) != len(self._frame):
            self.console.control(Control.home(), Control.clear())
            written = list(range(len(frame)))
        else:
            self.console.control(Control.move(y=-len(self._frame)))
            written = [i for i, line in enumerate(frame) if line != self._frame[i]]

        changed = set(written)
        for i, line in enumerate(frame):
            if i in changed:
                self.console.control(Control.move_to_column(0), ERASE_LINE)
                self._print(line)
            else:
                self.console.control(Control.move(y=1))

        self._frame = frame
        return written

    def erase(self) -> None:
        """Blank every line drawn so far and leave the cursor on the first one."""
        if not self._frame:
            return
        count = len(self._frame)
        self.console.control(Control.move(y=-count))
        for _ in range(count):
            self.console.control(Control.move_to_column(0), ERASE_LINE, Control.move(y=1))
        self.console.control(Control.move(y=-count))
        self._frame = []

    def _print(self, line: Text) -> None:
        self.console.print(line, no_wrap=True, overflow="ellipsis", crop=True, highlight=False)
