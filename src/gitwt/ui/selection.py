"""Selection state machine driven by KeyEvents."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from gitwt.errors import NothingToSelect
from gitwt.ui.keys import KeyEvent, KeyKind


class SelectionMode(Enum):
    SINGLE = "single"
    MULTI = "multi"


class SelectionStatus(Enum):
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Redraw(Enum):
    """What the renderer must do after an event."""

    NONE = "none"
    ROWS = "rows"
    FULL = "full"


@dataclass
class SelectionState:
    """Cursor and chosen set for one menu invocation.

    Invariants: 0 <= cursor < item_count, chosen is empty in SINGLE mode
    until confirmation, and CONFIRMED/CANCELLED are terminal.
    """

    item_count: int
    mode: SelectionMode = SelectionMode.SINGLE
    cursor: int = 0
    chosen: set[int] = field(default_factory=set)
    status: SelectionStatus = SelectionStatus.ACTIVE

    def __post_init__(self) -> None:
        if self.item_count <= 0:
            raise NothingToSelect()
        if not 0 <= self.cursor < self.item_count:
            raise ValueError(f"cursor {self.cursor} out of range for {self.item_count} items")

    @property
    def done(self) -> bool:
        return self.status is not SelectionStatus.ACTIVE

    def handle(self, event: KeyEvent) -> Redraw:
        """Apply one event and report the redraw it requires."""
        if self.done:
            return Redraw.NONE

        kind = event.kind
        if kind is KeyKind.UP:
            self.cursor = (self.cursor - 1) % self.item_count
            return Redraw.ROWS
        if kind is KeyKind.DOWN:
            self.cursor = (self.cursor + 1) % self.item_count
            return Redraw.ROWS
        if kind is KeyKind.TOGGLE:
            if self.mode is not SelectionMode.MULTI:
                return Redraw.NONE
            self.chosen ^= {self.cursor}
            return Redraw.ROWS
        if kind is KeyKind.CONFIRM:
            if self.mode is SelectionMode.SINGLE or not self.chosen:
                self.chosen = {self.cursor}
            self.status = SelectionStatus.CONFIRMED
            return Redraw.NONE
        if kind is KeyKind.CANCEL:
            self.chosen = set()
            self.status = SelectionStatus.CANCELLED
            return Redraw.NONE
        if kind is KeyKind.RESIZE:
            return Redraw.FULL
        return Redraw.NONE

    def selected_ordinals(self) -> list[int]:
        """Chosen ordinals in display order. Empty unless confirmed."""
        if self.status is not SelectionStatus.CONFIRMED:
            return []
        return sorted(self.chosen)
