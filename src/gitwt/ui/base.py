"""UI protocol for swappable menu implementations."""

from typing import Protocol, runtime_checkable

from gitwt.models import SelectableItem


@runtime_checkable
class MenuUI(Protocol):
    """Protocol for swappable menu implementations."""

    def select(self, items: list[SelectableItem], title: str = "") -> SelectableItem:
        """Single choice. Raises SelectionCancelled."""
        ...

    def multi_select(self, items: list[SelectableItem], title: str = "") -> list[SelectableItem]:
        """Checkboxes, never empty. Raises SelectionCancelled."""
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        """Yes/no prompt."""
        ...
