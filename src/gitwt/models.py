"""Data models for git-wt."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SelectableItem:
    """One row of a selection menu.

    identifier is opaque to the menu; callers map it back to their own
    objects (a worktree path for navigation and removal).
    """

    label: str
    identifier: str
    ordinal: int


@dataclass(frozen=True)
class NavigationResult:
    """Outcome of a selection session, consumed by the control channel writer."""

    target_path: Path | None = None
    cancelled: bool = False

    @classmethod
    def to(cls, path: Path | str) -> "NavigationResult":
        return cls(target_path=Path(path))

    @classmethod
    def cancel(cls) -> "NavigationResult":
        return cls(cancelled=True)


def build_items(labels: list[str], identifiers: list[str] | None = None) -> list[SelectableItem]:
    """Number labels in display order. Identifiers default to the labels."""
    ids = identifiers if identifiers is not None else labels
    if len(ids) != len(labels):
        raise ValueError("labels and identifiers must have the same length")
    return [SelectableItem(label=label, identifier=ident, ordinal=i) for i, (label, ident) in enumerate(zip(labels, ids))]
