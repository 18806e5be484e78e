"""Numbered-list selection for when arrow-key navigation is unavailable."""

from __future__ import annotations

import re
import sys
from typing import TextIO

from rich.console import Console
from rich.text import Text

from gitwt.errors import InvalidSelectionInput, SelectionCancelled
from gitwt.models import SelectableItem

MAX_ATTEMPTS = 3
CANCEL_WORDS = {"q", "Q"}


def parse_selection(text: str, count: int, multi: bool = False) -> list[int]:
    """Parse 1-based indices into 0-based ordinals.

    Multi-select accepts a comma or whitespace separated list; duplicates are
    dropped and order of first appearance is kept.

    Raises:
        InvalidSelectionInput: empty, non-numeric or out-of-range input, or
            more than one index in single mode
    """
    tokens = [t for t in re.split(r"[,\s]+", text.strip()) if t]
    if not tokens:
        raise InvalidSelectionInput("No selection entered", hint=f"Enter a number between 1 and {count}")
    if not multi and len(tokens) > 1:
        raise InvalidSelectionInput(f"Expected one number, got {len(tokens)}")

    result: list[int] = []
    for token in tokens:
        try:
            value = int(token)
        except ValueError:
            raise InvalidSelectionInput(f"Not a number: {token!r}") from None
        if not 1 <= value <= count:
            raise InvalidSelectionInput(
                f"Selection {value} out of range",
                hint=f"Enter a number between 1 and {count}",
            )
        if value - 1 not in result:
            result.append(value - 1)
    return result


class NumberedPrompt:
    """Prints the items once, then reads a line of indices."""

    def __init__(
        self,
        console: Console,
        *,
        input_stream: TextIO | None = None,
        retry_invalid: bool = False,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        self.console = console
        self.input_stream = input_stream
        self.retry_invalid = retry_invalid
        self.max_attempts = max_attempts

    def print_items(self, items: list[SelectableItem], title: str = "") -> None:
        if title:
            self.console.print(Text(title, style="bold"))
        width = len(str(len(items)))
        for item in items:
            line = Text(f"  {item.ordinal + 1:>{width}}. ", style="cyan")
            line.append(item.label)
            self.console.print(line, highlight=False)

    def ask(self, items: list[SelectableItem], title: str = "", multi: bool = False) -> list[SelectableItem]:
        """Return the chosen items.

        Raises:
            SelectionCancelled: "q" or end of input
            InvalidSelectionInput: bad input and retries exhausted or disabled
        """
        self.print_items(items, title)
        prompt = "Select numbers (e.g. 1,3), q to cancel: " if multi else "Select number, q to cancel: "
        attempts = self.max_attempts if self.retry_invalid else 1
        for attempt in range(1, attempts + 1):
            stream = self.input_stream or sys.stdin
            answer = self.console.input(prompt, stream=stream)
            if not answer:
                # readline returns "" only at end of input
                raise SelectionCancelled()
            if answer.strip() in CANCEL_WORDS:
                raise SelectionCancelled()
            try:
                ordinals = parse_selection(answer, len(items), multi=multi)
            except InvalidSelectionInput as exc:
                if attempt == attempts:
                    raise
                self.console.print(f"[yellow]{exc.message}[/yellow]", highlight=False)
                continue
            return [items[i] for i in ordinals]
        raise InvalidSelectionInput("No valid selection")
