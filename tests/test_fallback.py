"""Tests for numbered fallback selection."""

import io

import pytest
from rich.console import Console

from gitwt.errors import ExitCode, InvalidSelectionInput, SelectionCancelled
from gitwt.models import build_items
from gitwt.ui.fallback import NumberedPrompt, parse_selection

ITEMS = build_items(["main", "feature-a", "feature-b"])


def prompt_for(text: str, retry: bool = False) -> tuple[NumberedPrompt, io.StringIO]:
    out = io.StringIO()
    console = Console(file=out, width=80, color_system=None)
    return NumberedPrompt(console, input_stream=io.StringIO(text), retry_invalid=retry), out


class TestParseSelection:
    def test_one_based_index(self):
        assert parse_selection("2", 3) == [1]

    def test_out_of_range(self):
        with pytest.raises(InvalidSelectionInput) as exc_info:
            parse_selection("9", 3)
        assert exc_info.value.exit_code == ExitCode.INVALID_SELECTION

    @pytest.mark.parametrize("text", ["", "   ", "abc", "0", "-1", "1.5"])
    def test_invalid_input(self, text):
        with pytest.raises(InvalidSelectionInput):
            parse_selection(text, 3)

    def test_single_mode_rejects_lists(self):
        with pytest.raises(InvalidSelectionInput):
            parse_selection("1,2", 3)

    def test_multi_accepts_commas_and_spaces(self):
        assert parse_selection("3, 1 3", 3, multi=True) == [2, 0]

    def test_surrounding_whitespace_ignored(self):
        assert parse_selection(" 3\n", 3) == [2]


class TestNumberedPrompt:
    def test_lists_items_and_returns_choice(self):
        prompt, out = prompt_for("2\n")
        assert prompt.ask(ITEMS, title="Select worktree") == [ITEMS[1]]
        text = out.getvalue()
        assert "Select worktree" in text
        assert "1. main" in text
        assert "3. feature-b" in text

    def test_multi_choice(self):
        prompt, _ = prompt_for("1,3\n")
        assert prompt.ask(ITEMS, multi=True) == [ITEMS[0], ITEMS[2]]

    def test_invalid_without_retry_raises(self):
        prompt, _ = prompt_for("9\n2\n")
        with pytest.raises(InvalidSelectionInput):
            prompt.ask(ITEMS)

    def test_invalid_with_retry_reprompts(self):
        prompt, out = prompt_for("9\n2\n", retry=True)
        assert prompt.ask(ITEMS) == [ITEMS[1]]
        assert "out of range" in out.getvalue()

    def test_retry_gives_up_after_max_attempts(self):
        prompt, _ = prompt_for("9\n9\n9\n2\n", retry=True)
        with pytest.raises(InvalidSelectionInput):
            prompt.ask(ITEMS)

    @pytest.mark.parametrize("text", ["q\n", "Q\n", ""])
    def test_quit_and_eof_cancel(self, text):
        prompt, _ = prompt_for(text)
        with pytest.raises(SelectionCancelled):
            prompt.ask(ITEMS)
