"""Tests for formatting helpers."""

from pathlib import Path

import pytest

from gitwt.git import Worktree
from gitwt.ui.formatting import ASCII_GLYPHS, UNICODE_GLYPHS, Glyphs, format_duration, format_worktree_label
from gitwt.ui.terminal import TerminalCapabilities
from gitwt.worktrees import WorktreeEntry


class TestFormatDuration:
    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "0s"),
            (-5, "0s"),
            (45, "45s"),
            (150, "2m 30s"),
            (3600, "1h"),
            (3900, "1h 5m"),
            (90000, "1d 1h"),
            (8 * 86400, "1w 1d"),
            (395 * 86400, "1y 1mo"),
        ],
    )
    def test_two_most_significant_units(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestGlyphs:
    def test_unicode_when_supported(self):
        assert Glyphs.for_capabilities(TerminalCapabilities(supports_utf8=True)) is UNICODE_GLYPHS

    def test_ascii_fallback(self):
        glyphs = Glyphs.for_capabilities(TerminalCapabilities())
        assert glyphs is ASCII_GLYPHS
        assert glyphs.success == "[OK]"
        assert (glyphs.unchecked, glyphs.checked) == ("[ ]", "[*]")


class TestWorktreeLabel:
    def test_label(self):
        entry = WorktreeEntry(Worktree(Path("/r/repo-trees/feature-a"), "feature-a", "abc"), "feature-a", 1000.0)
        assert format_worktree_label(entry, now=1150.0) == "feature-a @ feature-a - 2m 30s ago"

    def test_missing_directory(self):
        entry = WorktreeEntry(Worktree(Path("/gone"), "old", "abc"), "gone", 0.0)
        assert format_worktree_label(entry, now=1150.0) == "gone @ old - unknown"
