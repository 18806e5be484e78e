"""Tests for data models."""

from pathlib import Path

import pytest

from gitwt.models import NavigationResult, SelectableItem, build_items


class TestBuildItems:
    def test_ordinals_follow_display_order(self):
        items = build_items(["b", "a"])
        assert [(i.label, i.ordinal) for i in items] == [("b", 0), ("a", 1)]
        assert items[0].identifier == "b"

    def test_identifiers(self):
        items = build_items(["main", "feature"], ["/r", "/r-trees/feature"])
        assert items[1] == SelectableItem("feature", "/r-trees/feature", 1)

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            build_items(["a"], [])

    def test_items_are_immutable(self):
        item = build_items(["a"])[0]
        with pytest.raises(AttributeError):
            item.label = "b"


class TestNavigationResult:
    def test_to(self):
        result = NavigationResult.to("/tmp/x")
        assert result.target_path == Path("/tmp/x")
        assert not result.cancelled

    def test_cancel(self):
        result = NavigationResult.cancel()
        assert result.cancelled
        assert result.target_path is None
