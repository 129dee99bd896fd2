"""Tests for the hierarchy path model."""

from skualloc.engine.paths import (
    build_path,
    contains_separator,
    is_prefix,
    join_path,
    parent_path,
    path_depth,
    path_segments,
    sku_path,
    split_path,
)

from conftest import make_definitions, make_sku


class TestBuildPath:
    """Tests for deriving paths from SKU records."""

    def test_path_per_level(self, skus, definitions):
        """Each depth adds one segment."""
        assert build_path(skus[0], definitions, 1) == "A"
        assert build_path(skus[0], definitions, 2) == "A/Red"

    def test_sku_path_appends_code(self, skus, definitions):
        """The SKU leaf path ends with the SKU code."""
        assert sku_path(skus[1], definitions) == "A/Blue/SKU002"

    def test_missing_values_are_skipped(self, definitions):
        """Absent or empty values produce a shorter path."""
        sku = make_sku("SKU009", 10, category="", color="Green")
        assert path_segments(sku, definitions, 2) == ("Green",)
        assert build_path(sku, definitions, 1) == ""
        assert sku_path(sku, definitions) == "Green/SKU009"

    def test_sku_without_values(self, definitions):
        """A SKU with no hierarchy values is just its code."""
        sku = make_sku("SKU010", 10)
        assert sku_path(sku, definitions) == "SKU010"

    def test_definitions_are_ordered_by_level(self, skus):
        """Definition order in the input does not matter."""
        reversed_defs = list(reversed(make_definitions("category", "color")))
        assert build_path(skus[0], reversed_defs, 2) == "A/Red"

    def test_plain_dict_records(self, definitions):
        """Plain value dicts work the same as SKU rows."""
        assert path_segments({"category": "B", "color": "Black"}, definitions, 2) == ("B", "Black")


class TestPathHelpers:
    """Tests for string path helpers."""

    def test_parent_path(self):
        """The parent drops the last segment; top level has none."""
        assert parent_path("A/Red/SKU001") == "A/Red"
        assert parent_path("A") is None

    def test_split_and_join(self):
        """Split and join are inverses for non-empty paths."""
        assert split_path("A/Red") == ("A", "Red")
        assert join_path(("A", "Red")) == "A/Red"
        assert split_path("") == ()

    def test_depth(self):
        assert path_depth("A/Red/SKU001") == 3
        assert path_depth("A") == 1

    def test_is_prefix(self):
        """Prefix matching works on whole segments only."""
        assert is_prefix(("A",), ("A", "Red"))
        assert not is_prefix(("A", "Re"), ("A", "Red"))
        assert not is_prefix(("A", "Red", "X"), ("A", "Red"))

    def test_contains_separator(self):
        assert contains_separator("TV/Audio")
        assert not contains_separator("TV")
        assert not contains_separator(None)
