# tests/unit/merge/test_page_ranges.py - v1
"""Tests for merge/page_ranges.py."""

from __future__ import annotations

from fileorganizer.merge.page_ranges import build_group_description, format_page_range


class TestFormatPageRange:
    def test_contiguous(self):
        assert format_page_range([1, 2, 3]) == "1-3"

    def test_mixed(self):
        assert format_page_range([1, 2, 3, 7, 9, 10]) == "1-3, 7, 9-10"

    def test_unsorted_with_duplicates(self):
        assert format_page_range([10, 9, 3, 1, 2, 2]) == "1-3, 9-10"

    def test_single(self):
        assert format_page_range([4]) == "4"

    def test_empty(self):
        assert format_page_range([]) == ""


class TestBuildGroupDescription:
    def test_plural(self):
        assert build_group_description("Acme Corp", [1, 2, 3]) == "Acme Corp (3 pages: 1-3)"

    def test_singular(self):
        assert build_group_description("Acme Corp", [5]) == "Acme Corp (1 page: 5)"

    def test_blank_group(self):
        assert build_group_description("", [2, 4]) == "Blank pages"
