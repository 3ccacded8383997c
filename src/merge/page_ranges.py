# src/merge/page_ranges.py - v1
"""Human-readable page ranges and group descriptions."""

from __future__ import annotations

from fileorganizer.core.models import BLANK_GROUP


def format_page_range(page_numbers: list[int]) -> str:
    """Compress page numbers into ranges.

    [1, 2, 3] -> "1-3"
    [1, 2, 3, 7, 9, 10] -> "1-3, 7, 9-10"
    """
    if not page_numbers:
        return ""

    ordered = sorted(set(page_numbers))
    ranges: list[str] = []
    start = end = ordered[0]

    for number in ordered[1:]:
        if number == end + 1:
            end = number
            continue
        ranges.append(_render(start, end))
        start = end = number

    ranges.append(_render(start, end))
    return ", ".join(ranges)


def _render(start: int, end: int) -> str:
    return str(start) if start == end else f"{start}-{end}"


def build_group_description(group_name: str, page_numbers: list[int]) -> str:
    """Describe a group as "Name (3 pages: 1-3)"; the blank group is "Blank pages"."""
    if group_name == BLANK_GROUP:
        return "Blank pages"

    count = len(page_numbers)
    noun = "page" if count == 1 else "pages"
    return f"{group_name} ({count} {noun}: {format_page_range(page_numbers)})"
