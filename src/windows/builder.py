# src/windows/builder.py - v1
"""Sliding comparison windows over the ordered page sequence.

Examples:
    10 pages, size 5, overlap 1 -> [1-5], [5-9], [9-10]
    10 pages, size 5, overlap 2 -> [1-5], [4-8], [7-10]
    10 pages, size 4, overlap 1 -> [1-4], [4-7], [7-10]
     6 pages, size 5, overlap 1 -> [1-5], [5-6]
     4 pages, size 5, overlap 1 -> [1-4]
"""

from __future__ import annotations

import logging

from fileorganizer.config.settings import MAX_WINDOW_SIZE, MIN_WINDOW_SIZE
from fileorganizer.core.errors import InvalidWindowConfig
from fileorganizer.core.models import Page, Window

logger = logging.getLogger(__name__)

MIN_PAGES_PER_WINDOW = 2


def validate_window_config(window_size: int, overlap: int) -> None:
    """Raise InvalidWindowConfig unless 2 <= size <= 100 and 1 <= overlap < size."""
    if not MIN_WINDOW_SIZE <= window_size <= MAX_WINDOW_SIZE:
        raise InvalidWindowConfig(
            f"window_size must be between {MIN_WINDOW_SIZE} and {MAX_WINDOW_SIZE}. "
            f"Got: {window_size}"
        )
    if not 1 <= overlap < window_size:
        raise InvalidWindowConfig(
            f"overlap must be >= 1 and < window_size ({window_size}). Got: {overlap}"
        )


def build_windows(pages: list[Page], window_size: int, overlap: int = 1) -> list[Window]:
    """Partition pages into overlapping windows.

    Pages are ordered by page_number first. The start pointer advances by
    ``window_size - overlap``; no window is emitted with fewer than two
    pages, and building stops once a window reaches the last page.

    Raises:
        InvalidWindowConfig: If window_size or overlap is out of bounds.
    """
    validate_window_config(window_size, overlap)

    ordered = sorted(pages, key=lambda p: p.page_number)
    if not ordered:
        logger.debug("No pages to create windows from")
        return []

    step = window_size - overlap
    windows: list[Window] = []
    start = 0

    while start < len(ordered):
        chunk = ordered[start:start + window_size]
        if len(chunk) < MIN_PAGES_PER_WINDOW:
            logger.debug("Window %d: skipping (only %d page)", len(windows), len(chunk))
            break

        window = Window(
            window_index=len(windows),
            window_start=chunk[0].page_number,
            window_end=chunk[-1].page_number,
            pages=chunk,
        )
        windows.append(window)
        logger.debug(
            "Window %d: pages %d-%d (%d pages)",
            window.window_index, window.window_start, window.window_end, len(chunk),
        )

        if start + window_size >= len(ordered):
            break
        start += step

    logger.info(
        "Created %d windows from %d pages (size=%d, overlap=%d)",
        len(windows), len(ordered), window_size, overlap,
    )
    return windows
