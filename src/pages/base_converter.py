# src/pages/base_converter.py - v1
"""Abstract source converter: multi-page documents to page images."""

from __future__ import annotations

from abc import ABC, abstractmethod

from fileorganizer.core.models import PageImage, SourceDocument


class BaseSourceConverter(ABC):
    """Converts PDFs (and similar containers) into ordered page images."""

    @abstractmethod
    async def is_converting(self, source: SourceDocument) -> bool:
        """Whether conversion of this source is still in progress."""

    @abstractmethod
    async def page_images(self, source: SourceDocument) -> list[PageImage]:
        """Ordered page images of a fully converted source."""
