# src/oracle/page_loader.py - v2
"""Load page image bytes for the judgment oracle."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import urlparse

from fileorganizer.core.models import Page


class BasePageLoader(ABC):
    """Fetches the image bytes behind a page's uri."""

    @abstractmethod
    async def load(self, page: Page) -> bytes:
        """Raw image bytes of ``page``."""


class LocalPageLoader(BasePageLoader):
    """Reads ``file://`` uris and plain paths, optionally under a base directory."""

    def __init__(self, base_path: str | Path | None = None) -> None:
        self._base = Path(base_path).expanduser() if base_path else None

    def resolve(self, uri: str) -> Path:
        parsed = urlparse(uri)
        path = Path(parsed.path) if parsed.scheme == "file" else Path(uri)
        if self._base is not None and not path.is_absolute():
            path = self._base / path
        return path

    async def load(self, page: Page) -> bytes:
        return await asyncio.to_thread(self.resolve(page.uri).read_bytes)
