# src/pages/resolver.py - v2
"""Resolve ordered source documents into a flat, numbered page sequence.

Images become one page each, PDFs one page per converted page image, and
every other mime type is skipped. Page numbers run from 1 in source order
and never change once the Resolved Pages marker is written.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from fileorganizer.core.errors import TranscodeTimeout
from fileorganizer.core.models import Page, PageMeta, SourceDocument

if TYPE_CHECKING:
    from fileorganizer.config.settings import Settings
    from fileorganizer.pages.base_converter import BaseSourceConverter
    from fileorganizer.pages.base_transcoder import BaseTranscoder
    from fileorganizer.storage.run_store import RunStore

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "image/tiff",
    "image/heic",
})
PDF_MIME_TYPE = "application/pdf"


class PageResolver:
    """Turns a run's sources into Pages and persists the Resolved Pages marker."""

    def __init__(
        self,
        converter: BaseSourceConverter,
        store: RunStore,
        transcoder: BaseTranscoder | None = None,
        poll_interval_s: float = 5.0,
        timeout_s: float = 120.0,
    ) -> None:
        self._converter = converter
        self._store = store
        self._transcoder = transcoder
        self.poll_interval_s = poll_interval_s
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        converter: BaseSourceConverter,
        store: RunStore,
        transcoder: BaseTranscoder | None = None,
    ) -> PageResolver:
        return cls(
            converter,
            store,
            transcoder=transcoder,
            poll_interval_s=settings.transcode_poll_interval_s,
            timeout_s=settings.transcode_timeout_s,
        )

    async def resolve(self, run_id: str) -> list[Page]:
        """Resolve the run's pages, or return the stored ones if already resolved.

        Raises:
            TranscodeTimeout: If PDF sources are still converting once
                ``timeout_s`` has passed. The budget covers all sources together.
        """
        stored = await self._store.load_pages(run_id)
        if stored is not None:
            logger.debug("Run %s already has %d resolved pages", run_id, len(stored))
            return stored

        sources = await self._store.load_sources(run_id)
        deadline = asyncio.get_running_loop().time() + self.timeout_s
        pages: list[Page] = []
        for source in sources:
            for uri, mime_type in await self._expand(source, deadline):
                pages.append(
                    Page(
                        page_number=len(pages) + 1,
                        source_id=source.source_id,
                        filename=source.filename,
                        mime_type=mime_type,
                        uri=uri,
                    )
                )

        pages = [await self._annotate_transcode(p) for p in pages]
        await self._store.save_pages(run_id, pages)
        logger.info("Resolved %d pages from %d sources", len(pages), len(sources))
        return pages

    async def _expand(self, source: SourceDocument, deadline: float) -> list[tuple[str, str]]:
        if source.mime_type in IMAGE_MIME_TYPES:
            return [(source.uri, source.mime_type)]

        if source.mime_type == PDF_MIME_TYPE:
            await self.wait_for_conversion(source, deadline)
            images = await self._converter.page_images(source)
            return [(image.uri, image.mime_type) for image in images]

        logger.debug(
            "Skipping source %s (%s): unsupported mime type %s",
            source.source_id, source.filename, source.mime_type,
        )
        return []

    async def wait_for_conversion(
        self, source: SourceDocument, deadline: float | None = None
    ) -> None:
        """Poll the converter until the source is no longer converting.

        ``deadline`` is a loop time shared across sources; without one the
        source gets the full ``timeout_s``.
        """
        loop = asyncio.get_running_loop()
        if deadline is None:
            deadline = loop.time() + self.timeout_s
        while await self._converter.is_converting(source):
            if loop.time() >= deadline:
                raise TranscodeTimeout(source.source_id, source.filename, self.timeout_s)
            logger.debug("Waiting for conversion of %s", source.filename)
            await asyncio.sleep(self.poll_interval_s)

    async def _annotate_transcode(self, page: Page) -> Page:
        if self._transcoder is None:
            return page
        needed = await self._transcoder.needs_transcode(page)
        meta = page.meta.model_copy(
            update={"transcode_status": "needed" if needed else "not_needed"}
        )
        return page.model_copy(update={"meta": meta})
