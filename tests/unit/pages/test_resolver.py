# tests/unit/pages/test_resolver.py - v2
"""Tests for pages/resolver.py - sources to numbered pages."""

from __future__ import annotations

import pytest

from fileorganizer.core.errors import TranscodeTimeout
from fileorganizer.core.models import Page, PageImage, SourceDocument
from fileorganizer.pages.base_transcoder import BaseTranscoder, NoopTranscoder
from fileorganizer.pages.resolver import PageResolver
from fileorganizer.storage import run_manager


class _OddPagesTranscoder(BaseTranscoder):
    async def needs_transcode(self, page: Page) -> bool:
        return page.page_number % 2 == 1

    async def transcode(self, page: Page) -> str:
        return f"text of page {page.page_number}"


def _source(source_id: str, mime_type: str, position: int, filename: str = "") -> SourceDocument:
    return SourceDocument(
        source_id=source_id,
        filename=filename or f"{source_id}.bin",
        mime_type=mime_type,
        uri=f"file:///in/{source_id}",
        position=position,
    )


def _images(prefix: str, count: int) -> list[PageImage]:
    return [PageImage(uri=f"file:///conv/{prefix}_{i}.png") for i in range(1, count + 1)]


async def _start(run_store, sources) -> str:
    manifest = await run_manager.create_run(run_store, sources, run_id="run_1")
    return manifest.run_id


class TestResolve:
    @pytest.mark.asyncio
    async def test_images_one_page_each(self, run_store, image_sources, static_converter):
        run_id = await _start(run_store, image_sources)
        pages = await PageResolver(static_converter, run_store).resolve(run_id)
        assert [p.page_number for p in pages] == list(range(1, 11))
        assert pages[0].source_id == "src_01"
        assert pages[0].meta.transcode_status == "unknown"

    @pytest.mark.asyncio
    async def test_pdf_expands_in_source_order(self, run_store, static_converter_cls):
        sources = [
            _source("cover", "image/jpeg", 1),
            _source("report", "application/pdf", 2, "report.pdf"),
            _source("notes", "text/plain", 3),
            _source("back", "image/png", 4),
        ]
        converter = static_converter_cls(images={"report": _images("report", 3)})
        run_id = await _start(run_store, sources)
        pages = await PageResolver(converter, run_store, poll_interval_s=0).resolve(run_id)

        assert [(p.page_number, p.source_id) for p in pages] == [
            (1, "cover"), (2, "report"), (3, "report"), (4, "report"), (5, "back"),
        ]
        assert pages[1].uri == "file:///conv/report_1.png"
        assert pages[1].filename == "report.pdf"
        assert pages[1].mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_sources_ordered_by_position(self, run_store, static_converter):
        sources = [_source("b", "image/png", 2), _source("a", "image/png", 1)]
        run_id = await _start(run_store, sources)
        pages = await PageResolver(static_converter, run_store).resolve(run_id)
        assert [p.source_id for p in pages] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unsupported_only_yields_no_pages(self, run_store, static_converter):
        run_id = await _start(run_store, [_source("n", "text/plain", 1)])
        pages = await PageResolver(static_converter, run_store).resolve(run_id)
        assert pages == []
        assert await run_store.has_resolved_pages(run_id)

    @pytest.mark.asyncio
    async def test_second_call_returns_stored_pages(self, run_store, static_converter_cls):
        converter = static_converter_cls(images={"doc": _images("doc", 2)})
        run_id = await _start(run_store, [_source("doc", "application/pdf", 1)])
        resolver = PageResolver(converter, run_store, poll_interval_s=0)
        first = await resolver.resolve(run_id)
        converter.images["doc"] = _images("doc", 5)
        second = await resolver.resolve(run_id)
        assert second == first
        assert len(second) == 2


class TestConversionWait:
    @pytest.mark.asyncio
    async def test_waits_until_converted(self, run_store, static_converter_cls):
        converter = static_converter_cls(
            images={"doc": _images("doc", 1)}, converting_polls={"doc": 2}
        )
        run_id = await _start(run_store, [_source("doc", "application/pdf", 1)])
        pages = await PageResolver(converter, run_store, poll_interval_s=0).resolve(run_id)
        assert len(pages) == 1
        assert converter.poll_count == 3

    @pytest.mark.asyncio
    async def test_timeout(self, run_store, static_converter_cls):
        converter = static_converter_cls(converting_polls={"doc": 10_000})
        run_id = await _start(run_store, [_source("doc", "application/pdf", 1, "slow.pdf")])
        resolver = PageResolver(converter, run_store, poll_interval_s=0.001, timeout_s=0.01)
        with pytest.raises(TranscodeTimeout) as excinfo:
            await resolver.resolve(run_id)
        assert excinfo.value.filename == "slow.pdf"
        assert not await run_store.has_resolved_pages(run_id)

    @pytest.mark.asyncio
    async def test_timeout_covers_all_sources(self, run_store, static_converter_cls):
        # Either source alone converts within the timeout, both together do not
        converter = static_converter_cls(
            images={"a": _images("a", 1), "b": _images("b", 1)},
            converting_polls={"a": 6, "b": 6},
        )
        sources = [
            _source("a", "application/pdf", 1, "first.pdf"),
            _source("b", "application/pdf", 2, "second.pdf"),
        ]
        run_id = await _start(run_store, sources)
        resolver = PageResolver(converter, run_store, poll_interval_s=0.02, timeout_s=0.2)
        with pytest.raises(TranscodeTimeout) as excinfo:
            await resolver.resolve(run_id)
        assert excinfo.value.filename == "second.pdf"


class TestTranscodeAnnotation:
    @pytest.mark.asyncio
    async def test_marks_needed_pages(self, run_store, image_sources, static_converter):
        run_id = await _start(run_store, image_sources[:3])
        resolver = PageResolver(static_converter, run_store, transcoder=_OddPagesTranscoder())
        pages = await resolver.resolve(run_id)
        assert [p.meta.transcode_status for p in pages] == ["needed", "not_needed", "needed"]

    @pytest.mark.asyncio
    async def test_noop_transcoder(self, run_store, image_sources, static_converter):
        run_id = await _start(run_store, image_sources[:2])
        resolver = PageResolver(static_converter, run_store, transcoder=NoopTranscoder())
        pages = await resolver.resolve(run_id)
        assert {p.meta.transcode_status for p in pages} == {"not_needed"}

    def test_from_settings(self, settings, run_store, static_converter):
        resolver = PageResolver.from_settings(settings, static_converter, run_store)
        assert resolver.poll_interval_s == 5.0
        assert resolver.timeout_s == 120.0
