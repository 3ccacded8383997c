# tests/unit/oracle/test_page_loader.py - v2
"""Tests for oracle/page_loader.py."""

from __future__ import annotations

import asyncio

import pytest

from fileorganizer.core.models import Page
from fileorganizer.oracle import page_loader
from fileorganizer.oracle.page_loader import LocalPageLoader


def _page(uri: str) -> Page:
    return Page(page_number=1, source_id="s", filename="p.png", mime_type="image/png", uri=uri)


class TestLocalPageLoader:
    @pytest.mark.asyncio
    async def test_file_uri(self, tmp_path):
        image = tmp_path / "p1.png"
        image.write_bytes(b"\x89PNG")
        assert await LocalPageLoader().load(_page(image.as_uri())) == b"\x89PNG"

    @pytest.mark.asyncio
    async def test_relative_path_under_base(self, tmp_path):
        (tmp_path / "scans").mkdir()
        (tmp_path / "scans" / "p2.png").write_bytes(b"data")
        loader = LocalPageLoader(tmp_path)
        assert await loader.load(_page("scans/p2.png")) == b"data"

    @pytest.mark.asyncio
    async def test_reads_off_the_event_loop(self, tmp_path, monkeypatch):
        image = tmp_path / "p1.png"
        image.write_bytes(b"data")
        offloaded = []
        real_to_thread = asyncio.to_thread

        async def _recording_to_thread(func, *args, **kwargs):
            offloaded.append(func)
            return await real_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(page_loader.asyncio, "to_thread", _recording_to_thread)
        assert await LocalPageLoader().load(_page(image.as_uri())) == b"data"
        assert len(offloaded) == 1

    def test_resolve_absolute_ignores_base(self, tmp_path):
        loader = LocalPageLoader(tmp_path)
        assert loader.resolve("file:///srv/p.png").as_posix() == "/srv/p.png"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await LocalPageLoader(tmp_path).load(_page("nope.png"))
