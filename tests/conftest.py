# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides settings, an in-memory run store, sample pages, a scripted
judgment oracle, a static source converter and mock LLM clients.
No external dependencies: all I/O is in memory or under tmp_path.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from fileorganizer.config.settings import Settings
from fileorganizer.core.errors import OracleCallError
from fileorganizer.core.models import (
    Judgment,
    JudgmentSet,
    Page,
    PageImage,
    SourceDocument,
    Window,
)
from fileorganizer.llm.models import LLMResponse
from fileorganizer.oracle.base_oracle import BaseJudgmentOracle
from fileorganizer.pages.base_converter import BaseSourceConverter
from fileorganizer.storage.memory_writer import MemoryWriter
from fileorganizer.storage.run_store import RunStore


# === TEST DOUBLES ===


class ScriptedJudgmentOracle(BaseJudgmentOracle):
    """Judges windows from a fixed page -> group script.

    Pages in ``breaks`` start a new document (belongs_to_previous=0); every
    other page continues its predecessor with score 5.
    """

    def __init__(
        self,
        groups: dict[int, str],
        confidence: int | dict[int, int] = 5,
        breaks: set[int] | None = None,
        fail_windows: set[int] | None = None,
    ) -> None:
        self.groups = groups
        self.confidence = confidence
        self.breaks = breaks or set()
        self.fail_windows = fail_windows or set()
        self.calls: list[int] = []

    def _confidence(self, page_number: int) -> int:
        if isinstance(self.confidence, dict):
            return self.confidence.get(page_number, 5)
        return self.confidence

    async def judge(self, window: Window) -> JudgmentSet:
        self.calls.append(window.window_index)
        if window.window_index in self.fail_windows:
            raise OracleCallError(f"window {window.window_index} unavailable")
        judgments = []
        for i, page in enumerate(window.pages):
            n = page.page_number
            if i == 0:
                score, reason = None, None
            elif n in self.breaks:
                score, reason = 0, "New document header"
            else:
                score, reason = 5, "Continues previous page"
            judgments.append(
                Judgment(
                    page_number=n,
                    belongs_to_previous=score,
                    belongs_to_previous_reason=reason,
                    group_name=self.groups.get(n, ""),
                    group_name_confidence=self._confidence(n),
                    group_explanation=f"Header on page {n}",
                )
            )
        return JudgmentSet(window_index=window.window_index, judgments=judgments)


class StaticConverter(BaseSourceConverter):
    """Returns canned page images; a source stays "converting" for N polls."""

    def __init__(
        self,
        images: dict[str, list[PageImage]] | None = None,
        converting_polls: dict[str, int] | None = None,
    ) -> None:
        self.images = images or {}
        self.converting_polls = dict(converting_polls or {})
        self.poll_count = 0

    async def is_converting(self, source: SourceDocument) -> bool:
        self.poll_count += 1
        remaining = self.converting_polls.get(source.source_id, 0)
        if remaining > 0:
            self.converting_polls[source.source_id] = remaining - 1
            return True
        return False

    async def page_images(self, source: SourceDocument) -> list[PageImage]:
        return list(self.images.get(source.source_id, []))


# === FIXTURES: Settings / storage ===


@pytest.fixture
def settings() -> Settings:
    """Default settings with the in-memory store, ignoring any .env file."""
    return Settings(_env_file=None, store_backend="memory")


@pytest.fixture
def memory_writer() -> MemoryWriter:
    return MemoryWriter()


@pytest.fixture
def run_store(memory_writer: MemoryWriter) -> RunStore:
    return RunStore(memory_writer)


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_pages() -> list[Page]:
    """Ten single-image pages numbered 1-10."""
    return [
        Page(
            page_number=n,
            source_id=f"src_{n:02d}",
            filename=f"scan_{n:02d}.png",
            mime_type="image/png",
            uri=f"file:///scans/scan_{n:02d}.png",
        )
        for n in range(1, 11)
    ]


@pytest.fixture
def image_sources() -> list[SourceDocument]:
    """Ten image sources, one page each."""
    return [
        SourceDocument(
            source_id=f"src_{n:02d}",
            filename=f"scan_{n:02d}.png",
            mime_type="image/png",
            uri=f"file:///scans/scan_{n:02d}.png",
            position=n,
        )
        for n in range(1, 11)
    ]


@pytest.fixture
def two_document_script() -> dict[int, str]:
    """Pages 1-5 belong to Acme Corp, pages 6-10 to Globex Inc."""
    return {n: "Acme Corp" if n <= 5 else "Globex Inc" for n in range(1, 11)}


@pytest.fixture
def scripted_oracle(two_document_script: dict[int, str]) -> ScriptedJudgmentOracle:
    return ScriptedJudgmentOracle(two_document_script, breaks={6})


@pytest.fixture
def static_converter() -> StaticConverter:
    return StaticConverter()


# === FIXTURES: Mock LLM ===


@pytest.fixture
def mock_llm_response() -> LLMResponse:
    """Standard mock LLM response."""
    return LLMResponse(
        content='{"judgments": []}',
        input_tokens=100,
        output_tokens=50,
        model="claude-sonnet-4-20250514",
        provider="anthropic",
        latency_ms=500,
    )


@pytest.fixture
def mock_llm_client(mock_llm_response: LLMResponse) -> AsyncMock:
    """Mock BaseLLMClient with default response."""
    client = AsyncMock()
    client.complete = AsyncMock(return_value=mock_llm_response)
    client.complete_with_vision = AsyncMock(return_value=mock_llm_response)
    client.supports_vision = True
    client.provider_name = "mock"
    return client


# === FIXTURES: Temp dirs ===


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Temporary output directory."""
    out = tmp_path / "output"
    out.mkdir()
    return out


# === FIXTURES: Test double classes ===


@pytest.fixture
def scripted_oracle_cls() -> type[ScriptedJudgmentOracle]:
    """The scripted oracle class, for tests that need their own script."""
    return ScriptedJudgmentOracle


@pytest.fixture
def static_converter_cls() -> type[StaticConverter]:
    return StaticConverter
