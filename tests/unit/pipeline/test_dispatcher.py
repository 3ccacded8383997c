# tests/unit/pipeline/test_dispatcher.py - v2
"""Tests for pipeline/dispatcher.py - inline work dispatch."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from fileorganizer.core.errors import (
    MissingConfiguration,
    OracleCallError,
    OracleContractError,
    UnknownGroupError,
)
from fileorganizer.core.models import (
    DuplicateCandidate,
    DuplicateDecision,
    GroupProfile,
    JudgmentSet,
    NullGroupDecision,
    NullGroupQuery,
    Page,
    Window,
)
from fileorganizer.oracle.base_oracle import BaseJudgmentOracle
from fileorganizer.pages.base_transcoder import BaseTranscoder
from fileorganizer.pipeline.dispatcher import InlineDispatcher
from fileorganizer.windows.builder import build_windows


class _ConcurrencyCounter(BaseJudgmentOracle):
    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def judge(self, window: Window) -> JudgmentSet:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.001)
        self.active -= 1
        return JudgmentSet(window_index=window.window_index, judgments=[])


class _BrokenOracle(BaseJudgmentOracle):
    """Raises a provider SDK error instead of a pipeline error."""

    def __init__(self, broken_window: int) -> None:
        self.broken_window = broken_window

    async def judge(self, window: Window) -> JudgmentSet:
        if window.window_index == self.broken_window:
            raise RuntimeError("provider SDK blew up")
        return JudgmentSet(window_index=window.window_index, judgments=[])


class _FlakyTranscoder(BaseTranscoder):
    async def needs_transcode(self, page: Page) -> bool:
        return True

    async def transcode(self, page: Page) -> str:
        if page.page_number == 2:
            raise RuntimeError("OCR engine crashed")
        return "text"


def _reporter() -> AsyncMock:
    return AsyncMock()


def _candidate() -> DuplicateCandidate:
    return DuplicateCandidate(
        group1=GroupProfile(name="A"), group2=GroupProfile(name="A."), similarity=1.0
    )


class TestDispatchWindows:
    @pytest.mark.asyncio
    async def test_reports_every_window(self, sample_pages, scripted_oracle):
        reporter = _reporter()
        windows = build_windows(sample_pages, 4, 1)
        await InlineDispatcher(scripted_oracle).dispatch_windows("r", windows, reporter)
        reported = sorted(c.args[1] for c in reporter.record_window_judgments.await_args_list)
        assert reported == [0, 1, 2]
        reporter.record_window_failure.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failures_are_reported(self, sample_pages, scripted_oracle_cls, two_document_script):
        oracle = scripted_oracle_cls(two_document_script, fail_windows={2})
        reporter = _reporter()
        windows = build_windows(sample_pages, 4, 1)
        await InlineDispatcher(oracle).dispatch_windows("r", windows, reporter)
        reporter.record_window_failure.assert_awaited_once()
        run_id, window_index, exc = reporter.record_window_failure.await_args.args
        assert (run_id, window_index) == ("r", 2)
        assert isinstance(exc, OracleCallError)
        assert reporter.record_window_judgments.await_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_oracle_exception_is_reported(self, sample_pages):
        reporter = _reporter()
        windows = build_windows(sample_pages, 4, 1)
        await InlineDispatcher(_BrokenOracle(broken_window=1)).dispatch_windows("r", windows, reporter)

        reporter.record_window_failure.assert_awaited_once()
        _, window_index, exc = reporter.record_window_failure.await_args.args
        assert window_index == 1
        assert isinstance(exc, OracleCallError)
        assert "provider SDK blew up" in str(exc)
        assert isinstance(exc.__cause__, RuntimeError)
        assert reporter.record_window_judgments.await_count == 2

    @pytest.mark.asyncio
    async def test_rejected_judgments_are_reported(self, sample_pages, scripted_oracle):
        reporter = _reporter()
        reporter.record_window_judgments.side_effect = OracleContractError("page 5 missing")
        windows = build_windows(sample_pages, 4, 1)[:1]
        await InlineDispatcher(scripted_oracle).dispatch_windows("r", windows, reporter)
        _, window_index, exc = reporter.record_window_failure.await_args.args
        assert window_index == 0
        assert isinstance(exc, OracleContractError)

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, sample_pages):
        counter = _ConcurrencyCounter()
        windows = build_windows(sample_pages, 2, 1)
        assert len(windows) == 9
        await InlineDispatcher(counter, max_concurrent_windows=2).dispatch_windows(
            "r", windows, _reporter()
        )
        assert counter.peak == 2

    def test_from_settings(self, settings, scripted_oracle):
        dispatcher = InlineDispatcher.from_settings(settings, scripted_oracle)
        assert dispatcher.max_concurrent_windows == 4


class TestDispatchTranscodes:
    @pytest.mark.asyncio
    async def test_failure_is_recorded_and_others_continue(self, sample_pages, scripted_oracle):
        reporter = _reporter()
        dispatcher = InlineDispatcher(scripted_oracle, transcoder=_FlakyTranscoder())
        await dispatcher.dispatch_transcodes("r", sample_pages[:3], reporter)
        calls = reporter.record_transcode_result.await_args_list
        assert [c.args[1] for c in calls] == [1, 2, 3]
        assert calls[1].kwargs == {"error": "OCR engine crashed"}
        assert calls[0].kwargs == {}

    @pytest.mark.asyncio
    async def test_requires_transcoder(self, sample_pages, scripted_oracle):
        with pytest.raises(MissingConfiguration):
            await InlineDispatcher(scripted_oracle).dispatch_transcodes("r", sample_pages, _reporter())


class TestDispatchResolution:
    @pytest.mark.asyncio
    async def test_applies_both_kinds(self, scripted_oracle):
        decision = DuplicateDecision(original_names=["A."], canonical_name="A", reason="same")
        placement = NullGroupDecision(page_number=3, group_name="A", reason="cover")
        duplicate_oracle = AsyncMock()
        duplicate_oracle.resolve = AsyncMock(return_value=[decision])
        null_group_oracle = AsyncMock()
        null_group_oracle.resolve = AsyncMock(return_value=[placement])
        reporter = _reporter()
        query = NullGroupQuery(page_number=3, previous_group="A", next_group="B")

        dispatcher = InlineDispatcher(
            scripted_oracle, duplicate_oracle=duplicate_oracle, null_group_oracle=null_group_oracle
        )
        await dispatcher.dispatch_resolution("r", [_candidate()], [query], reporter)

        reporter.apply_duplicate_resolution.assert_awaited_once_with("r", [decision])
        reporter.apply_null_group_resolution.assert_awaited_once_with("r", [placement])
        reporter.record_resolution_failure.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oracle_error_is_recorded(self, scripted_oracle):
        duplicate_oracle = AsyncMock()
        duplicate_oracle.resolve = AsyncMock(side_effect=OracleContractError("bad json"))
        reporter = _reporter()
        dispatcher = InlineDispatcher(scripted_oracle, duplicate_oracle=duplicate_oracle)
        await dispatcher.dispatch_resolution("r", [_candidate()], [], reporter)
        reporter.record_resolution_failure.assert_awaited_once()
        reporter.apply_duplicate_resolution.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_oracle_exception_is_wrapped(self, scripted_oracle):
        duplicate_oracle = AsyncMock()
        duplicate_oracle.resolve = AsyncMock(side_effect=ConnectionResetError("peer reset"))
        reporter = _reporter()
        dispatcher = InlineDispatcher(scripted_oracle, duplicate_oracle=duplicate_oracle)
        await dispatcher.dispatch_resolution("r", [_candidate()], [], reporter)
        (run_id, exc), _ = reporter.record_resolution_failure.await_args
        assert run_id == "r"
        assert isinstance(exc, OracleCallError)
        assert isinstance(exc.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_rejected_decisions_are_recorded_once(self, scripted_oracle):
        duplicate_oracle = AsyncMock()
        duplicate_oracle.resolve = AsyncMock(return_value=[])
        null_group_oracle = AsyncMock()
        reporter = _reporter()
        reporter.apply_duplicate_resolution.side_effect = UnknownGroupError("Initech")
        query = NullGroupQuery(page_number=3, previous_group="A", next_group="B")
        dispatcher = InlineDispatcher(
            scripted_oracle, duplicate_oracle=duplicate_oracle, null_group_oracle=null_group_oracle
        )

        await dispatcher.dispatch_resolution("r", [_candidate()], [query], reporter)

        reporter.record_resolution_failure.assert_not_awaited()
        null_group_oracle.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_oracles(self, scripted_oracle):
        dispatcher = InlineDispatcher(scripted_oracle)
        with pytest.raises(MissingConfiguration, match="duplicate oracle"):
            await dispatcher.dispatch_resolution("r", [_candidate()], [], _reporter())
        query = NullGroupQuery(page_number=3, previous_group="A", next_group="B")
        with pytest.raises(MissingConfiguration, match="null group oracle"):
            await dispatcher.dispatch_resolution("r", [], [query], _reporter())

    @pytest.mark.asyncio
    async def test_nothing_to_resolve(self, scripted_oracle):
        reporter = _reporter()
        await InlineDispatcher(scripted_oracle).dispatch_resolution("r", [], [], reporter)
        reporter.apply_duplicate_resolution.assert_not_awaited()
