# src/pipeline/dispatcher.py - v2
"""Work dispatchers: hand out window judging, transcodes and adjudication.

A dispatcher reports every outcome back through the orchestrator's
record_* / apply_* operations. The inline dispatcher does the work inside
the dispatch call; a queue-backed one would return immediately and report
later, leaving the run in a "wait" phase meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from fileorganizer.core.errors import FileOrganizationError, MissingConfiguration, OracleCallError
from fileorganizer.logging.context import set_phase_context

if TYPE_CHECKING:
    from fileorganizer.config.settings import Settings
    from fileorganizer.core.models import DuplicateCandidate, NullGroupQuery, Page, Window
    from fileorganizer.oracle.base_oracle import (
        BaseDuplicateResolutionOracle,
        BaseJudgmentOracle,
        BaseNullGroupOracle,
    )
    from fileorganizer.pages.base_transcoder import BaseTranscoder
    from fileorganizer.pipeline.orchestrator import FileOrganizationOrchestrator

logger = logging.getLogger(__name__)


def as_oracle_failure(exc: Exception, operation: str) -> FileOrganizationError:
    """Pipeline errors pass through; anything else becomes an OracleCallError."""
    if isinstance(exc, FileOrganizationError):
        return exc
    error = OracleCallError(f"{operation}: {type(exc).__name__}: {exc}")
    error.__cause__ = exc
    return error


class BaseDispatcher(ABC):
    """Hands asynchronous phase work to whatever executes it."""

    @abstractmethod
    async def dispatch_transcodes(
        self, run_id: str, pages: list[Page], reporter: FileOrganizationOrchestrator
    ) -> None:
        """Transcode pages; report each via ``record_transcode_result``."""

    @abstractmethod
    async def dispatch_windows(
        self, run_id: str, windows: list[Window], reporter: FileOrganizationOrchestrator
    ) -> None:
        """Judge windows; report via ``record_window_judgments`` or ``record_window_failure``."""

    @abstractmethod
    async def dispatch_resolution(
        self,
        run_id: str,
        candidates: list[DuplicateCandidate],
        queries: list[NullGroupQuery],
        reporter: FileOrganizationOrchestrator,
    ) -> None:
        """Adjudicate duplicates and blank pages; report via the apply_* operations."""


class InlineDispatcher(BaseDispatcher):
    """Runs all work in-process, judging windows concurrently."""

    def __init__(
        self,
        judgment_oracle: BaseJudgmentOracle,
        duplicate_oracle: BaseDuplicateResolutionOracle | None = None,
        null_group_oracle: BaseNullGroupOracle | None = None,
        transcoder: BaseTranscoder | None = None,
        max_concurrent_windows: int = 4,
    ) -> None:
        self._judgment_oracle = judgment_oracle
        self._duplicate_oracle = duplicate_oracle
        self._null_group_oracle = null_group_oracle
        self._transcoder = transcoder
        self.max_concurrent_windows = max_concurrent_windows

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        judgment_oracle: BaseJudgmentOracle,
        duplicate_oracle: BaseDuplicateResolutionOracle | None = None,
        null_group_oracle: BaseNullGroupOracle | None = None,
        transcoder: BaseTranscoder | None = None,
    ) -> InlineDispatcher:
        return cls(
            judgment_oracle,
            duplicate_oracle=duplicate_oracle,
            null_group_oracle=null_group_oracle,
            transcoder=transcoder,
            max_concurrent_windows=settings.max_concurrent_windows,
        )

    async def dispatch_transcodes(
        self, run_id: str, pages: list[Page], reporter: FileOrganizationOrchestrator
    ) -> None:
        if self._transcoder is None:
            raise MissingConfiguration("Pages need a transcode but no transcoder is configured")
        for page in pages:
            try:
                await self._transcoder.transcode(page)
            except Exception as exc:
                logger.exception("Transcode of page %d failed", page.page_number)
                await reporter.record_transcode_result(run_id, page.page_number, error=str(exc))
                continue
            await reporter.record_transcode_result(run_id, page.page_number)

    async def dispatch_windows(
        self, run_id: str, windows: list[Window], reporter: FileOrganizationOrchestrator
    ) -> None:
        semaphore = asyncio.Semaphore(self.max_concurrent_windows)

        async def _judge(window: Window) -> None:
            async with semaphore:
                set_phase_context("needs_windows", window.window_index)
                try:
                    judgment_set = await self._judgment_oracle.judge(window)
                    await reporter.record_window_judgments(
                        run_id, window.window_index, judgment_set
                    )
                except FileOrganizationError as exc:
                    logger.warning("Window %d failed: %s", window.window_index, exc)
                    await reporter.record_window_failure(run_id, window.window_index, exc)
                except Exception as exc:
                    logger.exception("Window %d: oracle raised", window.window_index)
                    failure = as_oracle_failure(exc, f"judge window {window.window_index}")
                    await reporter.record_window_failure(run_id, window.window_index, failure)

        await asyncio.gather(*(_judge(w) for w in windows))
        logger.info("Judged %d windows", len(windows))

    async def dispatch_resolution(
        self,
        run_id: str,
        candidates: list[DuplicateCandidate],
        queries: list[NullGroupQuery],
        reporter: FileOrganizationOrchestrator,
    ) -> None:
        if candidates and self._duplicate_oracle is None:
            raise MissingConfiguration("Duplicate candidates found but no duplicate oracle")
        if queries and self._null_group_oracle is None:
            raise MissingConfiguration("Null group queries found but no null group oracle")
        try:
            if candidates:
                decisions = await self._consult(
                    self._duplicate_oracle.resolve, candidates, "resolve duplicate groups",
                    run_id, reporter,
                )
                if decisions is None:
                    return
                await reporter.apply_duplicate_resolution(run_id, decisions)
            if queries:
                placements = await self._consult(
                    self._null_group_oracle.resolve, queries, "resolve null groups",
                    run_id, reporter,
                )
                if placements is None:
                    return
                await reporter.apply_null_group_resolution(run_id, placements)
        except FileOrganizationError as exc:
            # apply_* records its own failure before raising
            logger.warning("Resolution rejected: %s", exc)

    @staticmethod
    async def _consult(
        resolve: Callable[[list[Any]], Awaitable[list[Any]]],
        items: list[Any],
        operation: str,
        run_id: str,
        reporter: FileOrganizationOrchestrator,
    ) -> list[Any] | None:
        """Ask an adjudication oracle; record the failure and return None if it fails."""
        try:
            return await resolve(items)
        except Exception as exc:
            logger.warning("%s failed: %s", operation, exc)
            await reporter.record_resolution_failure(run_id, as_oracle_failure(exc, operation))
            return None
