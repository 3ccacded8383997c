# src/pipeline/orchestrator.py - v2
"""File organization orchestrator: a resumable state machine over stored runs.

Every ``advance()`` re-derives the next phase from a fresh snapshot and
acts on it. Synchronous phases (page resolution, merge) fall through to the
next phase; phases that dispatch work return after dispatching. Pipeline
errors never escape ``advance()``: they are recorded on the run manifest
and returned as a tagged AdvanceResult.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

from fileorganizer.core.errors import ErrorInfo, FileOrganizationError, MissingConfiguration
from fileorganizer.core.models import (
    DuplicateDecision,
    FileAssignment,
    Group,
    JudgmentSet,
    MergeResult,
    NullGroupDecision,
)
from fileorganizer.grouping.duplicate_resolution import (
    apply_duplicate_decisions,
    apply_null_group_decisions,
    build_rename_map,
)
from fileorganizer.logging.context import set_phase_context, set_run_context
from fileorganizer.oracle.contract import validate_judgment_set
from fileorganizer.pipeline.merge_phase import MergePhase
from fileorganizer.pipeline.state import (
    PhaseAction,
    PhaseDecision,
    RunPhase,
    RunSnapshot,
    derive_next_phase,
)
from fileorganizer.storage import run_manager
from fileorganizer.storage.models import (
    FinalPartition,
    ResolutionRecord,
    TranscodeJob,
    WindowIndex,
    WindowRecord,
)
from fileorganizer.windows.builder import build_windows, validate_window_config

if TYPE_CHECKING:
    from fileorganizer.config.settings import Settings
    from fileorganizer.pages.resolver import PageResolver
    from fileorganizer.pipeline.dispatcher import BaseDispatcher
    from fileorganizer.storage.run_store import RunStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AdvanceResult(BaseModel):
    """Tagged outcome of one ``advance()`` call."""

    run_id: str
    status: Literal["ok", "error"]
    phase: RunPhase | None = None
    action: PhaseAction | None = None
    reason: str = ""
    error: ErrorInfo | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def is_done(self) -> bool:
        return self.ok and self.phase is RunPhase.DONE


class FileOrganizationOrchestrator:
    """Drives one run at a time through its phases.

    Args:
        store: Run artifact store.
        page_resolver: Resolves sources into pages.
        dispatcher: Executes transcodes, window judging and adjudication.
        merge_phase: Merge engine plus group analysis.
        window_size: Pages per comparison window.
        window_overlap: Pages shared by consecutive windows.
    """

    def __init__(
        self,
        store: RunStore,
        page_resolver: PageResolver | None = None,
        dispatcher: BaseDispatcher | None = None,
        merge_phase: MergePhase | None = None,
        window_size: int = 5,
        window_overlap: int = 1,
    ) -> None:
        self._store = store
        self._page_resolver = page_resolver
        self._dispatcher = dispatcher
        self._merge_phase = merge_phase or MergePhase()
        self.window_size = window_size
        self.window_overlap = window_overlap

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: RunStore,
        page_resolver: PageResolver | None = None,
        dispatcher: BaseDispatcher | None = None,
    ) -> FileOrganizationOrchestrator:
        return cls(
            store,
            page_resolver=page_resolver,
            dispatcher=dispatcher,
            merge_phase=MergePhase.from_settings(settings),
            window_size=settings.window_size,
            window_overlap=settings.window_overlap,
        )

    @property
    def store(self) -> RunStore:
        return self._store

    # --- Advance ---

    async def advance(self, run_id: str) -> AdvanceResult:
        """Move the run forward as far as it can go without waiting.

        Raises:
            RunNotFoundError: If the run does not exist.
        """
        set_run_context(run_id)
        manifest = await self._store.load_manifest(run_id)
        if manifest.status == "failed":
            return AdvanceResult(
                run_id=run_id,
                status="error",
                error=manifest.error,
                reason="run failed, re-trigger it to resume",
            )

        try:
            decision = await self._advance(run_id)
        except FileOrganizationError as exc:
            info = await run_manager.mark_failed(self._store, run_id, exc)
            return AdvanceResult(run_id=run_id, status="error", error=info, reason=info.message)
        finally:
            set_phase_context(None)

        return AdvanceResult(
            run_id=run_id,
            status="ok",
            phase=decision.phase,
            action=decision.action,
            reason=decision.reason,
        )

    async def _advance(self, run_id: str) -> PhaseDecision:
        while True:
            snapshot = await self._store.load_snapshot(run_id)
            decision = derive_next_phase(snapshot)
            set_phase_context(decision.phase.value)
            if decision.action != "run":
                logger.info(
                    "Run %s: %s (%s) %s",
                    run_id, decision.phase.value, decision.action, decision.reason,
                )
                return decision

            logger.info("Run %s: running %s (%s)", run_id, decision.phase.value, decision.reason)
            falls_through = await self._run_phase(snapshot, decision.phase)
            await run_manager.record_event(
                self._store, run_id, decision.phase.value, "run", decision.reason
            )
            if not falls_through:
                return decision

    async def _run_phase(self, snapshot: RunSnapshot, phase: RunPhase) -> bool:
        if phase is RunPhase.NEEDS_PAGE_RESOLUTION:
            return await self._resolve_pages(snapshot)
        if phase is RunPhase.NEEDS_TRANSCODING:
            return await self._start_transcoding(snapshot)
        if phase is RunPhase.NEEDS_WINDOWS:
            return await self._create_windows(snapshot)
        if phase is RunPhase.NEEDS_MERGE:
            return await self._merge(snapshot)
        if phase is RunPhase.NEEDS_RESOLUTION:
            return await self._start_resolution(snapshot)
        raise ValueError(f"Nothing to run for phase {phase.value}")

    def _require_dispatcher(self) -> BaseDispatcher:
        if self._dispatcher is None:
            raise MissingConfiguration("No dispatcher configured")
        return self._dispatcher

    async def _resolve_pages(self, snapshot: RunSnapshot) -> bool:
        if self._page_resolver is None:
            raise MissingConfiguration("No page resolver configured")
        await self._page_resolver.resolve(snapshot.run_id)
        return True

    async def _start_transcoding(self, snapshot: RunSnapshot) -> bool:
        dispatcher = self._require_dispatcher()
        pages = [p for p in snapshot.pages or [] if p.meta.transcode_status == "needed"]
        now = _now()
        jobs = [TranscodeJob(page_number=p.page_number, created_at=now) for p in pages]
        await self._store.save_transcode_jobs(snapshot.run_id, jobs)
        logger.info("Dispatching %d transcode jobs", len(jobs))
        await dispatcher.dispatch_transcodes(snapshot.run_id, pages, self)
        return False

    async def _create_windows(self, snapshot: RunSnapshot) -> bool:
        validate_window_config(self.window_size, self.window_overlap)
        windows = build_windows(snapshot.pages or [], self.window_size, self.window_overlap)
        now = _now()
        for window in windows:
            await self._store.save_window(
                snapshot.run_id, WindowRecord(window=window, dispatched_at=now)
            )
        await self._store.save_window_index(
            snapshot.run_id,
            WindowIndex(
                window_count=len(windows),
                window_size=self.window_size,
                overlap=self.window_overlap,
                created_at=now,
            ),
        )
        if not windows:
            logger.info("Fewer than two pages, nothing to judge")
            return True

        logger.info("Dispatching %d windows", len(windows))
        await self._require_dispatcher().dispatch_windows(snapshot.run_id, windows, self)
        return False

    async def _merge(self, snapshot: RunSnapshot) -> bool:
        records = snapshot.windows or []
        judgment_sets = [r.judgment_set for r in records if r.judgment_set is not None]
        accepted = [r.window_index for r in records if r.status == "failed" and r.failure_accepted]
        if accepted:
            logger.warning("Merging without failed windows %s", accepted)

        page_numbers = [p.page_number for p in snapshot.pages or []]
        result = self._merge_phase.run(judgment_sets, page_numbers)
        await self._store.save_merge(snapshot.run_id, result)
        await self._publish(snapshot.run_id, result.groups, result.assignments, stage="merge")
        if not result.needs_resolution:
            await run_manager.mark_completed(self._store, snapshot.run_id)
        return True

    async def _start_resolution(self, snapshot: RunSnapshot) -> bool:
        merge = snapshot.merge
        assert merge is not None
        await self._store.save_resolution(
            snapshot.run_id, ResolutionRecord(status="dispatched", dispatched_at=_now())
        )
        logger.info(
            "Dispatching resolution: %d duplicate candidates, %d null group queries",
            len(merge.duplicate_candidates), len(merge.null_group_queries),
        )
        await self._require_dispatcher().dispatch_resolution(
            snapshot.run_id, merge.duplicate_candidates, merge.null_group_queries, self
        )
        return False

    # --- Reported outcomes ---

    async def record_transcode_result(
        self, run_id: str, page_number: int, error: str | None = None
    ) -> None:
        """Mark a page's transcode job finished, successfully unless ``error`` is set."""
        jobs = await self._store.load_transcode_jobs(run_id)
        job = next((j for j in jobs if j.page_number == page_number), None)
        if job is None:
            raise KeyError(f"Run {run_id} has no transcode job for page {page_number}")
        job.status = "failed" if error else "completed"
        job.error = error
        job.completed_at = _now()
        await self._store.save_transcode_jobs(run_id, jobs)

        if error is None:
            pages = await self._store.load_pages(run_id) or []
            for i, page in enumerate(pages):
                if page.page_number == page_number:
                    meta = page.meta.model_copy(update={"transcode_status": "completed"})
                    pages[i] = page.model_copy(update={"meta": meta})
            await self._store.save_pages(run_id, pages)
        else:
            logger.warning("Transcode of page %d failed: %s", page_number, error)

    async def record_window_judgments(
        self, run_id: str, window_index: int, judgment_set: JudgmentSet
    ) -> None:
        """Store a window's judgments after checking them against the window.

        Raises:
            OracleContractError: If the judgments do not answer this window.
        """
        record = await self._store.load_window(run_id, window_index)
        record.judgment_set = validate_judgment_set(record.window, judgment_set)
        record.status = "completed"
        record.error = None
        record.failure_accepted = False
        record.completed_at = _now()
        await self._store.save_window(run_id, record)
        logger.debug("Window %d completed", window_index)

    async def record_window_failure(
        self, run_id: str, window_index: int, exc: FileOrganizationError
    ) -> None:
        record = await self._store.load_window(run_id, window_index)
        record.status = "failed"
        record.error = ErrorInfo.from_exception(exc)
        record.failure_accepted = False
        record.completed_at = _now()
        await self._store.save_window(run_id, record)

    async def accept_failed_window(self, run_id: str, window_index: int) -> None:
        """Let the merge proceed without a failed window's judgments."""
        record = await self._store.load_window(run_id, window_index)
        if record.status != "failed":
            raise ValueError(f"Window {window_index} has not failed (status {record.status})")
        record.failure_accepted = True
        await self._store.save_window(run_id, record)
        await run_manager.record_event(
            self._store, run_id, RunPhase.NEEDS_MERGE.value, "accept_failed_window",
            f"window {window_index}",
        )

    async def redispatch_windows(self, run_id: str, window_indexes: list[int] | None = None) -> None:
        """Send unsettled windows (all of them, or the given ones) to the oracle again."""
        if await self._store.load_merge(run_id) is not None:
            raise ValueError(f"Run {run_id} is already merged")
        records = await self._store.load_windows(run_id) or []
        wanted = set(window_indexes) if window_indexes is not None else None
        retry = [
            r for r in records
            if not r.is_settled and (wanted is None or r.window_index in wanted)
        ]
        now = _now()
        for record in retry:
            record.status = "pending"
            record.error = None
            record.dispatched_at = now
            record.completed_at = None
            await self._store.save_window(run_id, record)
        if retry:
            await self._require_dispatcher().dispatch_windows(
                run_id, [r.window for r in retry], self
            )

    # --- Resolution ---

    async def _load_resolution_inputs(
        self, run_id: str
    ) -> tuple[MergeResult, FinalPartition, ResolutionRecord]:
        merge = await self._store.load_merge(run_id)
        final = await self._store.load_final(run_id)
        if merge is None or final is None:
            raise ValueError(f"Run {run_id} has not been merged yet")
        record = await self._store.load_resolution(run_id) or ResolutionRecord(
            status="dispatched", dispatched_at=_now()
        )
        return merge, final, record

    async def apply_duplicate_resolution(
        self, run_id: str, decisions: list[DuplicateDecision]
    ) -> list[Group]:
        """Rename and merge groups per the duplicate decisions.

        Raises:
            UnknownGroupError: If a decision names a group that does not exist.
            OracleContractError: If decisions contradict each other.
        """
        merge, final, record = await self._load_resolution_inputs(run_id)
        try:
            renames = build_rename_map(decisions, {g.name for g in final.groups})
            groups, assignments = apply_duplicate_decisions(
                final.groups, final.assignments, decisions
            )
        except FileOrganizationError as exc:
            await self.record_resolution_failure(run_id, exc)
            raise

        # Earlier renames now point at a name that may itself have been renamed.
        merged = {old: renames.get(new, new) for old, new in record.renames.items()}
        merged.update(renames)
        record.renames = merged
        record.duplicate_decisions = decisions
        record.duplicates_applied = True
        return await self._save_resolution_progress(run_id, merge, record, groups, assignments)

    async def apply_null_group_resolution(
        self, run_id: str, decisions: list[NullGroupDecision]
    ) -> list[Group]:
        """Place queued blank pages into the neighbour group each decision names.

        Raises:
            OracleContractError: If a decision targets an unqueued page or a
                group that is not one of the page's neighbours.
        """
        merge, final, record = await self._load_resolution_inputs(run_id)
        renames = record.renames
        queries = [
            q.model_copy(update={
                "previous_group": renames.get(q.previous_group, q.previous_group),
                "next_group": renames.get(q.next_group, q.next_group),
            })
            for q in merge.null_group_queries
        ]
        placements = [
            d.model_copy(update={"group_name": renames.get(d.group_name, d.group_name)})
            for d in decisions
        ]
        try:
            groups, assignments = apply_null_group_decisions(final.assignments, queries, placements)
        except FileOrganizationError as exc:
            await self.record_resolution_failure(run_id, exc)
            raise

        record.null_group_decisions = decisions
        record.null_groups_applied = True
        return await self._save_resolution_progress(run_id, merge, record, groups, assignments)

    async def _save_resolution_progress(
        self,
        run_id: str,
        merge: MergeResult,
        record: ResolutionRecord,
        groups: list[Group],
        assignments: list[FileAssignment],
    ) -> list[Group]:
        duplicates_done = record.duplicates_applied or not merge.duplicate_candidates
        null_groups_done = record.null_groups_applied or not merge.null_group_queries
        complete = duplicates_done and null_groups_done
        if complete:
            record.status = "completed"
            record.completed_at = _now()
            record.error = None
        await self._store.save_resolution(run_id, record)
        await self._publish(run_id, groups, assignments, stage="resolution")
        if complete:
            await run_manager.mark_completed(self._store, run_id)
            logger.info("Resolution applied: %d final groups", len(groups))
        return groups

    async def record_resolution_failure(self, run_id: str, exc: FileOrganizationError) -> None:
        record = await self._store.load_resolution(run_id) or ResolutionRecord(
            dispatched_at=_now()
        )
        record.status = "failed"
        record.error = ErrorInfo.from_exception(exc)
        await self._store.save_resolution(run_id, record)
        logger.error("Resolution failed: %s", exc)

    # --- Operator ---

    async def retrigger_run(self, run_id: str) -> AdvanceResult:
        """Clear a recorded failure and advance again.

        An unfinished resolution is dropped so it is dispatched afresh.
        """
        set_run_context(run_id)
        await run_manager.clear_failure(self._store, run_id)
        record = await self._store.load_resolution(run_id)
        if record is not None and record.status != "completed":
            await self._store.delete_resolution(run_id)
            final = await self._store.load_final(run_id)
            merge = await self._store.load_merge(run_id)
            if final is not None and merge is not None and final.stage == "resolution":
                await self._publish(run_id, merge.groups, merge.assignments, stage="merge")
        await run_manager.record_event(self._store, run_id, "retrigger", "retrigger_run")
        return await self.advance(run_id)

    async def get_final_groups(self, run_id: str) -> list[Group]:
        """Current output groups; empty until the run has been merged."""
        final = await self._store.load_final(run_id)
        return list(final.groups) if final is not None else []

    # --- Output ---

    async def _publish(
        self,
        run_id: str,
        groups: list[Group],
        assignments: list[FileAssignment],
        stage: Literal["merge", "resolution"],
    ) -> None:
        await self._store.save_final(
            run_id,
            FinalPartition(groups=groups, assignments=assignments, stage=stage, updated_at=_now()),
        )
        pages = await self._store.load_pages(run_id) or []
        rows = {a.page_number: a for a in assignments}
        annotated = []
        for page in pages:
            row = rows.get(page.page_number)
            if row is None:
                annotated.append(page)
                continue
            meta = page.meta.model_copy(
                update={"group_name": row.group_name, "adjacency_score": row.belongs_to_previous}
            )
            annotated.append(page.model_copy(update={"meta": meta}))
        await self._store.save_pages(run_id, annotated)
