# src/pipeline/state.py - v2
"""Run snapshot and phase derivation.

No "current phase" is ever stored. Every trigger loads a snapshot of what
the run has persisted and derives the next phase from it, checking phases
in a fixed order where the first unmet one wins:

    needs_page_resolution -> needs_transcoding -> needs_windows
        -> needs_merge -> needs_resolution -> done
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from fileorganizer.core.models import MergeResult, Page
from fileorganizer.storage.models import (
    FinalPartition,
    ResolutionRecord,
    RunManifest,
    TranscodeJob,
    WindowRecord,
)

PhaseAction = Literal["run", "wait", "blocked", "none"]


class RunPhase(str, Enum):
    NEEDS_PAGE_RESOLUTION = "needs_page_resolution"
    NEEDS_TRANSCODING = "needs_transcoding"
    NEEDS_WINDOWS = "needs_windows"
    NEEDS_MERGE = "needs_merge"
    NEEDS_RESOLUTION = "needs_resolution"
    DONE = "done"


class PhaseDecision(BaseModel):
    """Next phase of a run and what the orchestrator should do about it."""

    phase: RunPhase
    action: PhaseAction
    reason: str = ""


class RunSnapshot(BaseModel):
    """Everything persisted for one run, loaded in one go."""

    run_id: str
    manifest: RunManifest
    pages: list[Page] | None = None
    transcode_jobs: list[TranscodeJob] = Field(default_factory=list)
    windows: list[WindowRecord] | None = None
    merge: MergeResult | None = None
    resolution: ResolutionRecord | None = None
    final: FinalPartition | None = None

    @property
    def pages_resolved(self) -> bool:
        return self.pages is not None


def derive_next_phase(snapshot: RunSnapshot) -> PhaseDecision:
    """Derive the run's next phase from persisted state only."""
    if not snapshot.pages_resolved:
        return PhaseDecision(
            phase=RunPhase.NEEDS_PAGE_RESOLUTION, action="run", reason="no resolved pages"
        )

    jobs = snapshot.transcode_jobs
    if jobs:
        pending = [j.page_number for j in jobs if not j.is_complete]
        if pending:
            return PhaseDecision(
                phase=RunPhase.NEEDS_TRANSCODING,
                action="wait",
                reason=f"{len(pending)} transcode jobs outstanding",
            )
    else:
        needed = [p.page_number for p in snapshot.pages or [] if p.meta.transcode_status == "needed"]
        if needed:
            return PhaseDecision(
                phase=RunPhase.NEEDS_TRANSCODING,
                action="run",
                reason=f"{len(needed)} pages need a transcode",
            )

    if snapshot.windows is None:
        return PhaseDecision(phase=RunPhase.NEEDS_WINDOWS, action="run", reason="no windows")

    if snapshot.merge is None:
        blocking = [w.window_index for w in snapshot.windows if w.is_blocking]
        if blocking:
            return PhaseDecision(
                phase=RunPhase.NEEDS_MERGE,
                action="blocked",
                reason=f"failed windows need an operator: {blocking}",
            )
        pending = [w.window_index for w in snapshot.windows if not w.is_settled]
        if pending:
            return PhaseDecision(
                phase=RunPhase.NEEDS_MERGE,
                action="wait",
                reason=f"{len(pending)} windows outstanding",
            )
        return PhaseDecision(phase=RunPhase.NEEDS_MERGE, action="run", reason="all windows settled")

    if snapshot.merge.needs_resolution:
        record = snapshot.resolution
        if record is None:
            return PhaseDecision(
                phase=RunPhase.NEEDS_RESOLUTION, action="run", reason="resolution not dispatched"
            )
        if record.status == "dispatched":
            return PhaseDecision(
                phase=RunPhase.NEEDS_RESOLUTION, action="wait", reason="resolution outstanding"
            )
        if record.status == "failed":
            return PhaseDecision(
                phase=RunPhase.NEEDS_RESOLUTION,
                action="blocked",
                reason="resolution failed, re-trigger the run to dispatch it again",
            )

    return PhaseDecision(phase=RunPhase.DONE, action="none", reason="final groups written")
