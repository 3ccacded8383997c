# src/storage/models.py - v1
"""Persisted run records: manifest, transcode jobs, windows, resolution, output."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from fileorganizer.core.errors import ErrorInfo
from fileorganizer.core.models import (
    DuplicateDecision,
    FileAssignment,
    Group,
    JudgmentSet,
    NullGroupDecision,
    Window,
)


class PhaseEvent(BaseModel):
    """One action taken by the orchestrator, kept for operators."""

    phase: str
    action: str
    at: datetime
    detail: str = ""


class RunManifest(BaseModel):
    """Run-level state written to run_manifest.json."""

    run_id: str
    pipeline_version: str
    created_at: datetime
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    status: Literal["running", "completed", "failed"] = "running"
    error: ErrorInfo | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    events: list[PhaseEvent] = Field(default_factory=list)


class TranscodeJob(BaseModel):
    """Text transcode of one page."""

    page_number: int
    status: Literal["pending", "completed", "failed"] = "pending"
    created_at: datetime
    completed_at: datetime | None = None
    error: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None


class WindowRecord(BaseModel):
    """A window plus the outcome of judging it."""

    window: Window
    status: Literal["pending", "completed", "failed"] = "pending"
    judgment_set: JudgmentSet | None = None
    error: ErrorInfo | None = None
    failure_accepted: bool = False
    dispatched_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def window_index(self) -> int:
        return self.window.window_index

    @property
    def is_settled(self) -> bool:
        """Completed, or failed and accepted by an operator."""
        return self.status == "completed" or (
            self.status == "failed" and self.failure_accepted
        )

    @property
    def is_blocking(self) -> bool:
        return self.status == "failed" and not self.failure_accepted


class WindowIndex(BaseModel):
    """Marker written once every window record of a run exists."""

    window_count: int
    window_size: int
    overlap: int
    created_at: datetime


class ResolutionRecord(BaseModel):
    """Duplicate and blank-page adjudication after the merge."""

    status: Literal["dispatched", "completed", "failed"] = "dispatched"
    dispatched_at: datetime
    completed_at: datetime | None = None
    duplicate_decisions: list[DuplicateDecision] = Field(default_factory=list)
    null_group_decisions: list[NullGroupDecision] = Field(default_factory=list)
    duplicates_applied: bool = False
    null_groups_applied: bool = False
    # old group name -> canonical name, from the applied duplicate decisions
    renames: dict[str, str] = Field(default_factory=dict)
    error: ErrorInfo | None = None


class FinalPartition(BaseModel):
    """The run's current output partition."""

    groups: list[Group] = Field(default_factory=list)
    assignments: list[FileAssignment] = Field(default_factory=list)
    stage: Literal["merge", "resolution"] = "merge"
    updated_at: datetime
