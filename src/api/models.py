# src/api/models.py - v2
"""API-level models: organize results and the oracle bundle."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field

from fileorganizer.core.errors import ErrorInfo
from fileorganizer.core.models import FileAssignment, Group, LowConfidencePage
from fileorganizer.oracle.base_oracle import (
    BaseDuplicateResolutionOracle,
    BaseJudgmentOracle,
    BaseNullGroupOracle,
)
from fileorganizer.pipeline.state import RunPhase


@dataclass
class OracleSet:
    """The oracles a run needs: judging is mandatory, adjudication optional."""

    judgment: BaseJudgmentOracle
    duplicate_resolution: BaseDuplicateResolutionOracle | None = None
    null_group: BaseNullGroupOracle | None = None


class OrganizeResult(BaseModel):
    """Outcome of driving a run as far as it can go."""

    run_id: str
    phase: RunPhase | None = None
    completed: bool = False
    groups: list[Group] = Field(default_factory=list)
    assignments: list[FileAssignment] = Field(default_factory=list)
    low_confidence_pages: list[LowConfidencePage] = Field(default_factory=list)
    error: ErrorInfo | None = None
    steps: int = 0
