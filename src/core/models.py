# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Oracle-facing records (Judgment, JudgmentSet, DuplicateDecision,
NullGroupDecision) forbid extra fields so a malformed answer fails at
validation instead of leaking into the merge.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# 0-5 scale shared by group confidence and adjacency votes.
Score = Annotated[int, Field(ge=0, le=5)]

BLANK_GROUP = ""


# === INPUT ===


class SourceDocument(BaseModel):
    """One input document of a run, in run order."""

    source_id: str
    filename: str
    mime_type: str
    uri: str = ""
    position: int = 0


class PageImage(BaseModel):
    """A page image produced by converting a multi-page source."""

    uri: str
    mime_type: str = "image/png"
    filename: str = ""


class PageMeta(BaseModel):
    """Annotations added to a page after it was numbered."""

    transcode_status: Literal["unknown", "needed", "not_needed", "completed"] = "unknown"
    adjacency_score: int | None = None
    group_name: str | None = None


class Page(BaseModel):
    """One physical page with its run-wide sequential number."""

    page_number: int = Field(ge=1)
    source_id: str
    filename: str
    mime_type: str
    uri: str = ""
    meta: PageMeta = Field(default_factory=PageMeta)


class Window(BaseModel):
    """Contiguous range of pages judged together by the oracle."""

    window_index: int
    window_start: int
    window_end: int
    pages: list[Page]

    @property
    def page_numbers(self) -> list[int]:
        return [p.page_number for p in self.pages]


# === ORACLE JUDGMENTS ===


class Judgment(BaseModel):
    """One window's opinion about one page.

    Every field is required; only the belongs_to_previous pair may be null,
    and only for the first page of a window.
    """

    model_config = ConfigDict(extra="forbid")

    page_number: int
    belongs_to_previous: Score | None
    belongs_to_previous_reason: str | None
    group_name: str
    group_name_confidence: Score
    group_explanation: str


class JudgmentSet(BaseModel):
    """All judgments returned for one window."""

    model_config = ConfigDict(extra="forbid")

    window_index: int
    judgments: list[Judgment]


# === MERGE ===


class GroupVote(BaseModel):
    """A single group vote for a page, as seen in one window."""

    group_name: str
    confidence: int = 5
    explanation: str = ""
    window_index: int | None = None


class FileData(BaseModel):
    """Per-page aggregate of every vote the page received."""

    page_number: int
    group_votes: list[GroupVote] = Field(default_factory=list)
    adjacency_votes: list[int] = Field(default_factory=list)
    belongs_to_previous_reason: str | None = None
    group_name: str = BLANK_GROUP
    group_confidence: int = 0
    group_explanation: str = ""


class FileAssignment(BaseModel):
    """Final per-page row of the partition."""

    page_number: int
    group_name: str
    confidence: int
    explanation: str = ""
    belongs_to_previous: int | None = None
    belongs_to_previous_reason: str | None = None


class Group(BaseModel):
    """A named set of pages forming one logical document."""

    name: str
    description: str = ""
    files: list[int] = Field(default_factory=list)


class LowConfidencePage(BaseModel):
    """A page whose winning vote stayed below the confidence bar."""

    page_number: int
    group_name: str
    confidence: int
    explanations: list[str] = Field(default_factory=list)


# === GROUP ANALYSIS ===


class ConfidenceSummary(BaseModel):
    """Confidence statistics of one group over its member pages."""

    group_name: str
    avg: float
    min: int
    max: int
    all_scores: list[int] = Field(default_factory=list)
    level: Literal["low", "medium", "high"]


class AbsorptionDecision(BaseModel):
    """A low-confidence group folded into an overlapping high-confidence one."""

    low_group: str
    high_group: str
    shared_pages: list[int]
    moved_pages: list[int]


class GroupSample(BaseModel):
    """A member page shown to the duplicate oracle for context."""

    page_number: int
    description: str = ""
    confidence: int = 0


class GroupProfile(BaseModel):
    """Group summary attached to a duplicate candidate."""

    name: str
    description: str = ""
    file_count: int = 0
    sample_files: list[GroupSample] = Field(default_factory=list)
    confidence_summary: ConfidenceSummary | None = None


class DuplicateCandidate(BaseModel):
    """Pair of group names likely to denote the same entity."""

    group1: GroupProfile
    group2: GroupProfile
    similarity: float


class DuplicateDecision(BaseModel):
    """Oracle verdict for a set of group names."""

    model_config = ConfigDict(extra="forbid")

    original_names: list[str] = Field(min_length=1)
    canonical_name: str
    reason: str

    @property
    def is_rename(self) -> bool:
        return (
            len(self.original_names) == 1
            and self.original_names[0] != self.canonical_name
        )

    @property
    def is_merge(self) -> bool:
        return len(set(self.original_names)) > 1


class NullGroupQuery(BaseModel):
    """A blank page sitting between two different groups."""

    page_number: int
    previous_group: str
    next_group: str
    description: str = ""
    confidence: int = 0


class NullGroupDecision(BaseModel):
    """Oracle verdict placing a blank page into a neighbouring group."""

    model_config = ConfigDict(extra="forbid")

    page_number: int
    group_name: str
    reason: str


class MergeResult(BaseModel):
    """Everything the merge phase materializes for one run."""

    groups: list[Group] = Field(default_factory=list)
    assignments: list[FileAssignment] = Field(default_factory=list)
    file_data: list[FileData] = Field(default_factory=list)
    low_confidence_pages: list[LowConfidencePage] = Field(default_factory=list)
    null_group_queries: list[NullGroupQuery] = Field(default_factory=list)
    confidence_summaries: list[ConfidenceSummary] = Field(default_factory=list)
    absorptions: list[AbsorptionDecision] = Field(default_factory=list)
    duplicate_candidates: list[DuplicateCandidate] = Field(default_factory=list)

    def group_by_name(self, name: str) -> Group | None:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    @property
    def needs_resolution(self) -> bool:
        return bool(self.duplicate_candidates or self.null_group_queries)
