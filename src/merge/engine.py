# src/merge/engine.py - v1
"""Merge windowed per-page judgments into one page partition.

Phases, each deterministic for a given input order:
  1. Collect every group vote and adjacency vote per page.
  2. Adjacency score = max of the non-null belongs_to_previous votes.
  3. Primary group = highest confidence vote, ties keep the first window.
  4. Pages at or below the confidence threshold follow the stronger
     adjacency signal (ties stay with the previous page).
  5. Blank pages are joined, kept as a blank group, or discarded.
  6. Groups are assembled with sorted pages and a range description.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fileorganizer.core.errors import DuplicatePageAssignment
from fileorganizer.core.models import (
    BLANK_GROUP,
    FileAssignment,
    FileData,
    Group,
    GroupVote,
    JudgmentSet,
    LowConfidencePage,
    MergeResult,
)
from fileorganizer.merge.null_groups import find_adjacent_group
from fileorganizer.merge.page_ranges import build_group_description

if TYPE_CHECKING:
    from fileorganizer.config.settings import BlankPageHandling, Settings
    from fileorganizer.merge.null_groups import NullGroupResolver

logger = logging.getLogger(__name__)

DEFAULT_GROUP_CONFIDENCE_THRESHOLD = 3
DEFAULT_ADJACENCY_BOUNDARY_THRESHOLD = 2
DEFAULT_BLANK_PAGE_HANDLING = "join_previous"
DEFAULT_LOW_CONFIDENCE_PAGE_THRESHOLD = 3

UNJUDGED_EXPLANATION = "No judgment recorded for this page"


class MergeEngine:
    """Reconcile overlapping window judgments into final groups."""

    def __init__(
        self,
        group_confidence_threshold: int = DEFAULT_GROUP_CONFIDENCE_THRESHOLD,
        adjacency_boundary_threshold: int = DEFAULT_ADJACENCY_BOUNDARY_THRESHOLD,
        blank_page_handling: BlankPageHandling = DEFAULT_BLANK_PAGE_HANDLING,
        low_confidence_page_threshold: int = DEFAULT_LOW_CONFIDENCE_PAGE_THRESHOLD,
    ) -> None:
        if blank_page_handling not in ("join_previous", "create_blank_group", "discard"):
            raise ValueError(f"Unknown blank_page_handling: {blank_page_handling!r}")
        self.group_confidence_threshold = group_confidence_threshold
        self.adjacency_boundary_threshold = adjacency_boundary_threshold
        self.blank_page_handling = blank_page_handling
        self.low_confidence_page_threshold = low_confidence_page_threshold

    @classmethod
    def from_settings(cls, settings: Settings) -> MergeEngine:
        return cls(
            group_confidence_threshold=settings.group_confidence_threshold,
            adjacency_boundary_threshold=settings.adjacency_boundary_threshold,
            blank_page_handling=settings.blank_page_handling,
            low_confidence_page_threshold=settings.low_confidence_page_threshold,
        )

    def merge(
        self,
        judgment_sets: list[JudgmentSet],
        page_numbers: list[int] | None = None,
        null_group_resolver: NullGroupResolver | None = None,
    ) -> MergeResult:
        """Run all merge phases.

        Args:
            judgment_sets: One set per completed window, any order.
            page_numbers: Every page of the run. Pages no window judged
                enter the merge as blank votes with confidence 0.
            null_group_resolver: When given, blank pages are placed by the
                resolver before blank-page handling, and pages between two
                different groups are returned as adjudication queries.

        Raises:
            DuplicatePageAssignment: If a page ends up in two groups.
        """
        file_data = self.collect(judgment_sets, page_numbers)
        if not file_data:
            logger.info("No judgments to merge")
            return MergeResult()

        scores = self.build_adjacency_scores(file_data)
        assignments = self.select_primary_groups(file_data)
        assignments = self.resolve_low_confidence(file_data, assignments, scores)

        queries = []
        if null_group_resolver is not None:
            resolution = null_group_resolver.resolve(
                self.build_assignments(file_data, assignments, scores)
            )
            assignments.update(resolution.auto_assignments)
            queries = resolution.queries
            held = {q.page_number for q in queries}
        else:
            held = set()

        assignments = self.handle_blank_pages(assignments, held=held)
        groups = build_groups(assignments)
        validate_partition(groups)

        result = MergeResult(
            groups=groups,
            assignments=self.build_assignments(file_data, assignments, scores),
            file_data=[file_data[n] for n in sorted(file_data)],
            low_confidence_pages=self.identify_low_confidence_pages(file_data),
            null_group_queries=queries,
        )
        logger.info(
            "Merged %d pages into %d groups",
            len(result.assignments), len(result.groups),
        )
        return result

    # --- Phase 1 ---

    def collect(
        self,
        judgment_sets: list[JudgmentSet],
        page_numbers: list[int] | None = None,
    ) -> dict[int, FileData]:
        """Gather votes per page in window order."""
        file_data: dict[int, FileData] = {}

        for judgment_set in sorted(judgment_sets, key=lambda s: s.window_index):
            for judgment in judgment_set.judgments:
                data = file_data.setdefault(
                    judgment.page_number, FileData(page_number=judgment.page_number)
                )
                data.group_votes.append(
                    GroupVote(
                        group_name=judgment.group_name,
                        confidence=judgment.group_name_confidence,
                        explanation=judgment.group_explanation,
                        window_index=judgment_set.window_index,
                    )
                )
                if judgment.belongs_to_previous is not None:
                    data.adjacency_votes.append(judgment.belongs_to_previous)
                if judgment.belongs_to_previous_reason is not None:
                    data.belongs_to_previous_reason = judgment.belongs_to_previous_reason

        for page_number in page_numbers or []:
            if page_number not in file_data:
                logger.warning("Page %d has no judgment, treating it as blank", page_number)
                file_data[page_number] = FileData(
                    page_number=page_number,
                    group_votes=[
                        GroupVote(
                            group_name=BLANK_GROUP,
                            confidence=0,
                            explanation=UNJUDGED_EXPLANATION,
                        )
                    ],
                )

        return file_data

    # --- Phase 2 ---

    @staticmethod
    def build_adjacency_scores(file_data: dict[int, FileData]) -> dict[int, int | None]:
        return {
            page_number: max(data.adjacency_votes) if data.adjacency_votes else None
            for page_number, data in file_data.items()
        }

    # --- Phase 3 ---

    def select_primary_groups(self, file_data: dict[int, FileData]) -> dict[int, str]:
        """Pick the winning vote per page and record it on the FileData."""
        assignments: dict[int, str] = {}
        for page_number in sorted(file_data):
            data = file_data[page_number]
            best = select_best_vote(data.group_votes)
            data.group_name = best.group_name
            data.group_confidence = best.confidence
            data.group_explanation = best.explanation
            assignments[page_number] = best.group_name
        return assignments

    # --- Phase 4 ---

    def resolve_low_confidence(
        self,
        file_data: dict[int, FileData],
        assignments: dict[int, str],
        scores: dict[int, int | None],
    ) -> dict[int, str]:
        """Move weakly grouped pages along the stronger adjacency signal.

        Reads the live assignments, so a page can follow a neighbour that
        was itself just moved.
        """
        resolved = dict(assignments)
        pages = sorted(resolved)

        for index, page_number in enumerate(pages):
            if resolved[page_number] == BLANK_GROUP:
                continue
            if file_data[page_number].group_confidence > self.group_confidence_threshold:
                continue

            to_previous = scores.get(page_number)
            if to_previous is None:
                continue

            next_page = pages[index + 1] if index + 1 < len(pages) else None
            from_next = scores.get(next_page) if next_page is not None else None

            if from_next is not None and from_next > to_previous:
                target = resolved[next_page]
                logger.debug(
                    "Page %d (conf %d): following next page into %r (%d > %d)",
                    page_number, file_data[page_number].group_confidence,
                    target, from_next, to_previous,
                )
                resolved[page_number] = target
                continue

            if to_previous >= self.adjacency_boundary_threshold and index > 0:
                target = resolved[pages[index - 1]]
                logger.debug(
                    "Page %d (conf %d): joining previous page's group %r",
                    page_number, file_data[page_number].group_confidence, target,
                )
                resolved[page_number] = target

        return resolved

    # --- Phase 5 ---

    def handle_blank_pages(
        self,
        assignments: dict[int, str],
        held: set[int] | None = None,
    ) -> dict[int, str]:
        """Apply the blank page policy; ``held`` pages stay blank regardless."""
        if self.blank_page_handling == "create_blank_group":
            return dict(assignments)

        held = held or set()
        pages = sorted(assignments)
        handled = dict(assignments)

        for index, page_number in enumerate(pages):
            if handled[page_number] != BLANK_GROUP or page_number in held:
                continue

            if self.blank_page_handling == "discard":
                del handled[page_number]
                continue

            names = [handled.get(p, BLANK_GROUP) for p in pages]
            target = find_adjacent_group(names, index, -1)
            if target is None:
                target = find_adjacent_group(names, index, 1)
            if target is not None:
                handled[page_number] = target

        if self.blank_page_handling == "discard":
            dropped = len(assignments) - len(handled)
            if dropped:
                logger.info("Discarded %d blank pages", dropped)
        return handled

    # --- Output ---

    @staticmethod
    def build_assignments(
        file_data: dict[int, FileData],
        assignments: dict[int, str],
        scores: dict[int, int | None],
    ) -> list[FileAssignment]:
        return [
            FileAssignment(
                page_number=page_number,
                group_name=assignments[page_number],
                confidence=file_data[page_number].group_confidence,
                explanation=file_data[page_number].group_explanation,
                belongs_to_previous=scores.get(page_number),
                belongs_to_previous_reason=file_data[page_number].belongs_to_previous_reason,
            )
            for page_number in sorted(assignments)
        ]

    def identify_low_confidence_pages(
        self, file_data: dict[int, FileData]
    ) -> list[LowConfidencePage]:
        """Pages below the bar that windows placed in more than one group."""
        flagged: list[LowConfidencePage] = []
        for page_number in sorted(file_data):
            data = file_data[page_number]
            if data.group_confidence >= self.low_confidence_page_threshold:
                continue
            if len({v.group_name for v in data.group_votes}) < 2:
                continue
            flagged.append(
                LowConfidencePage(
                    page_number=page_number,
                    group_name=data.group_name,
                    confidence=data.group_confidence,
                    explanations=[
                        f"{v.group_name or '(blank)'} [{v.confidence}]: {v.explanation}"
                        for v in data.group_votes
                    ],
                )
            )
        return flagged


def select_best_vote(votes: list[GroupVote]) -> GroupVote:
    """Highest confidence wins; on a tie the earliest vote is kept."""
    best = votes[0]
    for vote in votes[1:]:
        if vote.confidence > best.confidence:
            best = vote
    return best


def build_groups(assignments: dict[int, str]) -> list[Group]:
    """Group pages by name, ordered by each group's first page."""
    pages_by_group: dict[str, list[int]] = {}
    for page_number in sorted(assignments):
        pages_by_group.setdefault(assignments[page_number], []).append(page_number)

    return [
        Group(
            name=name,
            description=build_group_description(name, pages),
            files=pages,
        )
        for name, pages in pages_by_group.items()
    ]


def validate_partition(groups: list[Group]) -> None:
    """Raise DuplicatePageAssignment if any page sits in two groups."""
    owners: dict[int, list[str]] = {}
    for group in groups:
        for page_number in group.files:
            owners.setdefault(page_number, []).append(group.name)

    for page_number in sorted(owners):
        if len(owners[page_number]) > 1:
            logger.error(
                "Page %d found in groups %s", page_number, owners[page_number]
            )
            raise DuplicatePageAssignment(page_number, owners[page_number])
