# src/pipeline/merge_phase.py - v1
"""Merge phase: engine, confidence analysis, absorption, duplicate detection.

Everything here is synchronous and pure over the window judgments; the
orchestrator persists the returned MergeResult.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fileorganizer.core.models import FileAssignment, JudgmentSet, MergeResult, NullGroupQuery
from fileorganizer.grouping.absorption import GroupAbsorptionService
from fileorganizer.grouping.confidence import GroupConfidenceAnalyzer
from fileorganizer.grouping.duplicates import DuplicateGroupDetector
from fileorganizer.merge.engine import MergeEngine, build_groups, validate_partition
from fileorganizer.merge.null_groups import NullGroupResolver

if TYPE_CHECKING:
    from fileorganizer.config.settings import Settings

logger = logging.getLogger(__name__)


class MergePhase:
    """Turns settled window judgments into the run's merge record."""

    def __init__(
        self,
        engine: MergeEngine | None = None,
        analyzer: GroupConfidenceAnalyzer | None = None,
        absorption: GroupAbsorptionService | None = None,
        detector: DuplicateGroupDetector | None = None,
        null_group_resolution_enabled: bool = False,
    ) -> None:
        self.engine = engine or MergeEngine()
        self.analyzer = analyzer or GroupConfidenceAnalyzer()
        self.absorption = absorption or GroupAbsorptionService()
        self.detector = detector or DuplicateGroupDetector()
        self.null_group_resolution_enabled = null_group_resolution_enabled

    @classmethod
    def from_settings(cls, settings: Settings) -> MergePhase:
        return cls(
            engine=MergeEngine.from_settings(settings),
            analyzer=GroupConfidenceAnalyzer.from_settings(settings),
            detector=DuplicateGroupDetector.from_settings(settings),
            null_group_resolution_enabled=settings.null_group_resolution_enabled,
        )

    def run(self, judgment_sets: list[JudgmentSet], page_numbers: list[int]) -> MergeResult:
        """Merge, absorb low-confidence groups and find duplicate candidates.

        Raises:
            DuplicatePageAssignment: If the partition is corrupt at any step.
        """
        resolver = NullGroupResolver() if self.null_group_resolution_enabled else None
        result = self.engine.merge(judgment_sets, page_numbers, null_group_resolver=resolver)
        if not result.groups:
            return result

        groups, assignments = result.groups, result.assignments
        summaries = self.analyzer.summarize(groups, assignments)
        absorptions = self.absorption.plan(groups, summaries, result.file_data)
        queries = result.null_group_queries
        if absorptions:
            groups, assignments = self.absorption.apply(assignments, absorptions)
            targets = {d.low_group: d.high_group for d in absorptions}
            queries, assignments = _retarget_queries(queries, assignments, targets)
            groups = build_groups({a.page_number: a.group_name for a in assignments})
            summaries = self.analyzer.summarize(groups, assignments)
        validate_partition(groups)

        candidates = self.detector.find_candidates(groups, assignments, summaries)
        logger.info(
            "Merge phase: %d groups, %d absorbed, %d duplicate candidates, %d null group queries",
            len(groups), len(absorptions), len(candidates), len(queries),
        )
        return result.model_copy(
            update={
                "groups": groups,
                "assignments": assignments,
                "confidence_summaries": list(summaries.values()),
                "absorptions": absorptions,
                "duplicate_candidates": candidates,
                "null_group_queries": queries,
            }
        )


def _retarget_queries(
    queries: list[NullGroupQuery],
    assignments: list[FileAssignment],
    targets: dict[str, str],
) -> tuple[list[NullGroupQuery], list[FileAssignment]]:
    """Follow absorbed group names in pending null group queries.

    A query whose two neighbours collapsed into one group no longer needs
    adjudication; its page joins that group directly.
    """
    kept: list[NullGroupQuery] = []
    placed: dict[int, str] = {}
    for query in queries:
        previous_group = targets.get(query.previous_group, query.previous_group)
        next_group = targets.get(query.next_group, query.next_group)
        if previous_group == next_group:
            placed[query.page_number] = previous_group
            continue
        kept.append(
            query.model_copy(update={"previous_group": previous_group, "next_group": next_group})
        )
    updated = [
        a.model_copy(update={"group_name": placed[a.page_number]})
        if a.page_number in placed
        else a
        for a in assignments
    ]
    return kept, updated
