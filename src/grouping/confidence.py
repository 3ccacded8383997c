# src/grouping/confidence.py - v1
"""Per-group confidence statistics and low / medium / high classification.

    low     max < 3   no member page was ever asserted confidently
    high    min >= 4  every member page was asserted very confidently
    medium  anything else
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from fileorganizer.core.models import ConfidenceSummary, FileAssignment, Group

if TYPE_CHECKING:
    from fileorganizer.config.settings import Settings

logger = logging.getLogger(__name__)


class GroupConfidenceAnalyzer:
    """Summarize member-page confidences per group."""

    def __init__(self, low_confidence_max: int = 3, high_confidence_min: int = 4) -> None:
        self.low_confidence_max = low_confidence_max
        self.high_confidence_min = high_confidence_min

    @classmethod
    def from_settings(cls, settings: Settings) -> GroupConfidenceAnalyzer:
        return cls(
            low_confidence_max=settings.low_confidence_max,
            high_confidence_min=settings.high_confidence_min,
        )

    def summarize(
        self,
        groups: list[Group],
        assignments: list[FileAssignment],
    ) -> dict[str, ConfidenceSummary]:
        """Return summaries keyed by group name, in group order.

        Groups with no scored member pages are left out.
        """
        confidence_by_page = {a.page_number: a.confidence for a in assignments}
        summaries: dict[str, ConfidenceSummary] = {}

        for group in groups:
            scores = [confidence_by_page[p] for p in group.files if p in confidence_by_page]
            if not scores:
                continue
            values = np.asarray(scores, dtype=float)
            summary = ConfidenceSummary(
                group_name=group.name,
                avg=round(float(values.mean()), 4),
                min=int(values.min()),
                max=int(values.max()),
                all_scores=scores,
                level=self.classify(int(values.min()), int(values.max())),
            )
            summaries[group.name] = summary
            logger.debug(
                "Group %r: avg=%.2f min=%d max=%d (%s)",
                group.name, summary.avg, summary.min, summary.max, summary.level,
            )
        return summaries

    def classify(self, minimum: int, maximum: int) -> str:
        if maximum < self.low_confidence_max:
            return "low"
        if minimum >= self.high_confidence_min:
            return "high"
        return "medium"

    @staticmethod
    def low_confidence_groups(summaries: dict[str, ConfidenceSummary]) -> list[str]:
        return [name for name, s in summaries.items() if s.level == "low"]

    @staticmethod
    def high_confidence_groups(summaries: dict[str, ConfidenceSummary]) -> list[str]:
        return [name for name, s in summaries.items() if s.level == "high"]
