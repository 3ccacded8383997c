# src/grouping/absorption.py - v1
"""Fold low-confidence groups into overlapping high-confidence groups.

Two groups overlap when at least one page was voted into both of them by
some window (observed membership), even if the merge finally placed that
page in only one of them. One shared page is enough: every page of the low
group moves. Each low group gets at most one target, the first overlapping
high group in group order, and the pass is not repeated.
"""

from __future__ import annotations

import logging

from fileorganizer.core.models import (
    BLANK_GROUP,
    AbsorptionDecision,
    ConfidenceSummary,
    FileAssignment,
    FileData,
    Group,
)
from fileorganizer.merge.engine import build_groups

logger = logging.getLogger(__name__)


def observed_membership(groups: list[Group], file_data: list[FileData]) -> dict[str, set[int]]:
    """Pages each group holds or was voted for in any window."""
    members: dict[str, set[int]] = {g.name: set(g.files) for g in groups}
    for data in file_data:
        for vote in data.group_votes:
            if vote.group_name in members:
                members[vote.group_name].add(data.page_number)
    return members


class GroupAbsorptionService:
    """One-shot absorption pass over the merged groups."""

    def plan(
        self,
        groups: list[Group],
        summaries: dict[str, ConfidenceSummary],
        file_data: list[FileData],
    ) -> list[AbsorptionDecision]:
        """Decide which low groups move into which high groups."""
        members = observed_membership(groups, file_data)
        finals = {g.name: g.files for g in groups}
        order = [g.name for g in groups if g.name != BLANK_GROUP]
        low = [n for n in order if n in summaries and summaries[n].level == "low"]
        high = [n for n in order if n in summaries and summaries[n].level == "high"]

        decisions: list[AbsorptionDecision] = []
        for low_name in low:
            for high_name in high:
                shared = members[low_name] & members[high_name]
                if not shared:
                    continue
                decisions.append(
                    AbsorptionDecision(
                        low_group=low_name,
                        high_group=high_name,
                        shared_pages=sorted(shared),
                        moved_pages=list(finals[low_name]),
                    )
                )
                logger.info(
                    "Absorbing low-confidence group %r (%d pages) into %r via pages %s",
                    low_name, len(finals[low_name]), high_name, sorted(shared),
                )
                break
        return decisions

    def apply(
        self,
        assignments: list[FileAssignment],
        decisions: list[AbsorptionDecision],
    ) -> tuple[list[Group], list[FileAssignment]]:
        """Rewrite assignments for every absorbed page and rebuild groups."""
        target_by_group = {d.low_group: d.high_group for d in decisions}
        updated = [
            a.model_copy(update={"group_name": target_by_group[a.group_name]})
            if a.group_name in target_by_group
            else a
            for a in assignments
        ]
        groups = build_groups({a.page_number: a.group_name for a in updated})
        return groups, updated
