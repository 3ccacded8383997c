# src/merge/null_groups.py - v1
"""Place blank-named pages into a neighbouring group, or flag them for adjudication.

Decisions are taken against the assignments as given, so the outcome for one
blank page never depends on how an earlier blank page was placed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from fileorganizer.core.models import BLANK_GROUP, FileAssignment, NullGroupQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NullGroupDecisionDraft:
    """Outcome for a single blank page before anything is applied."""

    kind: Literal["auto", "adjudicate", "keep"]
    group_name: str = BLANK_GROUP
    previous_group: str | None = None
    next_group: str | None = None


@dataclass
class NullGroupResolution:
    """Auto assignments plus the pages that need an oracle decision."""

    auto_assignments: dict[int, str] = field(default_factory=dict)
    queries: list[NullGroupQuery] = field(default_factory=list)
    unresolved: list[int] = field(default_factory=list)


class NullGroupResolver:
    """Resolve "" groups from their nearest non-blank neighbours."""

    def resolve(self, assignments: list[FileAssignment]) -> NullGroupResolution:
        ordered = sorted(assignments, key=lambda a: a.page_number)
        names = [a.group_name for a in ordered]
        result = NullGroupResolution()

        blank_indexes = [i for i, name in enumerate(names) if name == BLANK_GROUP]
        if not blank_indexes:
            logger.debug("No null groups found")
            return result

        for index in blank_indexes:
            row = ordered[index]
            decision = self.decide(names, index)
            if decision.kind == "auto":
                result.auto_assignments[row.page_number] = decision.group_name
            elif decision.kind == "adjudicate":
                result.queries.append(
                    NullGroupQuery(
                        page_number=row.page_number,
                        previous_group=decision.previous_group or "",
                        next_group=decision.next_group or "",
                        description=row.explanation,
                        confidence=row.confidence,
                    )
                )
            else:
                result.unresolved.append(row.page_number)

        logger.info(
            "Null group resolution: %d auto-assigned, %d need adjudication, %d kept blank",
            len(result.auto_assignments), len(result.queries), len(result.unresolved),
        )
        return result

    def decide(self, names: list[str], index: int) -> NullGroupDecisionDraft:
        """Decide for the blank page at ``index`` of the ordered group names."""
        previous_group = find_adjacent_group(names, index, -1)
        next_group = find_adjacent_group(names, index, 1)

        if previous_group and next_group and previous_group != next_group:
            return NullGroupDecisionDraft(
                kind="adjudicate",
                previous_group=previous_group,
                next_group=next_group,
            )
        if previous_group:
            return NullGroupDecisionDraft(kind="auto", group_name=previous_group)
        if next_group:
            return NullGroupDecisionDraft(kind="auto", group_name=next_group)
        return NullGroupDecisionDraft(kind="keep")


def find_adjacent_group(names: list[str], index: int, step: int) -> str | None:
    """Nearest non-blank name from ``index`` walking by ``step`` (-1 or 1)."""
    cursor = index + step
    while 0 <= cursor < len(names):
        if names[cursor] != BLANK_GROUP:
            return names[cursor]
        cursor += step
    return None
