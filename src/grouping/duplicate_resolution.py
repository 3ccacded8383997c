# src/grouping/duplicate_resolution.py - v1
"""Apply adjudicated duplicate decisions and blank-page placements.

A decision with one original name differing from its canonical name is a
rename; several original names are a merge, optionally into a brand new
canonical spelling. Decisions may chain ("A" -> "B" in one decision,
"B" -> "C" in another): names are resolved over a directed graph so every
connected set of names ends in a single canonical name.
"""

from __future__ import annotations

import logging

import networkx as nx

from fileorganizer.core.errors import OracleContractError, UnknownGroupError
from fileorganizer.core.models import (
    DuplicateDecision,
    FileAssignment,
    Group,
    NullGroupDecision,
    NullGroupQuery,
)
from fileorganizer.merge.engine import build_groups, validate_partition

logger = logging.getLogger(__name__)


def build_rename_map(
    decisions: list[DuplicateDecision],
    known_names: set[str],
) -> dict[str, str]:
    """Map every affected group name to its final canonical name.

    Raises:
        UnknownGroupError: If a decision names a group that does not exist.
        OracleContractError: If decisions contradict each other (a name sent
            to two different targets, or a cycle of renames).
    """
    graph = nx.DiGraph()
    for decision in decisions:
        unknown = [n for n in decision.original_names if n not in known_names]
        if unknown:
            raise UnknownGroupError(
                f"Duplicate decision references unknown groups: {unknown!r}"
            )
        graph.add_node(decision.canonical_name)
        for name in decision.original_names:
            graph.add_node(name)
            if name != decision.canonical_name:
                graph.add_edge(name, decision.canonical_name, reason=decision.reason)

    rename_map: dict[str, str] = {}
    for component in nx.weakly_connected_components(graph):
        sub = graph.subgraph(component)
        if any(sub.out_degree(n) > 1 for n in sub.nodes):
            raise OracleContractError(
                f"Conflicting duplicate decisions for names {sorted(component)!r}"
            )
        sinks = [n for n in sub.nodes if sub.out_degree(n) == 0]
        if len(sinks) != 1:
            raise OracleContractError(
                f"Duplicate decisions form a cycle over {sorted(component)!r}"
            )
        canonical = sinks[0]
        for name in component:
            if name != canonical:
                rename_map[name] = canonical
    return rename_map


def apply_duplicate_decisions(
    groups: list[Group],
    assignments: list[FileAssignment],
    decisions: list[DuplicateDecision],
) -> tuple[list[Group], list[FileAssignment]]:
    """Rename and merge groups; returns rebuilt groups and assignments.

    Raises:
        UnknownGroupError: If a decision references a missing group.
        OracleContractError: If decisions contradict each other.
        DuplicatePageAssignment: If the rebuilt partition is corrupt.
    """
    rename_map = build_rename_map(decisions, {g.name for g in groups})
    for old, new in sorted(rename_map.items()):
        logger.info("Group %r -> %r", old, new)

    updated = [
        a.model_copy(update={"group_name": rename_map[a.group_name]})
        if a.group_name in rename_map
        else a
        for a in assignments
    ]
    rebuilt = build_groups({a.page_number: a.group_name for a in updated})
    validate_partition(rebuilt)
    return rebuilt, updated


def apply_null_group_decisions(
    assignments: list[FileAssignment],
    queries: list[NullGroupQuery],
    decisions: list[NullGroupDecision],
) -> tuple[list[Group], list[FileAssignment]]:
    """Place queued blank pages into the neighbour group the oracle chose.

    Raises:
        OracleContractError: If a decision targets a page that was not queued
            or a group other than the page's two neighbours.
    """
    allowed = {q.page_number: {q.previous_group, q.next_group} for q in queries}
    placement: dict[int, str] = {}
    for decision in decisions:
        if decision.page_number not in allowed:
            raise OracleContractError(
                f"Null group decision for page {decision.page_number}, which was not queued"
            )
        if decision.group_name not in allowed[decision.page_number]:
            raise OracleContractError(
                f"Page {decision.page_number} must join one of "
                f"{sorted(allowed[decision.page_number])!r}, got {decision.group_name!r}"
            )
        placement[decision.page_number] = decision.group_name

    missing = sorted(set(allowed) - set(placement))
    if missing:
        logger.warning("No null group decision for pages %s, they stay blank", missing)

    updated = [
        a.model_copy(update={"group_name": placement[a.page_number]})
        if a.page_number in placement
        else a
        for a in assignments
    ]
    rebuilt = build_groups({a.page_number: a.group_name for a in updated})
    validate_partition(rebuilt)
    return rebuilt, updated
