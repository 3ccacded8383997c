# src/grouping/duplicates.py - v1
"""Detect group names that probably denote the same real-world entity.

Examples the scoring is tuned for:
    "ME Physical Therapy" vs "ME Physical Therapy (Northglenn)"  location variant
    "ABC Medical" vs "ABC Medical Center"                          substring
    "Dr. Smith, M.D." vs "dr smith md"                             exact after normalization
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from rapidfuzz.distance import Levenshtein

from fileorganizer.core.models import (
    BLANK_GROUP,
    ConfidenceSummary,
    DuplicateCandidate,
    FileAssignment,
    Group,
    GroupProfile,
    GroupSample,
)

if TYPE_CHECKING:
    from fileorganizer.config.settings import Settings

logger = logging.getLogger(__name__)

LOCATION_VARIANT_SCORE = 0.95
SUBSTRING_MIN_SCORE = 0.85

_PUNCTUATION = re.compile(r"[,.:;]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Lowercase, drop , . : ; and collapse whitespace (parentheses are kept)."""
    normalized = _PUNCTUATION.sub("", name.lower())
    return _WHITESPACE.sub(" ", normalized).strip()


def is_location_variant(name1: str, name2: str) -> bool:
    """True when exactly one name carries a "(...)" suffix after the other name."""
    n1, n2 = normalize_name(name1), normalize_name(name2)
    parens1 = "(" in n1 and ")" in n1
    parens2 = "(" in n2 and ")" in n2
    if parens1 == parens2:
        return False

    with_parens, without_parens = (n1, n2) if parens1 else (n2, n1)
    base = with_parens[: with_parens.index("(")].strip()
    return base == without_parens


def name_similarity(name1: str, name2: str) -> float:
    """Similarity in [0, 1] between two group names.

    Order of checks: exact match after normalization, location suffix,
    substring, then normalized Levenshtein distance.
    """
    n1, n2 = normalize_name(name1), normalize_name(name2)
    if n1 == n2:
        return 1.0

    if is_location_variant(name1, name2):
        return LOCATION_VARIANT_SCORE

    if n1 in n2 or n2 in n1:
        shorter, longer = sorted((len(n1), len(n2)))
        return max(SUBSTRING_MIN_SCORE, shorter / longer)

    max_len = max(len(n1), len(n2))
    if max_len == 0:
        return 1.0
    return max(0.0, 1.0 - Levenshtein.distance(n1, n2) / max_len)


class DuplicateGroupDetector:
    """Find and describe duplicate group-name candidates."""

    def __init__(self, similarity_threshold: float = 0.7, sample_size: int = 3) -> None:
        self.similarity_threshold = similarity_threshold
        self.sample_size = sample_size

    @classmethod
    def from_settings(cls, settings: Settings) -> DuplicateGroupDetector:
        return cls(
            similarity_threshold=settings.name_similarity_threshold,
            sample_size=settings.duplicate_sample_size,
        )

    def find_pairs(self, groups: list[Group]) -> list[tuple[str, str, float]]:
        """Every (earlier, later) pair of non-blank names at or above the threshold."""
        names = [g.name for g in groups]
        pairs: list[tuple[str, str, float]] = []
        for i, name1 in enumerate(names):
            for name2 in names[i + 1:]:
                if name1 == BLANK_GROUP or name2 == BLANK_GROUP:
                    continue
                score = name_similarity(name1, name2)
                if score >= self.similarity_threshold:
                    logger.debug(
                        "Duplicate candidate: %r <-> %r (similarity %.3f)", name1, name2, score
                    )
                    pairs.append((name1, name2, score))
        logger.info("Found %d duplicate candidates among %d groups", len(pairs), len(names))
        return pairs

    def find_candidates(
        self,
        groups: list[Group],
        assignments: list[FileAssignment],
        summaries: dict[str, ConfidenceSummary] | None = None,
    ) -> list[DuplicateCandidate]:
        """Candidates ready for the duplicate resolution oracle."""
        by_name = {g.name: g for g in groups}
        rows = {a.page_number: a for a in assignments}
        summaries = summaries or {}
        return [
            DuplicateCandidate(
                group1=self.profile(by_name[name1], rows, summaries.get(name1)),
                group2=self.profile(by_name[name2], rows, summaries.get(name2)),
                similarity=round(score, 4),
            )
            for name1, name2, score in self.find_pairs(groups)
        ]

    def profile(
        self,
        group: Group,
        rows: dict[int, FileAssignment],
        summary: ConfidenceSummary | None,
    ) -> GroupProfile:
        samples = [
            GroupSample(
                page_number=page_number,
                description=rows[page_number].explanation,
                confidence=rows[page_number].confidence,
            )
            for page_number in group.files
            if page_number in rows
        ][: self.sample_size]
        return GroupProfile(
            name=group.name,
            description=group.description,
            file_count=len(group.files),
            sample_files=samples,
            confidence_summary=summary,
        )
