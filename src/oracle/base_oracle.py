# src/oracle/base_oracle.py - v1
"""Abstract oracles: window judgments and post-merge adjudication."""

from __future__ import annotations

from abc import ABC, abstractmethod

from fileorganizer.core.models import (
    DuplicateCandidate,
    DuplicateDecision,
    JudgmentSet,
    NullGroupDecision,
    NullGroupQuery,
    Window,
)


class BaseJudgmentOracle(ABC):
    """Judges one comparison window."""

    @abstractmethod
    async def judge(self, window: Window) -> JudgmentSet:
        """Return one judgment per page of ``window``.

        Raises:
            OracleContractError: If the answer breaks the judgment schema.
            OracleCallError: If the oracle could not be reached.
        """


class BaseDuplicateResolutionOracle(ABC):
    """Decides which duplicate candidates denote the same group."""

    @abstractmethod
    async def resolve(self, candidates: list[DuplicateCandidate]) -> list[DuplicateDecision]:
        """Return rename/merge decisions; candidates left out stay as they are."""


class BaseNullGroupOracle(ABC):
    """Places blank pages that sit between two different groups."""

    @abstractmethod
    async def resolve(self, queries: list[NullGroupQuery]) -> list[NullGroupDecision]:
        """Return one decision per query, naming the previous or next group."""
