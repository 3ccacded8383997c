# src/oracle/contract.py - v1
"""Response schemas requested from the LLM and checks on what comes back."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from fileorganizer.core.errors import OracleContractError
from fileorganizer.core.models import (
    DuplicateDecision,
    Judgment,
    JudgmentSet,
    NullGroupDecision,
    Window,
)


class WindowJudgmentResponse(BaseModel):
    """Structured output of the comparison window prompt."""

    model_config = ConfigDict(extra="forbid")

    judgments: list[Judgment]


class DuplicateResolutionResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    group_decisions: list[DuplicateDecision]


class NullGroupResolutionResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    decisions: list[NullGroupDecision]


def validate_judgment_set(window: Window, judgment_set: JudgmentSet) -> JudgmentSet:
    """Check a judgment set against the window it claims to answer.

    Returns the set with judgments in page order.

    Raises:
        OracleContractError: On a window index mismatch, missing, unknown or
            repeated pages, or a null adjacency score past the first page.
    """
    if judgment_set.window_index != window.window_index:
        raise OracleContractError(
            f"Judgments for window {judgment_set.window_index} "
            f"recorded against window {window.window_index}"
        )

    expected = window.page_numbers
    seen = [j.page_number for j in judgment_set.judgments]
    if len(seen) != len(set(seen)):
        raise OracleContractError(
            f"Window {window.window_index}: a page was judged more than once: {seen}"
        )
    if set(seen) != set(expected):
        missing = sorted(set(expected) - set(seen))
        unknown = sorted(set(seen) - set(expected))
        raise OracleContractError(
            f"Window {window.window_index}: judged pages do not match "
            f"(missing {missing}, not in window {unknown})"
        )

    first_page = expected[0]
    for judgment in judgment_set.judgments:
        if judgment.page_number != first_page and judgment.belongs_to_previous is None:
            raise OracleContractError(
                f"Window {window.window_index}: page {judgment.page_number} has no "
                "belongs_to_previous score but is not the first page"
            )

    ordered = sorted(judgment_set.judgments, key=lambda j: j.page_number)
    return judgment_set.model_copy(update={"judgments": ordered})
