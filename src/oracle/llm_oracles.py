# src/oracle/llm_oracles.py - v1
"""LLM-backed oracles.

Each oracle formats its prompt from a template in ``prompts/``, asks for a
structured answer, strips any code fence from the reply and validates it
into the strict decision models. A reply that cannot be parsed or breaks
the schema is an OracleContractError; a call that keeps failing after
retries is an OracleCallError.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from fileorganizer.core.errors import MissingConfiguration, OracleCallError, OracleContractError
from fileorganizer.core.models import (
    DuplicateCandidate,
    DuplicateDecision,
    JudgmentSet,
    NullGroupDecision,
    NullGroupQuery,
    Window,
)
from fileorganizer.llm.models import ImageInput, LLMResponse, Message
from fileorganizer.llm.retry import LLMRetryExhausted, RetryConfig, with_retry
from fileorganizer.oracle.base_oracle import (
    BaseDuplicateResolutionOracle,
    BaseJudgmentOracle,
    BaseNullGroupOracle,
)
from fileorganizer.oracle.contract import (
    DuplicateResolutionResponse,
    NullGroupResolutionResponse,
    WindowJudgmentResponse,
    validate_judgment_set,
)

if TYPE_CHECKING:
    from fileorganizer.config.settings import Settings
    from fileorganizer.llm.base_client import BaseLLMClient
    from fileorganizer.oracle.page_loader import BasePageLoader

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent / "prompts"

ResponseT = TypeVar("ResponseT", bound=BaseModel)

SYSTEM_PROMPT = (
    "You organize scanned pages into the documents they belong to. "
    "Respond only with valid JSON."
)
DEFAULT_GROUPING_INSTRUCTIONS = (
    "Group pages by the person or organization each document is about."
)


def parse_json_response(content: str) -> dict[str, Any]:
    """Decode a JSON reply, tolerating a surrounding ``` fence."""
    text = content.strip()
    if text.startswith("```"):
        lines = [ln for ln in text.split("\n") if not ln.strip().startswith("```")]
        text = "\n".join(lines)
    return json.loads(text)


class _LLMOracle:
    """Prompt loading, retried calls and response validation."""

    prompt_file: str = ""

    def __init__(
        self,
        client: BaseLLMClient,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        retry_configs: dict[str, RetryConfig] | None = None,
    ) -> None:
        self._client = client
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._retry_configs = retry_configs
        self._prompt_template: str | None = None

    def _load_prompt(self) -> str:
        if self._prompt_template is None:
            self._prompt_template = (_PROMPTS_DIR / self.prompt_file).read_text(encoding="utf-8")
        return self._prompt_template

    async def _call(self, operation: str, **kwargs: Any) -> LLMResponse:
        fn = self._client.complete_with_vision if "images" in kwargs else self._client.complete
        try:
            return await with_retry(
                fn,
                operation=operation,
                retry_configs=self._retry_configs,
                system=SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                **kwargs,
            )
        except LLMRetryExhausted as exc:
            raise OracleCallError(str(exc)) from exc

    @staticmethod
    def _validate(content: str, model: type[ResponseT], operation: str) -> ResponseT:
        try:
            return model.model_validate(parse_json_response(content))
        except json.JSONDecodeError as exc:
            raise OracleContractError(f"{operation}: reply is not valid JSON: {exc}") from exc
        except ValidationError as exc:
            raise OracleContractError(
                f"{operation}: reply does not match {model.__name__}: {exc}"
            ) from exc


class LLMJudgmentOracle(_LLMOracle, BaseJudgmentOracle):
    """Judges a comparison window from its page images."""

    prompt_file = "comparison_window.txt"

    def __init__(
        self,
        client: BaseLLMClient,
        page_loader: BasePageLoader,
        grouping_instructions: str = DEFAULT_GROUPING_INSTRUCTIONS,
        **kwargs: Any,
    ) -> None:
        if not client.supports_vision:
            raise MissingConfiguration(
                f"LLM provider {client.provider_name!r} cannot read page images"
            )
        super().__init__(client, **kwargs)
        self._page_loader = page_loader
        self.grouping_instructions = grouping_instructions

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: BaseLLMClient,
        page_loader: BasePageLoader,
        grouping_instructions: str = DEFAULT_GROUPING_INSTRUCTIONS,
    ) -> LLMJudgmentOracle:
        return cls(
            client,
            page_loader,
            grouping_instructions=grouping_instructions,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )

    def format_prompt(self, window: Window) -> str:
        return self._load_prompt().format(
            page_count=len(window.pages),
            window_start=window.window_start,
            window_end=window.window_end,
            page_numbers=", ".join(str(n) for n in window.page_numbers),
            grouping_instructions=self.grouping_instructions,
        )

    async def judge(self, window: Window) -> JudgmentSet:
        operation = f"judge window {window.window_index}"
        images: list[ImageInput] = []
        for page in window.pages:
            try:
                data = await self._page_loader.load(page)
            except OSError as exc:
                raise OracleCallError(
                    f"{operation}: cannot load image of page {page.page_number}: {exc}"
                ) from exc
            images.append(
                ImageInput(data=data, media_type=page.mime_type, label=f"Page {page.page_number}")
            )
        response = await self._call(
            operation,
            messages=[Message(role="user", content=self.format_prompt(window))],
            images=images,
            response_format=WindowJudgmentResponse,
        )
        parsed = self._validate(response.content, WindowJudgmentResponse, operation)
        logger.debug(
            "Window %d judged: %d judgments, %d tokens",
            window.window_index, len(parsed.judgments),
            response.input_tokens + response.output_tokens,
        )
        return validate_judgment_set(
            window,
            JudgmentSet(window_index=window.window_index, judgments=parsed.judgments),
        )


class LLMDuplicateResolutionOracle(_LLMOracle, BaseDuplicateResolutionOracle):
    """Adjudicates duplicate group candidates from their profiles."""

    prompt_file = "duplicate_resolution.txt"

    def format_prompt(self, candidates: list[DuplicateCandidate]) -> str:
        blocks = []
        for i, candidate in enumerate(candidates, start=1):
            lines = [f"--- Pair {i} [{candidate.similarity:.2f}] ---"]
            for profile in (candidate.group1, candidate.group2):
                lines.append(f'"{profile.name}" ({profile.file_count} pages): {profile.description}')
                for sample in profile.sample_files:
                    lines.append(
                        f"  page {sample.page_number} (confidence {sample.confidence}): "
                        f"{sample.description or 'N/A'}"
                    )
            blocks.append("\n".join(lines))
        return self._load_prompt().format(candidates="\n\n".join(blocks))

    async def resolve(self, candidates: list[DuplicateCandidate]) -> list[DuplicateDecision]:
        if not candidates:
            return []
        operation = "resolve duplicate groups"
        response = await self._call(
            operation,
            messages=[Message(role="user", content=self.format_prompt(candidates))],
            response_format=DuplicateResolutionResponse,
        )
        decisions = self._validate(
            response.content, DuplicateResolutionResponse, operation
        ).group_decisions
        logger.info("Duplicate oracle returned %d decisions", len(decisions))
        return decisions


class LLMNullGroupOracle(_LLMOracle, BaseNullGroupOracle):
    """Places blank pages between two groups."""

    prompt_file = "null_group_resolution.txt"

    def format_prompt(self, queries: list[NullGroupQuery]) -> str:
        lines = [
            f'Page {q.page_number}: previous group "{q.previous_group}", '
            f'next group "{q.next_group}". Page notes: {q.description or "none"}'
            for q in queries
        ]
        return self._load_prompt().format(queries="\n".join(lines))

    async def resolve(self, queries: list[NullGroupQuery]) -> list[NullGroupDecision]:
        if not queries:
            return []
        operation = "resolve null groups"
        response = await self._call(
            operation,
            messages=[Message(role="user", content=self.format_prompt(queries))],
            response_format=NullGroupResolutionResponse,
        )
        return self._validate(response.content, NullGroupResolutionResponse, operation).decisions
