# src/api/facade.py - v2
"""Public API facade.

Usage:
    from fileorganizer.api.facade import build_orchestrator, organize
    orchestrator = build_orchestrator(settings, converter, oracles)
    result = await organize(orchestrator, sources)

The operation functions (advance_phase, get_final_groups, ...) take the
orchestrator explicitly so callers can drive runs from their own workers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fileorganizer.api.models import OracleSet, OrganizeResult
from fileorganizer.config.settings import Settings
from fileorganizer.llm.client_factory import create_llm_client_from_settings
from fileorganizer.oracle.llm_oracles import (
    DEFAULT_GROUPING_INSTRUCTIONS,
    LLMDuplicateResolutionOracle,
    LLMJudgmentOracle,
    LLMNullGroupOracle,
)
from fileorganizer.pages.resolver import PageResolver
from fileorganizer.pipeline.dispatcher import InlineDispatcher
from fileorganizer.pipeline.orchestrator import AdvanceResult, FileOrganizationOrchestrator
from fileorganizer.storage import run_manager
from fileorganizer.storage.store_factory import create_run_store

if TYPE_CHECKING:
    from fileorganizer.core.models import (
        DuplicateDecision,
        Group,
        JudgmentSet,
        NullGroupDecision,
        SourceDocument,
    )
    from fileorganizer.core.errors import FileOrganizationError
    from fileorganizer.llm.base_client import BaseLLMClient
    from fileorganizer.oracle.page_loader import BasePageLoader
    from fileorganizer.pages.base_converter import BaseSourceConverter
    from fileorganizer.pages.base_transcoder import BaseTranscoder
    from fileorganizer.storage.run_store import RunStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 20


def create_llm_oracles(
    settings: Settings,
    page_loader: BasePageLoader,
    grouping_instructions: str = DEFAULT_GROUPING_INSTRUCTIONS,
    client: BaseLLMClient | None = None,
) -> OracleSet:
    """LLM-backed judgment, duplicate and null group oracles sharing one client."""
    client = client or create_llm_client_from_settings(settings)
    options = {"max_tokens": settings.llm_max_tokens, "temperature": settings.llm_temperature}
    return OracleSet(
        judgment=LLMJudgmentOracle.from_settings(
            settings, client, page_loader, grouping_instructions=grouping_instructions
        ),
        duplicate_resolution=LLMDuplicateResolutionOracle(client, **options),
        null_group=LLMNullGroupOracle(client, **options),
    )


def build_orchestrator(
    settings: Settings,
    converter: BaseSourceConverter,
    oracles: OracleSet,
    transcoder: BaseTranscoder | None = None,
    store: RunStore | None = None,
) -> FileOrganizationOrchestrator:
    """Wire store, page resolver and inline dispatcher from settings."""
    store = store or create_run_store(settings)
    resolver = PageResolver.from_settings(settings, converter, store, transcoder=transcoder)
    dispatcher = InlineDispatcher.from_settings(
        settings,
        oracles.judgment,
        duplicate_oracle=oracles.duplicate_resolution,
        null_group_oracle=oracles.null_group,
        transcoder=transcoder,
    )
    return FileOrganizationOrchestrator.from_settings(
        settings, store, page_resolver=resolver, dispatcher=dispatcher
    )


async def start_run(
    orchestrator: FileOrganizationOrchestrator,
    sources: list[SourceDocument],
    run_id: str | None = None,
    settings: Settings | None = None,
) -> str:
    """Create a run for the ordered sources and return its run_id."""
    config = {}
    if settings is not None:
        config = settings.model_dump(mode="json", exclude={"anthropic_api_key", "openai_api_key"})
    manifest = await run_manager.create_run(
        orchestrator.store, sources, run_id=run_id, config=config
    )
    return manifest.run_id


async def advance_phase(orchestrator: FileOrganizationOrchestrator, run_id: str) -> AdvanceResult:
    return await orchestrator.advance(run_id)


async def get_final_groups(orchestrator: FileOrganizationOrchestrator, run_id: str) -> list[Group]:
    return await orchestrator.get_final_groups(run_id)


async def apply_duplicate_resolution(
    orchestrator: FileOrganizationOrchestrator,
    run_id: str,
    decisions: list[DuplicateDecision],
) -> list[Group]:
    return await orchestrator.apply_duplicate_resolution(run_id, decisions)


async def apply_null_group_resolution(
    orchestrator: FileOrganizationOrchestrator,
    run_id: str,
    decisions: list[NullGroupDecision],
) -> list[Group]:
    return await orchestrator.apply_null_group_resolution(run_id, decisions)


async def record_window_judgments(
    orchestrator: FileOrganizationOrchestrator,
    run_id: str,
    window_index: int,
    judgment_set: JudgmentSet,
) -> None:
    await orchestrator.record_window_judgments(run_id, window_index, judgment_set)


async def record_window_failure(
    orchestrator: FileOrganizationOrchestrator,
    run_id: str,
    window_index: int,
    exc: FileOrganizationError,
) -> None:
    await orchestrator.record_window_failure(run_id, window_index, exc)


async def accept_failed_window(
    orchestrator: FileOrganizationOrchestrator, run_id: str, window_index: int
) -> None:
    await orchestrator.accept_failed_window(run_id, window_index)


async def record_transcode_result(
    orchestrator: FileOrganizationOrchestrator,
    run_id: str,
    page_number: int,
    error: str | None = None,
) -> None:
    await orchestrator.record_transcode_result(run_id, page_number, error=error)


async def retrigger_run(orchestrator: FileOrganizationOrchestrator, run_id: str) -> AdvanceResult:
    return await orchestrator.retrigger_run(run_id)


async def organize(
    orchestrator: FileOrganizationOrchestrator,
    sources: list[SourceDocument],
    run_id: str | None = None,
    settings: Settings | None = None,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> OrganizeResult:
    """Create a run and advance it until it is done, blocked, waiting or failed.

    With the inline dispatcher every dispatched phase finishes inside its
    advance call, so a healthy run reaches done in a handful of steps.
    """
    run_id = await start_run(orchestrator, sources, run_id=run_id, settings=settings)
    logger.info("Organizing %d sources in run %s", len(sources), run_id)

    result: AdvanceResult | None = None
    steps = 0
    while steps < max_steps:
        steps += 1
        result = await orchestrator.advance(run_id)
        if not result.ok or result.action != "run":
            break

    final = await orchestrator.store.load_final(run_id)
    merge = await orchestrator.store.load_merge(run_id)
    return OrganizeResult(
        run_id=run_id,
        phase=result.phase if result else None,
        completed=bool(result and result.is_done),
        groups=final.groups if final else [],
        assignments=final.assignments if final else [],
        low_confidence_pages=merge.low_confidence_pages if merge else [],
        error=result.error if result else None,
        steps=steps,
    )
