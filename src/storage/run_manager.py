# src/storage/run_manager.py - v2
"""Run lifecycle management: create, record phase events, fail, complete."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from fileorganizer.core.errors import ErrorInfo, FileOrganizationError
from fileorganizer.core.models import SourceDocument
from fileorganizer.storage.models import PhaseEvent, RunManifest
from fileorganizer.version import __version__

if TYPE_CHECKING:
    from fileorganizer.storage.run_store import RunStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_run_id(timestamp: datetime | None = None) -> str:
    """Generate a run_id: yyyymmdd_hhmm_{uuid4_short}."""
    ts = timestamp or _now()
    short_uuid = uuid.uuid4().hex[:5]
    return f"{ts.strftime('%Y%m%d_%H%M')}_{short_uuid}"


async def create_run(
    store: RunStore,
    sources: list[SourceDocument],
    run_id: str | None = None,
    config: dict[str, Any] | None = None,
) -> RunManifest:
    """Create a run for an ordered list of source documents.

    Args:
        store: Run artifact store.
        sources: Source documents; their ``position`` fixes page order.
        run_id: Explicit identifier, generated when omitted.
        config: Settings snapshot recorded in the manifest.

    Returns:
        The newly written manifest.
    """
    if not sources:
        raise ValueError("A run needs at least one source document")
    manifest = RunManifest(
        run_id=run_id or generate_run_id(),
        pipeline_version=__version__,
        created_at=_now(),
        status="running",
        config=config or {},
    )
    await store.create_run(manifest, sources)
    return manifest


async def record_event(
    store: RunStore,
    run_id: str,
    phase: str,
    action: str,
    detail: str = "",
) -> RunManifest:
    """Append a phase event to the manifest."""
    manifest = await store.load_manifest(run_id)
    now = _now()
    manifest.events.append(PhaseEvent(phase=phase, action=action, at=now, detail=detail))
    manifest.updated_at = now
    await store.save_manifest(manifest)
    return manifest


async def mark_failed(store: RunStore, run_id: str, exc: FileOrganizationError) -> ErrorInfo:
    """Record a tagged failure on the run."""
    info = ErrorInfo.from_exception(exc)
    manifest = await store.load_manifest(run_id)
    manifest.status = "failed"
    manifest.error = info
    manifest.updated_at = _now()
    await store.save_manifest(manifest)
    logger.error("Run %s failed (%s): %s", run_id, info.kind.value, info.message)
    return info


async def clear_failure(store: RunStore, run_id: str) -> RunManifest:
    """Put a failed run back into the running state."""
    manifest = await store.load_manifest(run_id)
    manifest.status = "running"
    manifest.error = None
    manifest.updated_at = _now()
    await store.save_manifest(manifest)
    return manifest


async def mark_completed(store: RunStore, run_id: str) -> RunManifest:
    manifest = await store.load_manifest(run_id)
    if manifest.status != "completed":
        manifest.status = "completed"
        manifest.completed_at = _now()
        manifest.updated_at = manifest.completed_at
        await store.save_manifest(manifest)
    return manifest
