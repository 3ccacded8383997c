# src/storage/run_store.py - v1
"""Persist every artifact of a run as JSON through an output writer.

All intermediate artifacts (pages, window judgments, merge result) stay on
disk after the run so a failed run can be inspected.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, TypeAdapter

from fileorganizer.core.models import MergeResult, Page, SourceDocument
from fileorganizer.storage import layout
from fileorganizer.storage.base_output_writer import BaseOutputWriter
from fileorganizer.storage.models import (
    FinalPartition,
    ResolutionRecord,
    RunManifest,
    TranscodeJob,
    WindowIndex,
    WindowRecord,
)

if TYPE_CHECKING:
    from fileorganizer.pipeline.state import RunSnapshot

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_SOURCES = TypeAdapter(list[SourceDocument])
_PAGES = TypeAdapter(list[Page])
_JOBS = TypeAdapter(list[TranscodeJob])


class RunNotFoundError(LookupError):
    """Raised when a run_id has no manifest."""


class RunStore:
    """Page/artifact store for file organization runs."""

    def __init__(self, writer: BaseOutputWriter) -> None:
        self._writer = writer

    @property
    def writer(self) -> BaseOutputWriter:
        return self._writer

    # --- Helpers ---

    async def _read_model(self, path: str, model: type[ModelT]) -> ModelT | None:
        if not await self._writer.exists(path):
            return None
        return model.model_validate_json(await self._writer.read(path))

    async def _write_model(self, path: str, value: BaseModel) -> None:
        await self._writer.write(path, value.model_dump_json(indent=2))

    # --- Run ---

    async def create_run(self, manifest: RunManifest, sources: list[SourceDocument]) -> None:
        if await self._writer.exists(layout.run_manifest_path(manifest.run_id)):
            raise FileExistsError(f"Run {manifest.run_id} already exists")
        ordered = sorted(sources, key=lambda s: s.position)
        await self._writer.write(
            layout.sources_path(manifest.run_id), _SOURCES.dump_json(ordered, indent=2)
        )
        await self.save_manifest(manifest)
        logger.info("Created run %s with %d sources", manifest.run_id, len(ordered))

    async def run_exists(self, run_id: str) -> bool:
        return await self._writer.exists(layout.run_manifest_path(run_id))

    async def list_runs(self) -> list[str]:
        return await self._writer.list_dir(layout.RUNS_DIR)

    async def load_manifest(self, run_id: str) -> RunManifest:
        manifest = await self._read_model(layout.run_manifest_path(run_id), RunManifest)
        if manifest is None:
            raise RunNotFoundError(f"Unknown run: {run_id}")
        return manifest

    async def save_manifest(self, manifest: RunManifest) -> None:
        await self._write_model(layout.run_manifest_path(manifest.run_id), manifest)

    async def load_sources(self, run_id: str) -> list[SourceDocument]:
        path = layout.sources_path(run_id)
        if not await self._writer.exists(path):
            return []
        return _SOURCES.validate_json(await self._writer.read(path))

    # --- Pages ---

    async def has_resolved_pages(self, run_id: str) -> bool:
        return await self._writer.exists(layout.resolved_pages_path(run_id))

    async def load_pages(self, run_id: str) -> list[Page] | None:
        path = layout.resolved_pages_path(run_id)
        if not await self._writer.exists(path):
            return None
        return _PAGES.validate_json(await self._writer.read(path))

    async def save_pages(self, run_id: str, pages: list[Page]) -> None:
        await self._writer.write(
            layout.resolved_pages_path(run_id), _PAGES.dump_json(pages, indent=2)
        )

    # --- Transcode jobs ---

    async def load_transcode_jobs(self, run_id: str) -> list[TranscodeJob]:
        path = layout.transcode_jobs_path(run_id)
        if not await self._writer.exists(path):
            return []
        return _JOBS.validate_json(await self._writer.read(path))

    async def save_transcode_jobs(self, run_id: str, jobs: list[TranscodeJob]) -> None:
        await self._writer.write(
            layout.transcode_jobs_path(run_id), _JOBS.dump_json(jobs, indent=2)
        )

    # --- Windows ---

    async def save_window(self, run_id: str, record: WindowRecord) -> None:
        await self._write_model(layout.window_path(run_id, record.window_index), record)

    async def load_window(self, run_id: str, window_index: int) -> WindowRecord:
        record = await self._read_model(layout.window_path(run_id, window_index), WindowRecord)
        if record is None:
            raise KeyError(f"Run {run_id} has no window {window_index}")
        return record

    async def save_window_index(self, run_id: str, index: WindowIndex) -> None:
        await self._write_model(layout.windows_index_path(run_id), index)

    async def load_window_index(self, run_id: str) -> WindowIndex | None:
        return await self._read_model(layout.windows_index_path(run_id), WindowIndex)

    async def load_windows(self, run_id: str) -> list[WindowRecord] | None:
        """All window records, or None when windows were never created."""
        index = await self.load_window_index(run_id)
        if index is None:
            return None
        return [await self.load_window(run_id, i) for i in range(index.window_count)]

    # --- Merge / resolution / output ---

    async def load_merge(self, run_id: str) -> MergeResult | None:
        return await self._read_model(layout.merge_result_path(run_id), MergeResult)

    async def save_merge(self, run_id: str, result: MergeResult) -> None:
        await self._write_model(layout.merge_result_path(run_id), result)

    async def load_resolution(self, run_id: str) -> ResolutionRecord | None:
        return await self._read_model(layout.resolution_path(run_id), ResolutionRecord)

    async def save_resolution(self, run_id: str, record: ResolutionRecord) -> None:
        await self._write_model(layout.resolution_path(run_id), record)

    async def load_final(self, run_id: str) -> FinalPartition | None:
        return await self._read_model(layout.final_groups_path(run_id), FinalPartition)

    async def save_final(self, run_id: str, partition: FinalPartition) -> None:
        await self._write_model(layout.final_groups_path(run_id), partition)

    async def delete_resolution(self, run_id: str) -> None:
        await self._writer.delete(layout.resolution_path(run_id))

    # --- Snapshot ---

    async def load_snapshot(self, run_id: str) -> RunSnapshot:
        """Load every persisted artifact of a run for phase derivation."""
        from fileorganizer.pipeline.state import RunSnapshot

        return RunSnapshot(
            run_id=run_id,
            manifest=await self.load_manifest(run_id),
            pages=await self.load_pages(run_id),
            transcode_jobs=await self.load_transcode_jobs(run_id),
            windows=await self.load_windows(run_id),
            merge=await self.load_merge(run_id),
            resolution=await self.load_resolution(run_id),
            final=await self.load_final(run_id),
        )
