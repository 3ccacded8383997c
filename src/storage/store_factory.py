# src/storage/store_factory.py - v1
"""Factory: instantiate the run store from configuration."""

from __future__ import annotations

from fileorganizer.config.settings import Settings
from fileorganizer.storage.base_output_writer import BaseOutputWriter
from fileorganizer.storage.local_writer import LocalWriter
from fileorganizer.storage.memory_writer import MemoryWriter
from fileorganizer.storage.run_store import RunStore


def create_writer(settings: Settings) -> BaseOutputWriter:
    """Create the output writer selected by STORE_BACKEND.

    Raises:
        ValueError: If the backend is not supported.
    """
    if settings.store_backend == "local":
        return LocalWriter(settings.output_path)
    if settings.store_backend == "memory":
        return MemoryWriter()
    raise ValueError(f"Unsupported store backend: {settings.store_backend!r}")


def create_run_store(settings: Settings) -> RunStore:
    return RunStore(create_writer(settings))
