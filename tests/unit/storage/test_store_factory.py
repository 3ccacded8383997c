# tests/unit/storage/test_store_factory.py - v1
"""Tests for storage/store_factory.py."""

from __future__ import annotations

from fileorganizer.config.settings import Settings
from fileorganizer.storage.local_writer import LocalWriter
from fileorganizer.storage.memory_writer import MemoryWriter
from fileorganizer.storage.run_store import RunStore
from fileorganizer.storage.store_factory import create_run_store, create_writer


class TestStoreFactory:
    def test_memory(self, settings):
        assert isinstance(create_writer(settings), MemoryWriter)

    def test_local(self, tmp_output_dir):
        settings = Settings(_env_file=None, store_backend="local", output_path=tmp_output_dir)
        assert isinstance(create_writer(settings), LocalWriter)

    def test_run_store(self, settings):
        store = create_run_store(settings)
        assert isinstance(store, RunStore)
        assert isinstance(store.writer, MemoryWriter)
