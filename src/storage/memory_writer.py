# src/storage/memory_writer.py - v1
"""In-memory output writer for tests and ephemeral runs."""

from __future__ import annotations

from fileorganizer.storage.base_output_writer import BaseOutputWriter


class MemoryWriter(BaseOutputWriter):
    """Keeps every written file in a dict keyed by normalized path."""

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}

    @staticmethod
    def _key(path: str) -> str:
        return "/".join(part for part in str(path).split("/") if part)

    async def write(self, path: str, content: bytes | str) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        self._files[self._key(path)] = data

    async def read(self, path: str) -> bytes:
        key = self._key(path)
        if key not in self._files:
            raise FileNotFoundError(path)
        return self._files[key]

    async def exists(self, path: str) -> bool:
        key = self._key(path)
        prefix = f"{key}/"
        return key in self._files or any(k.startswith(prefix) for k in self._files)

    async def delete(self, path: str) -> None:
        self._files.pop(self._key(path), None)

    async def list_dir(self, path: str) -> list[str]:
        prefix = f"{self._key(path)}/"
        names = {k[len(prefix):].split("/", 1)[0] for k in self._files if k.startswith(prefix)}
        return sorted(names)

    @property
    def file_count(self) -> int:
        return len(self._files)
