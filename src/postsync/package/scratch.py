"""Durable scratch storage backing the temp asset cache.

A narrow key/value byte store so the cache and codec can be exercised
without touching a real file system.  Keys are ``/``-separated paths.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ScratchStorage(Protocol):
    """Byte storage addressed by ``/``-separated keys."""

    async def write(self, key: str, data: bytes) -> None: ...

    async def read(self, key: str) -> bytes | None:
        """Return the stored bytes, or None if the key is absent."""
        ...

    async def delete_prefix(self, prefix: str) -> int:
        """Remove every key under ``prefix`` (all keys if empty). Returns the count."""
        ...

    async def keys(self, prefix: str = "") -> list[str]: ...


class MemoryScratchStorage:
    """In-process scratch storage. Contents vanish with the process."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def write(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)

    async def read(self, key: str) -> bytes | None:
        return self._blobs.get(key)

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._blobs if k.startswith(prefix)]
        for key in doomed:
            del self._blobs[key]
        return len(doomed)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._blobs if k.startswith(prefix))


class DirectoryScratchStorage:
    """Scratch storage rooted at a directory; each key is a file path."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        parts = [p for p in key.split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise ValueError(f"Invalid scratch key: {key!r}")
        return self.root.joinpath(*parts)

    async def write(self, key: str, data: bytes) -> None:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)

    async def read(self, key: str) -> bytes | None:
        path = self._path(key)

        def _read() -> bytes | None:
            return path.read_bytes() if path.is_file() else None

        return await asyncio.to_thread(_read)

    async def delete_prefix(self, prefix: str) -> int:
        target = self._path(prefix) if prefix.strip("/") else self.root

        def _delete() -> int:
            if not target.exists():
                return 0
            if target.is_file():
                target.unlink()
                return 1
            count = sum(1 for p in target.rglob("*") if p.is_file())
            shutil.rmtree(target)
            return count

        removed = await asyncio.to_thread(_delete)
        logger.debug("Removed %d scratch file(s) under %s", removed, target)
        return removed

    async def keys(self, prefix: str = "") -> list[str]:
        def _keys() -> list[str]:
            if not self.root.exists():
                return []
            found = (
                p.relative_to(self.root).as_posix() for p in self.root.rglob("*") if p.is_file()
            )
            return sorted(k for k in found if k.startswith(prefix))

        return await asyncio.to_thread(_keys)
