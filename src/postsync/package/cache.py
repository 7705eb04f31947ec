"""Per-post temp cache for binary assets extracted from packages.

Decoded assets land here so a post can render its images before it is
saved again.  Entries are namespaced by post id and are not expected to
survive a restart.
"""

from __future__ import annotations

import logging
from urllib.parse import quote, unquote

from postsync.errors import AssetNotFoundError
from postsync.package.scratch import MemoryScratchStorage, ScratchStorage

logger = logging.getLogger(__name__)

HANDLE_SCHEME = "temp://"


def _safe_segment(value: str) -> str:
    """Percent-encode one key segment; distinct inputs never share a segment."""
    if not value:
        raise ValueError("Cache key segments must be non-empty")
    encoded = quote(value, safe="")
    if not encoded.strip("."):
        encoded = encoded.replace(".", "%2E")
    return encoded


def is_handle(url: str) -> bool:
    return url.startswith(HANDLE_SCHEME)


def parse_handle(handle: str) -> tuple[str, str]:
    """Split a ``temp://<post-id>/<filename>`` handle into its decoded parts."""
    if not is_handle(handle):
        raise AssetNotFoundError(handle)
    post_id, sep, filename = handle[len(HANDLE_SCHEME):].partition("/")
    if not sep or not post_id or not filename:
        raise AssetNotFoundError(handle)
    return unquote(post_id), unquote(filename)


class TempAssetCache:
    """Namespaced blob cache handing back ``temp://`` reference handles."""

    def __init__(self, storage: ScratchStorage | None = None) -> None:
        self.storage = storage if storage is not None else MemoryScratchStorage()

    @staticmethod
    def _key(post_id: str, filename: str) -> str:
        return f"{_safe_segment(post_id)}/{_safe_segment(filename)}"

    async def put(self, post_id: str, data: bytes, filename: str) -> str:
        """Store ``data`` for a post and return its handle."""
        key = self._key(post_id, filename)
        await self.storage.write(key, data)
        logger.debug("Cached %d bytes as %s", len(data), key)
        return f"{HANDLE_SCHEME}{key}"

    async def get(self, handle: str) -> bytes:
        """Resolve a handle to its bytes.

        Raises:
            AssetNotFoundError: If the namespace or file is absent.
        """
        post_id, filename = parse_handle(handle)
        data = await self.storage.read(self._key(post_id, filename))
        if data is None:
            raise AssetNotFoundError(handle)
        return data

    async def find(self, post_id: str, filename: str) -> str | None:
        """Return the handle for a cached file, or None if not cached."""
        key = self._key(post_id, filename)
        if await self.storage.read(key) is None:
            return None
        return f"{HANDLE_SCHEME}{key}"

    async def handles(self, post_id: str) -> list[str]:
        prefix = f"{_safe_segment(post_id)}/"
        return [f"{HANDLE_SCHEME}{k}" for k in await self.storage.keys(prefix)]

    async def clear(self, post_id: str | None = None) -> int:
        """Drop cached entries for one post, or everything when ``post_id`` is None."""
        prefix = "" if post_id is None else f"{_safe_segment(post_id)}/"
        removed = await self.storage.delete_prefix(prefix)
        if removed:
            logger.debug("Cleared %d cached asset(s) for %s", removed, post_id or "all posts")
        return removed
