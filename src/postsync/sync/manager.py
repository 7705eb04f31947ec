"""Sync manager, the façade the rest of the application uses.

Owns the adapter list and the package file manager, fans each logical
operation out to every backend, and lets only one mutating operation
run at a time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from postsync.adapters.base import StorageAdapter
from postsync.document.models import Post
from postsync.document.validator import validate_post
from postsync.errors import (
    ImageUploadError,
    NoAdaptersError,
    PackageError,
    SyncInProgressError,
    ValidationError,
)
from postsync.package.files import PackageFiles
from postsync.sync.fanout import FanOutResult, fan_out, load_all, merge_by_id

logger = logging.getLogger(__name__)

# Alias to avoid shadowing by SyncManager.list
_list = list


class SyncManager:
    """Coordinates saves, loads and deletes across every storage backend.

    Mutating calls (``save``, ``delete``, ``upload_image``,
    ``delete_image``, ``sync``) share a single in-flight guard: a call
    made while another is outstanding fails immediately with
    SyncInProgressError instead of queueing.

    Args:
        adapters: Initial backends, in precedence order for ``load``.
        files: Package file manager used for the auto-save slot and the
            file-export copy written on every save.
    """

    def __init__(
        self,
        adapters: Iterable[StorageAdapter] = (),
        files: PackageFiles | None = None,
    ) -> None:
        self._adapters: _list[StorageAdapter] = _list(adapters)
        self.files = files
        self._sync_in_progress = False

    # ── Adapter registry ─────────────────────────────────────────

    def add_adapter(self, adapter: StorageAdapter) -> None:
        self._adapters.append(adapter)

    @property
    def adapters(self) -> _list[StorageAdapter]:
        return _list(self._adapters)

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        # No await between the check and the set.
        if self._sync_in_progress:
            raise SyncInProgressError(operation)
        self._sync_in_progress = True
        try:
            yield
        finally:
            self._sync_in_progress = False

    def _image_adapters(self) -> _list[StorageAdapter]:
        return [a for a in self._adapters if a.supports_images]

    # ── Operations ───────────────────────────────────────────────

    async def save(self, post: Post) -> str:
        """Save to every adapter and the package file; return the first adapter's id.

        Raises:
            ValidationError: Before any backend is touched.
            FanOutError: If any adapter failed; ``.result`` lists outcomes.
            SyncInProgressError: If another mutating call is running.
        """
        with self._exclusive("save"):
            post = validate_post(post)
            if not self._adapters and self.files is None:
                raise NoAdaptersError()
            result = await fan_out("save", self._adapters, lambda a: a.save(post))
            if self.files is not None:
                await self.files.save_package(post)
            result.raise_for_errors()
            ids = result.values()
            post_id = ids[0] if ids else post.id
            logger.info("Saved post %s to %d adapter(s)", post_id, len(ids))
            return post_id

    async def load(self, post_id: str) -> Post | None:
        """Return the auto-saved copy if it matches, else the first adapter hit."""
        record = await self.files.read_autosave_record() if self.files is not None else None
        if record is not None and record.post_id == post_id:
            try:
                autosaved = await self.files.decode_autosave(record)  # type: ignore[union-attr]
            except (PackageError, ValidationError):
                logger.warning("Unreadable auto-save slot, falling back to adapters", exc_info=True)
                autosaved = None
            if autosaved is not None and autosaved.id == post_id:
                logger.debug("Loaded post %s from auto-save", post_id)
                return autosaved

        for adapter in self._adapters:
            post = await adapter.load(post_id)
            if post is not None:
                logger.debug("Loaded post %s from %s", post_id, adapter.name)
                return post
        return None

    async def list(self) -> _list[Post]:
        """Merge every adapter's posts by id, later adapters winning, newest first."""
        result = await fan_out("list", self._adapters, load_all)
        result.raise_for_errors()
        return merge_by_id(result.values())

    async def delete(self, post_id: str) -> FanOutResult:
        """Delete from every adapter, then drop the auto-save slot if it holds this post."""
        with self._exclusive("delete"):
            result = await fan_out("delete", self._adapters, lambda a: a.delete(post_id))
            result.raise_for_errors()
            if self.files is not None:
                record = await self.files.read_autosave_record()
                if record is not None and record.post_id == post_id:
                    await self.files.clear_autosave()
            return result

    async def upload_image(self, file_path: Path) -> str:
        """Upload through the first image-capable adapter that succeeds."""
        with self._exclusive("upload image"):
            candidates = self._image_adapters()
            for adapter in candidates:
                try:
                    return await adapter.upload_image(Path(file_path))
                except Exception:
                    logger.warning(
                        "Image upload via %s failed", adapter.name, exc_info=True
                    )
            raise ImageUploadError(
                "No adapter available for image upload"
                if not candidates
                else f"Image upload failed on all {len(candidates)} adapter(s)"
            )

    async def delete_image(self, url: str) -> FanOutResult:
        with self._exclusive("delete image"):
            result = await fan_out(
                "delete image", self._image_adapters(), lambda a: a.delete_image(url)
            )
            return result.raise_for_errors()

    async def sync(self) -> int:
        """Full resync: re-save every known post to every adapter.

        Returns:
            The number of posts re-saved.
        """
        with self._exclusive("sync"):
            posts = await self.list()
            for post in posts:
                result = await fan_out("sync", self._adapters, lambda a, p=post: a.save(p))
                result.raise_for_errors()
            logger.info("Resynced %d post(s) across %d adapter(s)", len(posts), len(self._adapters))
            return len(posts)
