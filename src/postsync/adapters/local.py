"""JSON-backed local post store.

Keeps two object stores under one directory: ``posts.json`` holding
every post keyed by id, and ``images.json`` indexing binary image blobs
stored under ``images/``.  Each mutation rewrites its index through a
temp file and an atomic rename, so a crash mid-write never leaves a
half-written store behind.
"""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import os
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from postsync.adapters.base import StorageAdapter, sort_newest_first
from postsync.document.models import Post, PostStatus, PostSummary
from postsync.document.validator import validate_post
from postsync.errors import AssetNotFoundError, StorageError

logger = logging.getLogger(__name__)

POSTS_FILENAME = "posts.json"
IMAGES_FILENAME = "images.json"
IMAGES_DIRNAME = "images"
IMAGE_SCHEME = "local://"

# Alias to avoid shadowing by LocalStorageAdapter.list
_list = list


class ImageRecord(BaseModel):
    """An image blob held by the local store."""

    id: str
    name: str
    mime_type: str = "application/octet-stream"


class _PostsData(BaseModel):
    """Internal wrapper for JSON serialization of the posts store."""

    posts: dict[str, dict[str, Any]] = Field(default_factory=dict)


class _ImagesData(BaseModel):
    images: dict[str, ImageRecord] = Field(default_factory=dict)


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(text, encoding="utf-8")
    os.replace(tmp, path)


class LocalStorageAdapter(StorageAdapter):
    """Local transactional store for posts and images.

    Operations are serialized by an asyncio lock and the blocking file
    I/O runs in a worker thread.
    """

    supports_images = True

    def __init__(self, directory: Path, name: str = "local") -> None:
        self.name = name
        self.directory = Path(directory)
        self._posts_path = self.directory / POSTS_FILENAME
        self._images_path = self.directory / IMAGES_FILENAME
        self._images_dir = self.directory / IMAGES_DIRNAME
        self._lock = asyncio.Lock()

    # ── Private helpers ──────────────────────────────────────────

    def _read_posts(self) -> _PostsData:
        if not self._posts_path.exists():
            return _PostsData()
        try:
            raw = json.loads(self._posts_path.read_text(encoding="utf-8"))
            return _PostsData.model_validate(raw)
        except (json.JSONDecodeError, ValueError):
            logger.warning("Corrupt post store at %s, starting fresh", self._posts_path)
            return _PostsData()

    def _write_posts(self, data: _PostsData) -> None:
        _atomic_write(self._posts_path, data.model_dump_json(indent=2))

    def _read_images(self) -> _ImagesData:
        if not self._images_path.exists():
            return _ImagesData()
        try:
            raw = json.loads(self._images_path.read_text(encoding="utf-8"))
            return _ImagesData.model_validate(raw)
        except (json.JSONDecodeError, ValueError):
            logger.warning("Corrupt image index at %s, starting fresh", self._images_path)
            return _ImagesData()

    def _write_images(self, data: _ImagesData) -> None:
        _atomic_write(self._images_path, data.model_dump_json(indent=2))

    async def _run(self, func: Any, *args: Any) -> Any:
        async with self._lock:
            try:
                return await asyncio.to_thread(func, *args)
            except OSError as exc:
                raise StorageError(f"{self.name}: {exc}") from exc

    # ── Transactions (run in a worker thread) ────────────────────

    def _save_tx(self, post: Post) -> str:
        data = self._read_posts()
        data.posts[post.id] = post.to_dict()
        self._write_posts(data)
        return post.id

    def _load_tx(self, post_id: str) -> dict[str, Any] | None:
        return self._read_posts().posts.get(post_id)

    def _list_tx(self) -> _list[dict[str, Any]]:
        return _list(self._read_posts().posts.values())

    def _delete_tx(self, post_id: str) -> None:
        data = self._read_posts()
        if data.posts.pop(post_id, None) is not None:
            self._write_posts(data)

    def _upload_image_tx(self, file_path: Path) -> str:
        image_id = str(uuid.uuid4())
        mime_type, _ = mimetypes.guess_type(file_path.name)
        payload = file_path.read_bytes()
        self._images_dir.mkdir(parents=True, exist_ok=True)
        (self._images_dir / image_id).write_bytes(payload)
        data = self._read_images()
        data.images[image_id] = ImageRecord(
            id=image_id,
            name=file_path.name,
            mime_type=mime_type or "application/octet-stream",
        )
        self._write_images(data)
        return f"{IMAGE_SCHEME}{image_id}"

    def _delete_image_tx(self, image_id: str) -> None:
        data = self._read_images()
        if data.images.pop(image_id, None) is not None:
            self._write_images(data)
        (self._images_dir / image_id).unlink(missing_ok=True)

    def _read_image_tx(self, image_id: str) -> tuple[bytes, ImageRecord] | None:
        record = self._read_images().images.get(image_id)
        blob_path = self._images_dir / image_id
        if record is None or not blob_path.exists():
            return None
        return blob_path.read_bytes(), record

    # ── StorageAdapter ───────────────────────────────────────────

    async def save(self, post: Post) -> str:
        validated = validate_post(post)
        post_id = await self._run(self._save_tx, validated)
        logger.debug("Saved post %s to %s", post_id, self.directory)
        return post_id

    async def load(self, post_id: str) -> Post | None:
        raw = await self._run(self._load_tx, post_id)
        if raw is None:
            return None
        return validate_post(raw)

    async def list(self, status: PostStatus | None = None) -> _list[PostSummary]:
        """Return summaries newest-first, optionally filtered by status."""
        records = await self._run(self._list_tx)
        summaries = [validate_post(raw).summary() for raw in records]
        if status is not None:
            summaries = [s for s in summaries if s.status == status]
        return sort_newest_first(summaries)

    async def delete(self, post_id: str) -> None:
        await self._run(self._delete_tx, post_id)

    async def upload_image(self, file_path: Path) -> str:
        return await self._run(self._upload_image_tx, Path(file_path))

    async def delete_image(self, url: str) -> None:
        await self._run(self._delete_image_tx, _image_id(url))

    async def read_image(self, url: str) -> tuple[bytes, str]:
        """Return ``(bytes, mime_type)`` for a ``local://`` image URL.

        Raises:
            AssetNotFoundError: If the image is not in the store.
        """
        found = await self._run(self._read_image_tx, _image_id(url))
        if found is None:
            raise AssetNotFoundError(url)
        payload, record = found
        return payload, record.mime_type


def _image_id(url: str) -> str:
    if not url.startswith(IMAGE_SCHEME):
        raise AssetNotFoundError(url)
    return url[len(IMAGE_SCHEME):]
