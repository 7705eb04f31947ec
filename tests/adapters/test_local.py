"""Tests for LocalStorageAdapter: the JSON-file post and image store."""

import json
from pathlib import Path

import pytest

from postsync.adapters.local import (
    IMAGES_FILENAME,
    POSTS_FILENAME,
    LocalStorageAdapter,
)
from postsync.document.models import Post, PostStatus
from postsync.document.validator import validate_post
from postsync.errors import AssetNotFoundError, ValidationError


def _make_post(
    post_id: str = "p1",
    title: str = "Hello",
    date: str = "2024-01-01",
    status: str = "draft",
) -> Post:
    """Helper to build a valid Post with sensible defaults."""
    return validate_post(
        {
            "id": post_id,
            "metadata": {
                "title": title,
                "author": "Ada",
                "category": "notes",
                "readTime": "1 min",
                "featured": False,
                "status": status,
                "date": date,
            },
            "content": {"sections": [{"id": "s1", "type": "text", "content": "Body"}]},
        }
    )


class TestSaveAndLoad:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        post = _make_post()

        assert await adapter.save(post) == "p1"
        assert await adapter.load("p1") == post

    @pytest.mark.asyncio
    async def test_overwrites_existing(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        await adapter.save(_make_post(title="Version 1"))
        await adapter.save(_make_post(title="Version 2"))

        loaded = await adapter.load("p1")
        assert loaded is not None
        assert loaded.metadata.title == "Version 2"

    @pytest.mark.asyncio
    async def test_load_missing_returns_none(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        assert await adapter.load("nope") is None

    @pytest.mark.asyncio
    async def test_persists_wire_form(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        await adapter.save(_make_post())

        data = json.loads((tmp_path / POSTS_FILENAME).read_text(encoding="utf-8"))
        assert data["posts"]["p1"]["metadata"]["readTime"] == "1 min"

    @pytest.mark.asyncio
    async def test_rejects_invalid_post(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        with pytest.raises(ValidationError):
            await adapter.save({"id": "bad"})  # type: ignore[arg-type]
        assert not (tmp_path / POSTS_FILENAME).exists()

    @pytest.mark.asyncio
    async def test_corrupt_store_starts_fresh(self, tmp_path: Path):
        (tmp_path / POSTS_FILENAME).write_text("{broken", encoding="utf-8")
        adapter = LocalStorageAdapter(tmp_path)

        assert await adapter.list() == []
        await adapter.save(_make_post())
        assert await adapter.load("p1") is not None


class TestList:
    @pytest.mark.asyncio
    async def test_newest_first(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        await adapter.save(_make_post("old", date="2023-05-01"))
        await adapter.save(_make_post("new", date="2024-05-01"))
        await adapter.save(_make_post("mid", date="2024-01-01"))

        assert [s.id for s in await adapter.list()] == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_filter_by_status(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        await adapter.save(_make_post("a", status="draft"))
        await adapter.save(_make_post("b", status="published"))

        published = await adapter.list(status=PostStatus.PUBLISHED)
        assert [s.id for s in published] == ["b"]


class TestDelete:
    @pytest.mark.asyncio
    async def test_removes_post(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        await adapter.save(_make_post())
        await adapter.delete("p1")
        assert await adapter.load("p1") is None

    @pytest.mark.asyncio
    async def test_missing_id_is_noop(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        await adapter.delete("ghost")
        assert await adapter.list() == []


class TestImages:
    @pytest.mark.asyncio
    async def test_upload_read_delete(self, tmp_path: Path):
        image = tmp_path / "photo.png"
        image.write_bytes(b"\x89PNG-bytes")
        adapter = LocalStorageAdapter(tmp_path / "store")

        url = await adapter.upload_image(image)
        assert url.startswith("local://")

        data, mime_type = await adapter.read_image(url)
        assert data == b"\x89PNG-bytes"
        assert mime_type == "image/png"

        index = json.loads((tmp_path / "store" / IMAGES_FILENAME).read_text(encoding="utf-8"))
        assert len(index["images"]) == 1

        await adapter.delete_image(url)
        with pytest.raises(AssetNotFoundError):
            await adapter.read_image(url)

    @pytest.mark.asyncio
    async def test_read_foreign_url(self, tmp_path: Path):
        adapter = LocalStorageAdapter(tmp_path)
        with pytest.raises(AssetNotFoundError):
            await adapter.read_image("https://example.com/a.png")

    def test_supports_images(self, tmp_path: Path):
        assert LocalStorageAdapter(tmp_path).supports_images is True
