"""Tests for PackageFiles: save targets, auto-save slot and recent files."""

import json
from pathlib import Path

import pytest

from postsync.document.models import Post
from postsync.document.validator import validate_post
from postsync.errors import PackageError
from postsync.package.cache import TempAssetCache
from postsync.package.codec import PackageCodec
from postsync.package.files import (
    AUTOSAVE_FILENAME,
    DATA_URI_PREFIX,
    DirectoryPicker,
    PackageFiles,
    render_html,
)


def _make_post(post_id: str = "p1", title: str = "Hello World") -> Post:
    return validate_post(
        {
            "id": post_id,
            "metadata": {
                "title": title,
                "author": "Ada",
                "category": "notes",
                "readTime": "1 min",
                "featured": False,
                "status": "draft",
                "date": "2024-01-01T10:00:00Z",
            },
            "content": {
                "sections": [
                    {"id": "s1", "type": "text", "content": "<p>Body</p>"},
                    {
                        "id": "s2",
                        "type": "code",
                        "content": "a < b",
                        "metadata": {"language": "python"},
                    },
                ],
                "backgroundColor": "#fafafa",
            },
        }
    )


class _CancelPicker:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def pick_save_target(self, suggested_name: str) -> Path | None:
        self.calls.append(suggested_name)
        return None


def _files(tmp_path: Path, picker=None) -> PackageFiles:
    return PackageFiles(tmp_path / "state", PackageCodec(TempAssetCache()), picker=picker)


class TestAutoSave:
    @pytest.mark.asyncio
    async def test_write_and_read(self, tmp_path: Path):
        files = _files(tmp_path)
        record = await files.write_autosave(_make_post())

        assert record.id == "auto-save"
        assert record.content.startswith(DATA_URI_PREFIX)
        raw = json.loads((tmp_path / "state" / AUTOSAVE_FILENAME).read_text(encoding="utf-8"))
        assert raw["postId"] == "p1"
        assert "savedAt" in raw

        restored = await files.read_autosave()
        assert restored is not None
        assert restored.metadata.title == "Hello World"

    @pytest.mark.asyncio
    async def test_empty_slot(self, tmp_path: Path):
        assert await _files(tmp_path).read_autosave() is None

    @pytest.mark.asyncio
    async def test_single_slot_overwritten(self, tmp_path: Path):
        files = _files(tmp_path)
        await files.write_autosave(_make_post("p1"))
        await files.write_autosave(_make_post("p2"))

        restored = await files.read_autosave()
        assert restored is not None
        assert restored.id == "p2"

    @pytest.mark.asyncio
    async def test_clear(self, tmp_path: Path):
        files = _files(tmp_path)
        await files.write_autosave(_make_post())
        await files.clear_autosave()
        assert await files.read_autosave() is None

    @pytest.mark.asyncio
    async def test_invalid_base64_raises_package_error(self, tmp_path: Path):
        files = _files(tmp_path)
        record = await files.write_autosave(_make_post())
        record.content = DATA_URI_PREFIX + "!!!notb64"
        (tmp_path / "state" / AUTOSAVE_FILENAME).write_text(
            record.model_dump_json(by_alias=True), encoding="utf-8"
        )

        with pytest.raises(PackageError, match="base64"):
            await files.read_autosave()

    @pytest.mark.asyncio
    async def test_non_zip_payload_raises_package_error(self, tmp_path: Path):
        files = _files(tmp_path)
        record = await files.write_autosave(_make_post())
        record.content = DATA_URI_PREFIX + "bm90IGEgemlw"
        (tmp_path / "state" / AUTOSAVE_FILENAME).write_text(
            record.model_dump_json(by_alias=True), encoding="utf-8"
        )

        with pytest.raises(PackageError):
            await files.read_autosave()


class TestSavePackage:
    @pytest.mark.asyncio
    async def test_picker_chooses_target_once(self, tmp_path: Path):
        files = _files(tmp_path, picker=DirectoryPicker(tmp_path / "out"))

        first = await files.save_package(_make_post())
        second = await files.save_package(_make_post(title="Renamed"))

        assert first == tmp_path / "out" / "Hello World.ocblog"
        assert second == first
        assert first.exists()
        assert files.recent_files()[0].path == str(first)

    @pytest.mark.asyncio
    async def test_cancelled_save_keeps_autosave(self, tmp_path: Path):
        picker = _CancelPicker()
        files = _files(tmp_path, picker=picker)

        assert await files.save_package(_make_post()) is None
        assert picker.calls == ["Hello World.ocblog"]
        assert await files.read_autosave() is not None
        assert files.recent_files() == []

    @pytest.mark.asyncio
    async def test_no_picker_writes_autosave_only(self, tmp_path: Path):
        files = _files(tmp_path)
        assert await files.save_package(_make_post()) is None
        assert await files.read_autosave() is not None

    @pytest.mark.asyncio
    async def test_save_as_switches_target(self, tmp_path: Path):
        files = _files(tmp_path, picker=DirectoryPicker(tmp_path))
        await files.save_package(_make_post())

        target = tmp_path / "copy.ocblog"
        assert await files.save_package_as(_make_post(), target) == target
        assert files.current_target == target

    @pytest.mark.asyncio
    async def test_save_as_without_target_or_picker(self, tmp_path: Path):
        with pytest.raises(PackageError):
            await _files(tmp_path).save_package_as(_make_post())


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_package(self, tmp_path: Path):
        writer = _files(tmp_path)
        target = tmp_path / "post.ocblog"
        await writer.save_package_as(_make_post(), target)

        reader = _files(tmp_path / "other")
        post = await reader.open_package(target)

        assert post.id == "p1"
        assert reader.current_target == target
        assert reader.recent_files()[0].name == "post.ocblog"

    @pytest.mark.asyncio
    async def test_open_missing_file(self, tmp_path: Path):
        with pytest.raises(PackageError, match="Failed to open"):
            await _files(tmp_path).open_package(tmp_path / "nope.ocblog")

    @pytest.mark.asyncio
    async def test_open_recent_uses_cached_content(self, tmp_path: Path):
        files = _files(tmp_path)
        target = tmp_path / "post.ocblog"
        await files.save_package_as(_make_post(), target)
        target.unlink()

        post = await files.open_recent(files.recent_files()[0])
        assert post.id == "p1"

    @pytest.mark.asyncio
    async def test_clear_recent(self, tmp_path: Path):
        files = _files(tmp_path)
        await files.save_package_as(_make_post(), tmp_path / "post.ocblog")
        files.clear_recent_files()
        assert files.recent_files() == []


class TestNewPostAndHtml:
    @pytest.mark.asyncio
    async def test_new_post_resets_session(self, tmp_path: Path):
        files = _files(tmp_path, picker=DirectoryPicker(tmp_path))
        await files.save_package(_make_post())

        draft = await files.new_post()

        assert draft.metadata.title == "Untitled Blog"
        assert files.current_target is None
        assert await files.read_autosave() is None

    def test_render_html(self):
        page = render_html(_make_post())

        assert "<title>Hello World</title>" in page
        assert "<p>Body</p>" in page
        assert '<code class="language-python">a &lt; b</code>' in page
        assert "<p>Date: 2024-01-01</p>" in page
        assert "background-color: #fafafa" in page

    @pytest.mark.asyncio
    async def test_export_html(self, tmp_path: Path):
        target = tmp_path / "out" / "post.html"
        await _files(tmp_path).export_html(_make_post(), target)
        assert target.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")
