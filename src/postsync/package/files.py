"""Package file management: save targets, auto-save slot, recent files.

``PackageFiles`` is what the editor talks to when it saves to or opens
from the user's file system.  Every save also refreshes the single
auto-save slot, which ``SyncManager.load`` consults before any adapter.
"""

from __future__ import annotations

import asyncio
import base64
import html
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from postsync.document.models import Post, Section, SectionType, new_post
from postsync.document.validator import validate_post_json
from postsync.errors import PackageError, ValidationError
from postsync.package.codec import PACKAGE_EXTENSION, PackageCodec
from postsync.package.recent import MAX_RECENT_FILES, RecentFile, RecentFiles

logger = logging.getLogger(__name__)

AUTOSAVE_FILENAME = "autosave.json"
AUTOSAVE_ID = "auto-save"
DATA_URI_PREFIX = "data:application/zip;base64,"


class SaveTargetPicker(Protocol):
    """Chooses where a package is written. Returning None cancels the save."""

    def pick_save_target(self, suggested_name: str) -> Path | None: ...


class DirectoryPicker:
    """Always saves under a fixed directory using the suggested name."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def pick_save_target(self, suggested_name: str) -> Path | None:
        return self.directory / suggested_name


class AutoSaveRecord(BaseModel):
    """The auto-save slot: the latest package as a base64 data URI."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = AUTOSAVE_ID
    post_id: str = Field(alias="postId")
    content: str
    saved_at: datetime = Field(alias="savedAt")


def _suggested_name(post: Post, extension: str = PACKAGE_EXTENSION) -> str:
    title = post.metadata.title.strip() or "Untitled"
    safe = "".join(c if c.isalnum() or c in " -_." else "_" for c in title).strip()
    return f"{safe or 'Untitled'}{extension}"


class PackageFiles:
    """Reads and writes post packages on the local file system.

    Args:
        state_dir: Directory holding the auto-save slot and recent-files list.
        codec: Package codec used to build and read archives.
        picker: Save-target chooser consulted when no current file is set.
        max_recent: Bound on the recent-files list.
    """

    def __init__(
        self,
        state_dir: Path,
        codec: PackageCodec,
        *,
        picker: SaveTargetPicker | None = None,
        max_recent: int = MAX_RECENT_FILES,
    ) -> None:
        self.state_dir = Path(state_dir)
        self.codec = codec
        self.picker = picker
        self.recent = RecentFiles(self.state_dir, max_entries=max_recent)
        self.current_target: Path | None = None
        self._autosave_path = self.state_dir / AUTOSAVE_FILENAME

    # ── Auto-save slot ───────────────────────────────────────────

    async def write_autosave(self, post: Post, package: bytes | None = None) -> AutoSaveRecord:
        """Store ``post`` (or its already-encoded package) in the auto-save slot."""
        if package is None:
            package = await self.codec.encode(post)
        record = AutoSaveRecord(
            post_id=post.id,
            content=DATA_URI_PREFIX + base64.b64encode(package).decode("ascii"),
            saved_at=datetime.now(tz=UTC),
        )
        self.state_dir.mkdir(parents=True, exist_ok=True)
        payload = record.model_dump_json(by_alias=True, indent=2)
        await asyncio.to_thread(self._autosave_path.write_text, payload, "utf-8")
        return record

    async def read_autosave_record(self) -> AutoSaveRecord | None:
        if not self._autosave_path.exists():
            return None
        try:
            raw = await asyncio.to_thread(self._autosave_path.read_text, "utf-8")
            return AutoSaveRecord.model_validate_json(raw)
        except ValueError:
            logger.warning("Corrupt auto-save slot at %s, ignoring", self._autosave_path)
            return None

    async def read_autosave(self) -> Post | None:
        """Decode the auto-saved package, or return None if the slot is empty."""
        record = await self.read_autosave_record()
        if record is None:
            return None
        return await self.decode_autosave(record)

    async def decode_autosave(self, record: AutoSaveRecord) -> Post:
        """Decode the package held by an auto-save record.

        Raises:
            PackageError: If the payload is not base64 or not a valid package.
        """
        _, sep, payload = record.content.partition(",")
        if not sep:
            raise PackageError("Auto-save slot is not a data URI")
        try:
            package = base64.b64decode(payload, validate=True)
        except ValueError as exc:
            raise PackageError(f"Auto-save slot is not valid base64: {exc}") from exc
        decoded = await self.codec.decode(package)
        return decoded.post

    async def clear_autosave(self) -> None:
        await asyncio.to_thread(self._autosave_path.unlink, True)

    # ── Save ─────────────────────────────────────────────────────

    async def _write(self, target: Path, package: bytes) -> None:
        def _write_file() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(package)

        await asyncio.to_thread(_write_file)

    def _remember(self, post: Post, target: Path) -> None:
        now = datetime.now(tz=UTC)
        self.recent.add(
            RecentFile(
                id=post.id,
                path=str(target),
                name=target.name,
                last_modified=now,
                last_accessed=now,
                content=post.to_json(indent=None),
            )
        )

    async def save_package(self, post: Post) -> Path | None:
        """Save to the current file, asking the picker when there is none.

        The auto-save slot is refreshed first.  Returns the written path,
        or None when the picker cancelled.
        """
        package = await self.codec.encode(post)
        await self.write_autosave(post, package)

        target = self.current_target
        if target is None:
            if self.picker is None:
                logger.debug("No save target configured, kept auto-save only")
                return None
            target = self.picker.pick_save_target(_suggested_name(post))
            if target is None:
                logger.info("Save cancelled by user")
                return None
            self.current_target = target

        await self._write(target, package)
        self._remember(post, target)
        logger.info("Saved post %s to %s", post.id, target)
        return target

    async def save_package_as(self, post: Post, target: Path | None = None) -> Path | None:
        """Save to a newly chosen file and make it the current target."""
        if target is None:
            if self.picker is None:
                raise PackageError("No save target given and no picker configured")
            target = self.picker.pick_save_target(_suggested_name(post))
            if target is None:
                logger.info("Save cancelled by user")
                return None
        package = await self.codec.encode(post)
        await self._write(target, package)
        self.current_target = target
        self._remember(post, target)
        return target

    # ── Open ─────────────────────────────────────────────────────

    async def open_package(self, path: Path) -> Post:
        """Open a package file, making it the current target."""
        path = Path(path)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise PackageError(f"Failed to open {path}: {exc}") from exc
        decoded = await self.codec.decode(data)
        self.current_target = path
        manifest = decoded.manifest
        last_modified = _parse_timestamp(manifest.last_modified if manifest else "")
        self.recent.add(
            RecentFile(
                id=decoded.post.id,
                path=str(path),
                name=path.name,
                last_modified=last_modified,
                last_accessed=datetime.now(tz=UTC),
                content=decoded.post.to_json(indent=None),
            )
        )
        return decoded.post

    async def open_recent(self, entry: RecentFile) -> Post:
        """Reopen a recent file, preferring its cached content."""
        if entry.content:
            try:
                post = validate_post_json(entry.content)
            except ValidationError:
                logger.warning("Cached content for %s is stale, reopening file", entry.path)
            else:
                self.recent.add(entry)
                return post
        return await self.open_package(Path(entry.path))

    def recent_files(self) -> list[RecentFile]:
        return self.recent.list()

    def clear_recent_files(self) -> None:
        self.recent.clear()

    # ── Misc ─────────────────────────────────────────────────────

    async def new_post(self) -> Post:
        """Start a fresh draft, forgetting the current file and auto-save."""
        self.current_target = None
        await self.clear_autosave()
        return new_post()

    async def export_html(self, post: Post, target: Path) -> Path:
        """Write a standalone HTML rendering of ``post``."""
        await self._write(target, render_html(post).encode("utf-8"))
        return target


def _parse_timestamp(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(tz=UTC)


def _render_section(section: Section) -> str:
    meta = section.metadata
    if section.type == SectionType.CODE:
        lang = html.escape(meta.language) if meta and meta.language else ""
        cls = f' class="language-{lang}"' if lang else ""
        body = f"<pre><code{cls}>{html.escape(section.content)}</code></pre>"
    elif section.type == SectionType.QUOTE:
        cite = f"<cite>{html.escape(meta.author)}</cite>" if meta and meta.author else ""
        body = f"<blockquote>{section.content}{cite}</blockquote>"
    elif section.type == SectionType.IMAGE and meta and meta.image:
        img = meta.image
        caption = f"<figcaption>{html.escape(img.caption)}</figcaption>" if img.caption else ""
        body = (
            f'<figure><img src="{html.escape(img.url)}" alt="{html.escape(img.alt)}">'
            f"{caption}</figure>"
        )
    else:
        body = section.content
    title = f"<h2>{html.escape(meta.title)}</h2>" if meta and meta.title else ""
    return f'<div class="section">{title}{body}</div>'


def render_html(post: Post) -> str:
    """Render a post as a self-contained HTML page.

    Section bodies for text and quote sections are already HTML and are
    inserted as-is; everything else is escaped.
    """
    meta = post.metadata
    title = html.escape(meta.title)
    date = html.escape(meta.date[:10])
    style = ""
    if post.content.background_color:
        style = f' style="background-color: {html.escape(post.content.background_color)}"'
    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        f"<title>{title}</title>",
        '<meta charset="UTF-8">',
        "<style>",
        "body { font-family: Arial, sans-serif; line-height: 1.6; max-width: 800px;"
        " margin: 0 auto; padding: 20px; }",
        "h1 { color: #333; }",
        ".metadata { color: #666; font-size: 0.9em; margin-bottom: 20px; }",
        ".content { margin-top: 20px; }",
        "</style>",
        "</head>",
        f"<body{style}>",
        f"<h1>{title}</h1>",
        '<div class="metadata">',
        f"<p>Author: {html.escape(meta.author)}</p>",
        f"<p>Date: {date}</p>",
        f"<p>Category: {html.escape(meta.category)}</p>",
        f"<p>Read Time: {html.escape(meta.read_time)}</p>",
        "</div>",
    ]
    hero = post.content.featured_image
    if hero is not None:
        src, alt = html.escape(hero.url), html.escape(hero.alt)
        lines.append(f'<img class="hero" src="{src}" alt="{alt}">')
    lines.append('<div class="content">')
    lines.extend(_render_section(section) for section in post.content.sections)
    lines.extend(["</div>", "</body>", "</html>"])
    return "\n".join(lines) + "\n"
