"""Post package codec: the portable ``.ocblog`` ZIP container.

Layout of a package::

    content.json      full post, pretty-printed
    metadata.json     post metadata only
    manifest.json     version, timestamps, asset list
    assets/<name>     binary assets referenced as ``assets/<name>``

Encoding dereferences every asset URL of the post (inline ``data:``
URIs, remote ``http(s)`` URLs, temp-cache handles, adapter-specific
schemes) into ``assets/``.  Decoding extracts ``assets/`` into the temp
asset cache and points the post at the returned handles.
"""

from __future__ import annotations

import base64
import binascii
import io
import json
import logging
import mimetypes
import uuid
import zipfile
import zlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath
from urllib.parse import unquote_to_bytes, urlparse

import httpx
from pydantic import BaseModel, ConfigDict, Field

from postsync.document.models import Post, iter_asset_refs, rewrite_asset_refs
from postsync.document.validator import validate_post, validate_post_json
from postsync.errors import PackageError, PostSyncError
from postsync.package.cache import TempAssetCache, is_handle

logger = logging.getLogger(__name__)

PACKAGE_VERSION = "1.0.0"
PACKAGE_EXTENSION = ".ocblog"
CONTENT_FILE = "content.json"
METADATA_FILE = "metadata.json"
MANIFEST_FILE = "manifest.json"
ASSETS_DIR = "assets"

AssetReader = Callable[[str], Awaitable[tuple[bytes, str | None]]]


class PackageManifest(BaseModel):
    """Package manifest. ``assets_list`` always mirrors the archive's ``assets/``."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = PACKAGE_VERSION
    created: str
    last_modified: str = Field(alias="lastModified")
    assets_list: list[str] = Field(default_factory=list, alias="assetsList")


@dataclass(frozen=True, slots=True)
class ArchiveLimits:
    """Constraints applied to archives before anything is extracted."""

    max_total_size: int = 500 * 1024 * 1024  # 500MB
    max_member_size: int = 50 * 1024 * 1024  # 50MB per file
    max_member_count: int = 2000


@dataclass
class DecodedPackage:
    post: Post
    assets: dict[str, bytes] = field(default_factory=dict)
    manifest: PackageManifest | None = None


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _validate_members(zf: zipfile.ZipFile, limits: ArchiveLimits) -> None:
    """Guard against zip bombs and path traversal before reading members."""
    members = zf.infolist()
    if len(members) > limits.max_member_count:
        raise PackageError(
            f"Package contains too many files ({len(members)} > {limits.max_member_count})"
        )
    total_size = 0
    for info in members:
        path = PurePosixPath(info.filename)
        if path.is_absolute() or info.filename.startswith("\\"):
            raise PackageError(f"Package member uses absolute path: {info.filename}")
        if ".." in path.parts:
            raise PackageError(f"Package member attempts path traversal: {info.filename}")
        if info.file_size > limits.max_member_size:
            raise PackageError(
                f"Package member '{info.filename}' exceeds maximum size of "
                f"{limits.max_member_size} bytes"
            )
        total_size += info.file_size
        if total_size > limits.max_total_size:
            raise PackageError(
                f"Package uncompressed size exceeds {limits.max_total_size} bytes"
            )


def parse_data_uri(uri: str) -> tuple[bytes, str]:
    """Decode a ``data:`` URI into ``(bytes, mime_type)``.

    Raises:
        ValueError: If the URI is malformed.
    """
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:"):
        raise ValueError("malformed data URI")
    params = header[len("data:"):].split(";")
    mime_type = params[0] or "text/plain"
    if "base64" in params[1:]:
        try:
            return base64.b64decode(payload, validate=True), mime_type
        except binascii.Error as exc:
            raise ValueError(f"invalid base64 payload: {exc}") from exc
    return unquote_to_bytes(payload), mime_type


def _asset_filename(mime_type: str | None, source: str) -> str:
    ext = mimetypes.guess_extension(mime_type or "") if mime_type else None
    if not ext:
        suffix = PurePosixPath(urlparse(source).path).suffix
        ext = suffix if 0 < len(suffix) <= 6 else ".bin"
    return f"{uuid.uuid4().hex}{ext}"


def _package_relative(url: str) -> str | None:
    """Return the asset filename for a bare relative reference, else None."""
    if "://" in url or url.startswith(("data:", "/")):
        return None
    path = PurePosixPath(url)
    if path.parts and path.parts[0] == ASSETS_DIR:
        path = PurePosixPath(*path.parts[1:])
    name = path.as_posix()
    return name if name and name != "." else None


class PackageCodec:
    """Builds and reads post packages.

    Args:
        cache: Temp asset cache used to resolve handles on encode and to
            receive extracted assets on decode.
        client: Optional shared HTTP client for fetching remote assets.
            When omitted, a short-lived client is created per encode.
        asset_readers: Resolvers for adapter-specific URL schemes, keyed
            by scheme prefix (e.g. ``"local://"``).
        limits: Archive size constraints checked on decode.
        fetch_timeout: Timeout in seconds for remote asset fetches.
    """

    def __init__(
        self,
        cache: TempAssetCache,
        *,
        client: httpx.AsyncClient | None = None,
        asset_readers: dict[str, AssetReader] | None = None,
        limits: ArchiveLimits | None = None,
        fetch_timeout: float = 30.0,
    ) -> None:
        self.cache = cache
        self.client = client
        self.asset_readers: dict[str, AssetReader] = dict(asset_readers or {})
        self.limits = limits or ArchiveLimits()
        self.fetch_timeout = fetch_timeout

    def register_reader(self, scheme: str, reader: AssetReader) -> None:
        self.asset_readers[scheme] = reader

    # ── Encode ───────────────────────────────────────────────────

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> tuple[bytes, str | None]:
        resp = await client.get(url)
        resp.raise_for_status()
        mime_type = resp.headers.get("content-type", "").split(";")[0].strip() or None
        return resp.content, mime_type

    async def _resolve(
        self, post_id: str, url: str, client: httpx.AsyncClient | None
    ) -> tuple[bytes, str | None] | None:
        """Resolve an asset URL to bytes, or None to keep the URL as-is."""
        try:
            if url.startswith("data:"):
                return parse_data_uri(url)
            if url.startswith(("http://", "https://")):
                if client is None:
                    return None
                return await self._fetch(client, url)
            if is_handle(url):
                data = await self.cache.get(url)
                return data, mimetypes.guess_type(url)[0]
            for scheme, reader in self.asset_readers.items():
                if url.startswith(scheme):
                    return await reader(url)
            name = _package_relative(url)
            if name is None:
                logger.debug("No resolver for asset %s, keeping URL", url)
                return None
            handle = await self.cache.find(post_id, name)
            if handle is None:
                logger.warning("Asset %s is not in the temp cache, keeping URL", url)
                return None
            return await self.cache.get(handle), mimetypes.guess_type(name)[0]
        except (httpx.HTTPError, PostSyncError, ValueError, OSError):
            logger.warning(
                "Failed to resolve asset %s, keeping original URL", url[:80], exc_info=True
            )
            return None

    async def _collect_assets(
        self, post: Post, client: httpx.AsyncClient | None
    ) -> tuple[dict[str, bytes], dict[str, str]]:
        assets: dict[str, bytes] = {}
        mapping: dict[str, str] = {}
        for url in iter_asset_refs(post):
            if url in mapping:
                continue
            resolved = await self._resolve(post.id, url, client)
            if resolved is None:
                continue
            data, mime_type = resolved
            filename = _asset_filename(mime_type, url)
            assets[filename] = data
            mapping[url] = f"{ASSETS_DIR}/{filename}"
        return assets, mapping

    async def encode(self, post: Post, *, created: str | None = None) -> bytes:
        """Build a package archive for ``post``.

        Assets that cannot be resolved keep their original URL instead of
        failing the whole encode.

        Raises:
            ValidationError: If the post is structurally invalid.
        """
        post = validate_post(post)
        needs_http = any(u.startswith(("http://", "https://")) for u in iter_asset_refs(post))

        if needs_http and self.client is None:
            async with httpx.AsyncClient(
                timeout=self.fetch_timeout, follow_redirects=True
            ) as client:
                assets, mapping = await self._collect_assets(post, client)
        else:
            assets, mapping = await self._collect_assets(post, self.client)

        packaged = rewrite_asset_refs(post, mapping)
        now = _now_iso()
        manifest = PackageManifest(
            created=created or now,
            last_modified=now,
            assets_list=sorted(assets),
        )

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(CONTENT_FILE, packaged.to_json(indent=2))
            zf.writestr(METADATA_FILE, packaged.metadata_json(indent=2))
            zf.writestr(MANIFEST_FILE, manifest.model_dump_json(by_alias=True, indent=2))
            for filename, data in assets.items():
                zf.writestr(f"{ASSETS_DIR}/{filename}", data)

        logger.debug("Encoded post %s with %d asset(s)", post.id, len(assets))
        return buffer.getvalue()

    # ── Decode ───────────────────────────────────────────────────

    def _read_manifest(self, zf: zipfile.ZipFile) -> dict:
        if MANIFEST_FILE not in zf.namelist():
            return {}
        try:
            raw = json.loads(zf.read(MANIFEST_FILE))
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Ignoring unreadable %s in package", MANIFEST_FILE)
            return {}
        return raw if isinstance(raw, dict) else {}

    async def decode(self, source: bytes | Path) -> DecodedPackage:
        """Read a package and stage its assets in the temp cache.

        Raises:
            PackageError: If the archive is malformed, unsafe, missing
                ``content.json`` or references assets it does not contain.
            ValidationError: If ``content.json`` is not a valid post.
        """
        data = Path(source).read_bytes() if isinstance(source, Path) else source
        try:
            zf = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise PackageError(f"Invalid package: {exc}") from exc

        prefix = f"{ASSETS_DIR}/"
        assets: dict[str, bytes] = {}
        try:
            with zf:
                _validate_members(zf, self.limits)
                if CONTENT_FILE not in zf.namelist():
                    raise PackageError(f"Invalid package: missing {CONTENT_FILE}")
                post = validate_post_json(zf.read(CONTENT_FILE))
                raw_manifest = self._read_manifest(zf)

                for info in zf.infolist():
                    if info.is_dir() or not info.filename.startswith(prefix):
                        continue
                    filename = info.filename[len(prefix):]
                    if filename:
                        assets[filename] = zf.read(info)
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as exc:
            raise PackageError(f"Invalid package: {exc}") from exc

        # Stale assets from an earlier version of this post must not leak in.
        await self.cache.clear(post.id)

        mapping: dict[str, str] = {}
        for filename, blob in assets.items():
            handle = await self.cache.put(post.id, blob, filename)
            mapping[f"{prefix}{filename}"] = handle
            mapping[filename] = handle

        missing = [
            url
            for url in iter_asset_refs(post)
            if _package_relative(url) is not None and url not in mapping
        ]
        if missing:
            raise PackageError(f"Invalid package: missing asset(s) {', '.join(missing)}")

        post = rewrite_asset_refs(post, mapping)
        now = _now_iso()
        manifest = PackageManifest(
            version=str(raw_manifest.get("version") or PACKAGE_VERSION),
            created=str(raw_manifest.get("created") or now),
            last_modified=str(raw_manifest.get("lastModified") or now),
            assets_list=sorted(assets),
        )
        logger.debug("Decoded post %s with %d asset(s)", post.id, len(assets))
        return DecodedPackage(post=post, assets=assets, manifest=manifest)
