"""GitHub repository storage: config and contents-API adapter.

Each post is a pretty-printed JSON file at ``<base_path>/<id>.json``
committed to a branch.  Writes read the current blob ``sha`` first and
send it with the update, so the host rejects a write that would blindly
overwrite a version we have not seen.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel

from postsync.adapters.base import StorageAdapter, sort_newest_first
from postsync.document.models import Post, PostSummary
from postsync.document.validator import validate_post, validate_post_json
from postsync.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
RAW_HOST = "https://raw.githubusercontent.com"

# Alias to avoid shadowing by GitHubStorageAdapter.list
_list = list


class GitHubConfig(BaseModel):
    """Configuration for the GitHub storage backend."""

    owner: str = ""
    repo: str = ""
    branch: str = "main"
    token: str = ""
    base_path: str = "content/posts"
    image_base_path: str = "content/images"
    api_url: str = DEFAULT_API_URL

    @property
    def is_configured(self) -> bool:
        return bool(self.owner and self.repo and self.token)

    @property
    def missing_fields(self) -> list[str]:
        return [name for name in ("owner", "repo", "token") if not getattr(self, name)]

    @classmethod
    def from_env(cls) -> GitHubConfig:
        """Create config from environment variables."""
        return cls(
            owner=os.environ.get("GITHUB_OWNER", ""),
            repo=os.environ.get("GITHUB_REPO", ""),
            token=os.environ.get("GITHUB_TOKEN", ""),
            branch=os.environ.get("GITHUB_BRANCH", "") or "main",
            base_path=os.environ.get("POSTSYNC_STORAGE_BASE_PATH", "") or "content/posts",
            image_base_path=(
                os.environ.get("POSTSYNC_STORAGE_IMAGE_PATH", "") or "content/images"
            ),
        )


class GitHubStorageAdapter(StorageAdapter):
    """Stores posts and images as files in a GitHub repository."""

    supports_images = True

    def __init__(
        self,
        config: GitHubConfig,
        *,
        client: httpx.AsyncClient | None = None,
        name: str = "github",
    ) -> None:
        if not config.is_configured:
            missing = ", ".join(config.missing_fields)
            raise StorageError(f"Missing required GitHub configuration: {missing}")
        self.name = name
        self.config = config
        self.base_url = config.api_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    # ── Private helpers ──────────────────────────────────────────

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GitHubStorageAdapter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _post_path(self, post_id: str) -> str:
        return f"{self.config.base_path}/{post_id}.json"

    def _image_path(self, filename: str) -> str:
        return f"{self.config.image_base_path}/{filename}"

    def _contents_url(self, path: str) -> str:
        return f"{self.base_url}/repos/{self.config.owner}/{self.config.repo}/contents/{path}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/vnd.github+json",
        }

    async def _request(
        self, method: str, path: str, *, params: dict | None = None, data: dict | None = None
    ) -> httpx.Response:
        """Make an authenticated request against the contents API."""
        try:
            return await self.client.request(
                method,
                self._contents_url(path),
                params=params,
                json=data,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"GitHub {method} {path} failed: {exc}") from exc

    async def _get_contents(self, path: str) -> Any | None:
        """Return the parsed contents response, or None on 404."""
        resp = await self._request("GET", path, params={"ref": self.config.branch})
        if resp.status_code == 404:
            return None
        _raise_for_status(resp, "GET", path)
        return resp.json()

    async def _get_sha(self, path: str) -> str | None:
        contents = await self._get_contents(path)
        if isinstance(contents, dict):
            return contents.get("sha")
        return None

    async def _put_file(self, path: str, payload: bytes, message: str, sha: str | None) -> dict:
        data: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(payload).decode("ascii"),
            "branch": self.config.branch,
        }
        if sha:
            data["sha"] = sha
        resp = await self._request("PUT", path, data=data)
        _raise_for_status(resp, "PUT", path)
        return resp.json()

    async def _delete_file(self, path: str, message: str) -> None:
        sha = await self._get_sha(path)
        if sha is None:
            logger.debug("Nothing to delete at %s", path)
            return
        resp = await self._request(
            "DELETE",
            path,
            data={"message": message, "sha": sha, "branch": self.config.branch},
        )
        if resp.status_code == 404:
            return
        _raise_for_status(resp, "DELETE", path)

    # ── StorageAdapter ───────────────────────────────────────────

    async def save(self, post: Post) -> str:
        validated = validate_post(post)
        path = self._post_path(validated.id)
        sha = await self._get_sha(path)
        verb = "Update" if sha else "Create"
        await self._put_file(
            path,
            validated.to_json(indent=2).encode("utf-8"),
            f"{verb} blog post: {validated.metadata.title}",
            sha,
        )
        logger.info("%sd post %s at %s", verb, validated.id, path)
        return validated.id

    async def load(self, post_id: str) -> Post | None:
        contents = await self._get_contents(self._post_path(post_id))
        if not isinstance(contents, dict) or "content" not in contents:
            return None
        raw = base64.b64decode(contents["content"])
        return validate_post_json(raw)

    async def list(self) -> _list[PostSummary]:
        listing = await self._get_contents(self.config.base_path)
        if not isinstance(listing, _list):
            return []
        summaries: _list[PostSummary] = []
        for item in listing:
            name = item.get("name", "")
            if item.get("type") != "file" or not name.endswith(".json"):
                continue
            post = await self.load(name.removesuffix(".json"))
            if post is not None:
                summaries.append(post.summary())
        return sort_newest_first(summaries)

    async def delete(self, post_id: str) -> None:
        await self._delete_file(self._post_path(post_id), f"Delete blog post: {post_id}")

    async def upload_image(self, file_path: Path) -> str:
        file_path = Path(file_path)
        filename = f"{uuid.uuid4()}-{file_path.name}"
        path = self._image_path(filename)
        await self._put_file(path, file_path.read_bytes(), f"Upload image: {filename}", None)
        return f"{RAW_HOST}/{self.config.owner}/{self.config.repo}/{self.config.branch}/{path}"

    async def delete_image(self, url: str) -> None:
        path = self._path_from_raw_url(url)
        await self._delete_file(path, f"Delete image: {path}")

    def _path_from_raw_url(self, url: str) -> str:
        prefix = f"{RAW_HOST}/{self.config.owner}/{self.config.repo}/{self.config.branch}/"
        if not url.startswith(prefix):
            raise StorageError(f"Not an image URL of this repository: {url}")
        return url[len(prefix):]


def _raise_for_status(resp: httpx.Response, method: str, path: str) -> None:
    if resp.is_success:
        return
    try:
        detail = resp.json().get("message", "")
    except (json.JSONDecodeError, AttributeError):
        detail = resp.text[:200]
    raise StorageError(f"GitHub {method} {path} returned {resp.status_code}: {detail}")
