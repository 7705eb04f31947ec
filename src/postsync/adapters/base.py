"""Base class for storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from postsync.document.models import Post, PostSummary


class StorageAdapter(ABC):
    """Uniform save/load/list/delete contract implemented by every backend.

    ``supports_images`` declares the optional image capability.  Adapters
    that leave it False inherit the ``NotImplementedError`` stubs below and
    are skipped by callers that need image storage.
    """

    name: str = "adapter"
    supports_images: bool = False

    @abstractmethod
    async def save(self, post: Post) -> str:
        """Validate and persist a post, overwriting any previous version. Returns its id."""

    @abstractmethod
    async def load(self, post_id: str) -> Post | None:
        """Return the stored post, or None when the backend has no such id."""

    @abstractmethod
    async def list(self) -> list[PostSummary]:
        """Return summaries of every stored post, newest first."""

    @abstractmethod
    async def delete(self, post_id: str) -> None:
        """Remove a post. Deleting a missing id is a no-op."""

    async def upload_image(self, file_path: Path) -> str:
        """Store an image file and return the URL it can be referenced by."""
        raise NotImplementedError(f"{self.name} does not support image storage")

    async def delete_image(self, url: str) -> None:
        """Remove a previously uploaded image."""
        raise NotImplementedError(f"{self.name} does not support image storage")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def sort_newest_first(summaries: list[PostSummary]) -> list[PostSummary]:
    """Order summaries by date, newest first.

    Dates are ISO-8601 strings, which sort lexically in time order.
    """
    return sorted(summaries, key=lambda s: s.date, reverse=True)
