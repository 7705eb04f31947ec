"""Exception hierarchy shared by every postsync layer.

Callers can catch ``PostSyncError`` to handle anything raised by this
package, or one of the narrower types below when they want to react to a
specific failure (retry on ``SyncInProgressError``, show a form error on
``ValidationError``, and so on).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from postsync.sync.fanout import FanOutResult


class PostSyncError(Exception):
    """Base class for all postsync errors."""


class ValidationError(PostSyncError):
    """A candidate document is structurally invalid."""


class NotFoundError(PostSyncError):
    """A post, asset, or other addressed item does not exist."""


class PostNotFoundError(NotFoundError):
    """No adapter holds a post with the requested id."""

    def __init__(self, post_id: str) -> None:
        super().__init__(f"Post not found: {post_id}")
        self.post_id = post_id


class AssetNotFoundError(NotFoundError):
    """A temp-cache handle or asset URL does not resolve."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"Asset not found: {handle}")
        self.handle = handle


class SyncInProgressError(PostSyncError):
    """Another mutating operation is already running. Retry later."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Cannot {operation}: another sync operation is in progress")
        self.operation = operation


class PackageError(PostSyncError):
    """A post package archive is malformed or incomplete."""


class StorageError(PostSyncError):
    """A storage backend failed to complete an operation."""


class NoAdaptersError(StorageError):
    """An operation needs at least one registered adapter."""

    def __init__(self) -> None:
        super().__init__("No storage adapters registered")


class ImageUploadError(StorageError):
    """No image-capable adapter accepted the upload."""


class FanOutError(StorageError):
    """One or more adapters failed during a fan-out operation.

    ``result`` holds every adapter's outcome so callers can tell which
    backends succeeded and which need attention.
    """

    def __init__(self, operation: str, result: FanOutResult) -> None:
        failed = result.failed
        first = failed[0]
        names = ", ".join(o.adapter for o in failed)
        super().__init__(
            f"{operation} failed on {len(failed)} of {len(result.outcomes)} adapter(s) "
            f"({names}): {first.error}"
        )
        self.operation = operation
        self.result = result

    @property
    def first_error(self) -> BaseException:
        return self.result.failed[0].error  # type: ignore[return-value]
