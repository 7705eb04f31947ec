"""Settle-all fan-out of one logical operation across storage adapters.

Every adapter runs concurrently and every outcome is recorded, so a
failure on one backend never hides what happened on the others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from postsync.adapters.base import StorageAdapter
from postsync.document.models import Post
from postsync.errors import FanOutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AdapterOutcome(Generic[T]):
    """Result of running one operation against one adapter."""

    adapter: str
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FanOutResult(Generic[T]):
    """Per-adapter outcomes, in adapter registration order."""

    operation: str
    outcomes: list[AdapterOutcome[T]] = field(default_factory=list)

    @property
    def succeeded(self) -> list[AdapterOutcome[T]]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[AdapterOutcome[T]]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    def values(self) -> list[T]:
        """Values of the successful outcomes, in registration order."""
        return [o.value for o in self.succeeded]  # type: ignore[misc]

    def raise_for_errors(self) -> FanOutResult[T]:
        """Raise FanOutError if any adapter failed, else return self."""
        if not self.ok:
            raise FanOutError(self.operation, self)
        return self


async def fan_out(
    operation: str,
    adapters: Sequence[StorageAdapter],
    call: Callable[[StorageAdapter], Awaitable[Any]],
) -> FanOutResult[Any]:
    """Run ``call(adapter)`` on every adapter concurrently and settle all.

    Args:
        operation: Human-readable operation name for logs and errors.
        adapters: Adapters to run against.
        call: Coroutine factory invoked once per adapter.

    Returns:
        A FanOutResult holding one outcome per adapter.  Never raises for
        adapter failures; use ``raise_for_errors()`` for that.
    """
    results = await asyncio.gather(
        *(call(adapter) for adapter in adapters), return_exceptions=True
    )
    outcome = FanOutResult(operation=operation)
    for adapter, result in zip(adapters, results, strict=True):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning("%s failed on adapter %s: %s", operation, adapter.name, result)
            outcome.outcomes.append(AdapterOutcome(adapter=adapter.name, error=result))
        else:
            logger.debug("%s succeeded on adapter %s", operation, adapter.name)
            outcome.outcomes.append(AdapterOutcome(adapter=adapter.name, value=result))
    return outcome


async def load_all(adapter: StorageAdapter) -> list[Post]:
    """Materialize every post an adapter lists into a full document."""
    posts: list[Post] = []
    for summary in await adapter.list():
        post = await adapter.load(summary.id)
        if post is not None:
            posts.append(post)
    return posts


def merge_by_id(groups: Iterable[list[Post]]) -> list[Post]:
    """Union post lists, later groups winning on id conflicts. Newest first."""
    merged: dict[str, Post] = {}
    for group in groups:
        for post in group:
            merged[post.id] = post
    return sorted(merged.values(), key=lambda p: p.metadata.date, reverse=True)
