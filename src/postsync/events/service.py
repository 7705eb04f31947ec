"""Storage service: folds adapter results into one observable state.

The service subscribes one handler per event type to an EventBus and
is the only writer of its StorageState.  Readers get snapshots from
``get_state()``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from postsync.adapters.base import StorageAdapter
from postsync.document.validator import validate_post
from postsync.errors import NoAdaptersError, PostNotFoundError
from postsync.events.bus import EventBus
from postsync.events.models import (
    DeleteEvent,
    ListEvent,
    LoadEvent,
    SaveEvent,
    StorageEventType,
    StorageState,
)
from postsync.sync.fanout import fan_out, load_all, merge_by_id

logger = logging.getLogger(__name__)


class StorageService:
    """Event-driven state machine over the registered adapters."""

    def __init__(self, bus: EventBus, adapters: Iterable[StorageAdapter] = ()) -> None:
        self.bus = bus
        self._adapters: list[StorageAdapter] = list(adapters)
        self._state = StorageState()
        self._subscribe()

    def _subscribe(self) -> None:
        self.bus.subscribe(self._handle_save, StorageEventType.SAVE)
        self.bus.subscribe(self._handle_load, StorageEventType.LOAD)
        self.bus.subscribe(self._handle_delete, StorageEventType.DELETE)
        self.bus.subscribe(self._handle_list, StorageEventType.LIST)

    # ── Public API ───────────────────────────────────────────────

    def register_adapter(self, adapter: StorageAdapter) -> None:
        self._adapters.append(adapter)

    def clear_adapters(self) -> None:
        self._adapters = []

    @property
    def adapters(self) -> list[StorageAdapter]:
        return list(self._adapters)

    def get_state(self) -> StorageState:
        """Return a snapshot; mutating it never affects the service."""
        state = self._state
        return StorageState(
            is_loading=state.is_loading,
            error=state.error,
            last_operation=state.last_operation,
            posts=[p.model_copy(deep=True) for p in state.posts],
        )

    def reset(self) -> None:
        """Forget all state but keep adapters and subscriptions. For tests."""
        self._state = StorageState()

    # ── Handlers ─────────────────────────────────────────────────

    def _begin(self, event: SaveEvent | LoadEvent | DeleteEvent | ListEvent) -> None:
        self._state.is_loading = True
        self._state.last_operation = event
        self._state.error = None

    def _fail(self, exc: Exception) -> None:
        self._state.error = exc
        logger.warning("%s failed: %s", self._state.last_operation.type, exc)  # type: ignore[union-attr]

    async def _handle_save(self, event: SaveEvent) -> None:
        self._begin(event)
        try:
            post = validate_post(event.payload)
            result = await fan_out(
                "save", self._adapters, lambda adapter: adapter.save(post)
            )
            result.raise_for_errors()
            for index, existing in enumerate(self._state.posts):
                if existing.id == post.id:
                    self._state.posts[index] = post
                    break
            else:
                self._state.posts.append(post)
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            self._state.is_loading = False

    async def _handle_load(self, event: LoadEvent) -> None:
        self._begin(event)
        self._state.posts = []
        try:
            if not self._adapters:
                raise NoAdaptersError()
            post = await self._adapters[0].load(event.payload.id)
            if post is None:
                raise PostNotFoundError(event.payload.id)
            self._state.posts = [post]
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            self._state.is_loading = False

    async def _handle_delete(self, event: DeleteEvent) -> None:
        self._begin(event)
        try:
            post_id = event.payload.id
            result = await fan_out(
                "delete", self._adapters, lambda adapter: adapter.delete(post_id)
            )
            result.raise_for_errors()
            self._state.posts = [p for p in self._state.posts if p.id != post_id]
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            self._state.is_loading = False

    async def _handle_list(self, event: ListEvent) -> None:
        self._begin(event)
        try:
            result = await fan_out("list", self._adapters, load_all)
            result.raise_for_errors()
            self._state.posts = merge_by_id(result.values())
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            self._state.is_loading = False


def create_storage_service(adapters: Iterable[StorageAdapter] = ()) -> StorageService:
    """Build a service wired to a fresh EventBus."""
    return StorageService(EventBus(), adapters)
