"""Typed publish/subscribe dispatcher for storage events."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from postsync.events.models import (
    EventHandler,
    EventSubscriber,
    OperationStatus,
    StorageEventType,
    StorageResult,
)

logger = logging.getLogger(__name__)


class EventBus:
    """Dispatches events to handlers and reports progress to subscribers.

    Handlers are registered for one exact event type and do the work.
    Subscribers are passive observers: for every published event they
    get one ``loading`` notification before the handlers run and one
    terminal ``success`` or ``error`` notification afterwards.
    """

    def __init__(self) -> None:
        self._handlers: dict[StorageEventType, list[EventHandler]] = defaultdict(list)
        self._subscribers: list[EventSubscriber] = []

    def subscribe(self, handler: EventHandler, event_type: StorageEventType | str) -> None:
        self._handlers[StorageEventType(event_type)].append(handler)

    def unsubscribe(self, handler: EventHandler, event_type: StorageEventType | str) -> None:
        handlers = self._handlers.get(StorageEventType(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    def add_subscriber(self, subscriber: EventSubscriber) -> None:
        self._subscribers.append(subscriber)

    def remove_subscriber(self, subscriber: EventSubscriber) -> None:
        self._subscribers = [s for s in self._subscribers if s is not subscriber]

    def handler_count(self, event_type: StorageEventType | str) -> int:
        return len(self._handlers.get(StorageEventType(event_type), []))

    def _notify(self, event: object, result: StorageResult) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event, result)
            except Exception:
                logger.warning("Event subscriber %r failed", subscriber, exc_info=True)

    async def publish(self, event: object) -> None:
        """Run every handler for ``event.type`` concurrently and wait for all.

        Raises:
            Exception: The first failing handler's error (in registration
                order), after every handler has finished.
        """
        event_type = StorageEventType(event.type)  # type: ignore[attr-defined]
        handlers = list(self._handlers.get(event_type, []))

        self._notify(event, StorageResult(status=OperationStatus.LOADING))

        results = await asyncio.gather(*(h(event) for h in handlers), return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        for err in errors:
            if isinstance(err, asyncio.CancelledError):
                raise err

        if errors:
            first = errors[0]
            logger.debug("%s failed: %s", event_type, first)
            self._notify(event, StorageResult(status=OperationStatus.ERROR, error=first))
            raise first

        self._notify(event, StorageResult(status=OperationStatus.SUCCESS))
