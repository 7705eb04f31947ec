"""Event-driven storage protocol: event bus, events and the storage service."""

from postsync.events.bus import EventBus
from postsync.events.models import (
    DeleteEvent,
    ListEvent,
    LoadEvent,
    OperationStatus,
    PostRef,
    SaveEvent,
    StorageEventType,
    StorageResult,
    StorageState,
    parse_event,
)
from postsync.events.service import StorageService, create_storage_service

__all__ = [
    "DeleteEvent",
    "EventBus",
    "ListEvent",
    "LoadEvent",
    "OperationStatus",
    "PostRef",
    "SaveEvent",
    "StorageEventType",
    "StorageResult",
    "StorageService",
    "StorageState",
    "create_storage_service",
    "parse_event",
]
