"""Storage event protocol: the four events the UI can publish.

Events are immutable Pydantic models discriminated by ``type``; the
passive-subscriber channel reports each one as ``loading`` followed by
either ``success`` or ``error``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from postsync.document.models import Post


class StorageEventType(StrEnum):
    SAVE = "SAVE"
    LOAD = "LOAD"
    DELETE = "DELETE"
    LIST = "LIST"


class OperationStatus(StrEnum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class PostRef(_Event):
    id: str


class SaveEvent(_Event):
    type: Literal[StorageEventType.SAVE] = StorageEventType.SAVE
    payload: Post


class LoadEvent(_Event):
    type: Literal[StorageEventType.LOAD] = StorageEventType.LOAD
    payload: PostRef


class DeleteEvent(_Event):
    type: Literal[StorageEventType.DELETE] = StorageEventType.DELETE
    payload: PostRef


class ListEvent(_Event):
    type: Literal[StorageEventType.LIST] = StorageEventType.LIST


StorageEvent = Annotated[
    Union[SaveEvent, LoadEvent, DeleteEvent, ListEvent],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[Any] = TypeAdapter(StorageEvent)


def parse_event(data: dict[str, Any]) -> SaveEvent | LoadEvent | DeleteEvent | ListEvent:
    """Build a typed event from its wire form, e.g. ``{"type": "LIST"}``."""
    return _event_adapter.validate_python(data)


@dataclass(frozen=True)
class StorageResult:
    """Status notification delivered to passive subscribers."""

    status: OperationStatus
    error: BaseException | None = None
    data: Any = None


@dataclass
class StorageState:
    """Observable storage state, owned by StorageService."""

    is_loading: bool = False
    error: BaseException | None = None
    last_operation: SaveEvent | LoadEvent | DeleteEvent | ListEvent | None = None
    posts: list[Post] = field(default_factory=list)


EventHandler = Callable[[Any], Awaitable[None]]
EventSubscriber = Callable[[Any, StorageResult], None]
