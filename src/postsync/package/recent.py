"""Bounded registry of recently opened or saved package files."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

RECENT_FILENAME = "recent-files.json"
MAX_RECENT_FILES = 10


class RecentFile(BaseModel):
    """One entry in the recent-files list."""

    id: str
    path: str
    name: str
    last_modified: datetime
    last_accessed: datetime
    content: str | None = None  # serialized post JSON, when cached


class _RecentData(BaseModel):
    files: list[RecentFile] = Field(default_factory=list)


class RecentFiles:
    """JSON-backed, most-recently-accessed-first list unique by path.

    Loads on init and saves after every mutation.  Holds at most
    ``max_entries`` entries; the least recently accessed are evicted.
    """

    def __init__(self, directory: Path, max_entries: int = MAX_RECENT_FILES) -> None:
        self._path = Path(directory) / RECENT_FILENAME
        self.max_entries = max_entries
        self._data = self._load()

    def _load(self) -> _RecentData:
        if not self._path.exists():
            return _RecentData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _RecentData.model_validate(raw)
        except (json.JSONDecodeError, ValueError):
            logger.warning("Corrupt recent-files list at %s, starting fresh", self._path)
            return _RecentData()

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(self._data.model_dump_json(indent=2), encoding="utf-8")

    def add(self, entry: RecentFile) -> RecentFile:
        """Insert or refresh an entry, stamping it as accessed now."""
        touched = entry.model_copy(update={"last_accessed": datetime.now(tz=UTC)})
        files = [f for f in self._data.files if f.path != entry.path]
        files.insert(0, touched)
        files.sort(key=lambda f: f.last_accessed, reverse=True)
        self._data.files = files[: self.max_entries]
        self._save()
        return touched

    def get(self, path: str) -> RecentFile | None:
        for entry in self._data.files:
            if entry.path == path:
                return entry
        return None

    def list(self) -> list[RecentFile]:
        return [f.model_copy() for f in self._data.files]

    def clear(self) -> None:
        self._data.files = []
        self._save()
