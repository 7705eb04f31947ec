"""Storage backends implementing the uniform adapter contract."""

from postsync.adapters.base import StorageAdapter, sort_newest_first
from postsync.adapters.github import GitHubConfig, GitHubStorageAdapter
from postsync.adapters.local import LocalStorageAdapter

__all__ = [
    "GitHubConfig",
    "GitHubStorageAdapter",
    "LocalStorageAdapter",
    "StorageAdapter",
    "sort_newest_first",
]
