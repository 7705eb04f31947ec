"""Multi-backend synchronization: fan-out helpers and the sync manager."""

from postsync.sync.factory import build_package_files, build_sync_manager
from postsync.sync.fanout import AdapterOutcome, FanOutResult, fan_out, load_all, merge_by_id
from postsync.sync.manager import SyncManager

__all__ = [
    "AdapterOutcome",
    "FanOutResult",
    "SyncManager",
    "build_package_files",
    "build_sync_manager",
    "fan_out",
    "load_all",
    "merge_by_id",
]
