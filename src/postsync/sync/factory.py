"""Wire a SyncManager from configuration."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from postsync.adapters.github import GitHubStorageAdapter
from postsync.adapters.local import IMAGE_SCHEME, LocalStorageAdapter
from postsync.config import PostSyncConfig
from postsync.package.cache import TempAssetCache
from postsync.package.codec import ArchiveLimits, PackageCodec
from postsync.package.files import PackageFiles, SaveTargetPicker
from postsync.package.scratch import DirectoryScratchStorage
from postsync.sync.manager import SyncManager

logger = logging.getLogger(__name__)

LOCAL_SUBDIR = "local"
STATE_SUBDIR = "state"
SCRATCH_SUBDIR = "scratch"


def build_package_files(
    config: PostSyncConfig,
    *,
    local: LocalStorageAdapter | None = None,
    picker: SaveTargetPicker | None = None,
    scratch_dir: Path | None = None,
    client: httpx.AsyncClient | None = None,
) -> PackageFiles:
    """Create the package file manager for ``config``.

    Assets extracted from packages land in ``scratch_dir`` (``scratch/``
    under the storage directory when omitted).  When ``local`` is given,
    its ``local://`` image URLs are embedded into packages like any other
    asset.
    """
    if scratch_dir is None:
        scratch_dir = config.storage.path / SCRATCH_SUBDIR
    cache = TempAssetCache(DirectoryScratchStorage(scratch_dir))
    codec = PackageCodec(
        cache,
        client=client,
        limits=ArchiveLimits(
            max_total_size=config.package.max_total_size,
            max_member_size=config.package.max_member_size,
        ),
        fetch_timeout=config.package.fetch_timeout,
    )
    if local is not None:
        codec.register_reader(IMAGE_SCHEME, local.read_image)
    return PackageFiles(
        config.storage.path / STATE_SUBDIR,
        codec,
        picker=picker,
        max_recent=config.package.max_recent_files,
    )


def build_sync_manager(
    config: PostSyncConfig,
    *,
    picker: SaveTargetPicker | None = None,
    scratch_dir: Path | None = None,
    client: httpx.AsyncClient | None = None,
) -> SyncManager:
    """Build a manager with the local store always on and GitHub when requested.

    Raises:
        StorageError: If GitHub is selected but its configuration is incomplete.
    """
    local = LocalStorageAdapter(config.storage.path / LOCAL_SUBDIR)
    manager = SyncManager(
        [local],
        files=build_package_files(
            config, local=local, picker=picker, scratch_dir=scratch_dir, client=client
        ),
    )
    if config.use_github:
        manager.add_adapter(GitHubStorageAdapter(config.github, client=client))
        logger.info("GitHub storage enabled for %s/%s", config.github.owner, config.github.repo)
    return manager
