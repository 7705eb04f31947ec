"""Portable post packages: codec, temp asset cache and file management."""

from postsync.package.cache import HANDLE_SCHEME, TempAssetCache
from postsync.package.codec import (
    PACKAGE_EXTENSION,
    PACKAGE_VERSION,
    ArchiveLimits,
    DecodedPackage,
    PackageCodec,
    PackageManifest,
)
from postsync.package.files import (
    AutoSaveRecord,
    DirectoryPicker,
    PackageFiles,
    SaveTargetPicker,
    render_html,
)
from postsync.package.recent import RecentFile, RecentFiles
from postsync.package.scratch import DirectoryScratchStorage, MemoryScratchStorage, ScratchStorage

__all__ = [
    "ArchiveLimits",
    "AutoSaveRecord",
    "DecodedPackage",
    "DirectoryPicker",
    "DirectoryScratchStorage",
    "HANDLE_SCHEME",
    "MemoryScratchStorage",
    "PACKAGE_EXTENSION",
    "PACKAGE_VERSION",
    "PackageCodec",
    "PackageFiles",
    "PackageManifest",
    "RecentFile",
    "RecentFiles",
    "SaveTargetPicker",
    "ScratchStorage",
    "TempAssetCache",
    "render_html",
]
