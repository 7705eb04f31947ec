"""Unified configuration loaded from .postsync.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from postsync.adapters.github import GitHubConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".postsync.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "postsync" / "config.toml"


class StorageBackend(StrEnum):
    """Which remote backend to add next to the always-on local store."""

    LOCAL = "local"
    GITHUB = "github"


class StorageSectionConfig(BaseModel):
    """[storage] section."""

    directory: str = "./.postsync"
    backend: StorageBackend = StorageBackend.LOCAL

    @property
    def path(self) -> Path:
        return Path(self.directory).expanduser()


class PackageSectionConfig(BaseModel):
    """[package] section."""

    max_recent_files: int = 10
    max_member_size: int = 50 * 1024 * 1024
    max_total_size: int = 500 * 1024 * 1024
    fetch_timeout: float = 30.0


class PostSyncConfig(BaseModel):
    """Top-level configuration model."""

    storage: StorageSectionConfig = Field(default_factory=StorageSectionConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    package: PackageSectionConfig = Field(default_factory=PackageSectionConfig)

    @property
    def use_github(self) -> bool:
        """GitHub is wired when selected explicitly or when its credentials are present."""
        return self.storage.backend == StorageBackend.GITHUB or self.github.is_configured


def load_config(path: str | Path | None = None) -> PostSyncConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .postsync.toml in CWD
    3. ~/.config/postsync/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged PostSyncConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    config = PostSyncConfig.model_validate(data) if data else PostSyncConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: PostSyncConfig, **cli_kwargs: object) -> PostSyncConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "storage_directory": ("storage", "directory"),
        "backend": ("storage", "backend"),
        "github_owner": ("github", "owner"),
        "github_repo": ("github", "repo"),
        "github_branch": ("github", "branch"),
        "github_token": ("github", "token"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return PostSyncConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: PostSyncConfig) -> PostSyncConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "POSTSYNC_DIR": ("storage", "directory"),
        "POSTSYNC_BACKEND": ("storage", "backend"),
        "GITHUB_OWNER": ("github", "owner"),
        "GITHUB_REPO": ("github", "repo"),
        "GITHUB_TOKEN": ("github", "token"),
        "GITHUB_BRANCH": ("github", "branch"),
        "POSTSYNC_STORAGE_BASE_PATH": ("github", "base_path"),
        "POSTSYNC_STORAGE_IMAGE_PATH": ("github", "image_base_path"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value:
            data[section][field] = value

    return PostSyncConfig.model_validate(data)
