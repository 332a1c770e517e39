"""Configuration module for plugkeeper.

This module provides the lock manifest (lock.json) with its schema migration
and TOML parsing for config.toml.
"""

from plugkeeper.config.lockfile import (
    LOCK_MANIFEST_VERSION,
    ReposType,
    RepositoryEntry,
    Profile,
    LockManifest,
    LockManifestManager,
)
from plugkeeper.config.migration import (
    Migrator,
    LOCK_MANIFEST_MIGRATOR,
)
from plugkeeper.config.parser import (
    BuildConfig,
    GetConfig,
    EditConfig,
    PlugkeeperConfig,
    ConfigError,
    load_config,
)

__all__ = [
    # Lock manifest
    "LOCK_MANIFEST_VERSION",
    "ReposType",
    "RepositoryEntry",
    "Profile",
    "LockManifest",
    "LockManifestManager",
    # Migration
    "Migrator",
    "LOCK_MANIFEST_MIGRATOR",
    # Config
    "BuildConfig",
    "GetConfig",
    "EditConfig",
    "PlugkeeperConfig",
    "ConfigError",
    "load_config",
]
