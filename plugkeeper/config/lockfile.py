"""
Lock manifest (lock.json) for plugkeeper.

The lock manifest records the desired state: which repositories are
installed at which version, the profiles that select subsets of them, and
which profile is current. It is versioned; older documents are upgraded on
read by the migration engine in plugkeeper.config.migration.

Example:
    >>> from plugkeeper.config.lockfile import LockManifestManager, RepositoryEntry
    >>> from plugkeeper.core.repository import normalize
    >>>
    >>> manager = LockManifestManager()
    >>> manifest = manager.read()
    >>> manifest.repos.append(
    ...     RepositoryEntry(path=normalize('tyru/caw.vim'), version='abc123')
    ... )
    >>> manager.write(manifest)
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from plugkeeper.config.migration import LOCK_MANIFEST_MIGRATOR, LOCK_MANIFEST_NAME
from plugkeeper.core.directory import get_lock_manifest_path
from plugkeeper.core.exceptions import (
    DuplicateRepositoryError,
    InvalidFormatError,
    ParseError,
    ValidationError,
)
from plugkeeper.core.filesystem import atomic_write, exists
from plugkeeper.core.repository import RepositoryPath, ReposList, normalize

logger = logging.getLogger(__name__)

LOCK_MANIFEST_VERSION = LOCK_MANIFEST_MIGRATOR.latest_version
DEFAULT_PROFILE_NAME = "default"

_REQUIRED = object()


def read_field(data: dict, key: str, expected: type, default=_REQUIRED):
    """
    Read one field of a decoded JSON object with a type check.

    Raises:
        ValueError: If the field is required and missing
        TypeError: If the field has the wrong JSON type
    """
    if key not in data:
        if default is _REQUIRED:
            raise ValueError(f"missing: {key}")
        return default
    value = data[key]
    # bool is a subclass of int; a JSON true must not pass as a number
    if not isinstance(value, expected) or (
        expected is int and isinstance(value, bool)
    ):
        raise TypeError(
            f"'{key}' must be {expected.__name__}, got {type(value).__name__}"
        )
    return value


class ReposType(str, Enum):
    """Kind of repository source."""

    GIT = "git"
    STATIC = "static"


@dataclass
class RepositoryEntry:
    """
    A desired repository.

    Attributes:
        path: Normalized repository path
        version: Installed version (commit hash for git repositories)
        active: Legacy flag, kept so older documents round-trip
        type: Source kind
    """

    path: RepositoryPath
    version: str = ""
    active: bool = True
    type: ReposType = ReposType.GIT

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type.value,
            "path": str(self.path),
            "version": self.version,
            "active": self.active,
        }

    @staticmethod
    def from_dict(data: dict) -> "RepositoryEntry":
        """Create from dictionary loaded from JSON."""
        return RepositoryEntry(
            path=RepositoryPath(read_field(data, "path", str)),
            version=read_field(data, "version", str, ""),
            active=read_field(data, "active", bool, True),
            type=ReposType(read_field(data, "type", str, ReposType.GIT.value)),
        )


@dataclass
class Profile:
    """
    Named, ordered subset of repositories.

    Attributes:
        name: Unique profile name
        repos_paths: Repositories loaded by this profile, in load order
        load_init: Whether the profile loads the user's init config
    """

    name: str
    repos_paths: List[RepositoryPath] = field(default_factory=list)
    load_init: bool = True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": [str(p) for p in self.repos_paths],
            "load_init": self.load_init,
        }

    @staticmethod
    def from_dict(data: dict) -> "Profile":
        paths = read_field(data, "path", list, [])
        for p in paths:
            if not isinstance(p, str):
                raise TypeError(f"profile path must be str, got {type(p).__name__}")
        return Profile(
            name=read_field(data, "name", str),
            repos_paths=[RepositoryPath(p) for p in paths],
            load_init=read_field(data, "load_init", bool, True),
        )


@dataclass
class LockManifest:
    """
    Complete lock.json structure.

    Attributes:
        version: Schema version
        current_profile_name: Name of the profile in use
        load_init: Whether the user's init config is loaded
        repos: Desired repositories, unique by path
        profiles: Profiles, unique by name; a fresh manifest has one empty
            "default" profile
    """

    version: int = LOCK_MANIFEST_VERSION
    current_profile_name: str = DEFAULT_PROFILE_NAME
    load_init: bool = True
    repos: ReposList = field(default_factory=ReposList)
    profiles: List[Profile] = field(
        default_factory=lambda: [Profile(DEFAULT_PROFILE_NAME)]
    )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "current_profile_name": self.current_profile_name,
            "load_init": self.load_init,
            "repos": [r.to_dict() for r in self.repos],
            "profiles": [p.to_dict() for p in self.profiles],
            "version": self.version,
        }

    @staticmethod
    def from_dict(data: dict) -> "LockManifest":
        """
        Create from dictionary loaded from JSON.

        Fields introduced after v1 default to empty values so that a legacy
        document still parses; migration fills them in afterwards.
        """
        repos = ReposList(
            RepositoryEntry.from_dict(r) for r in read_field(data, "repos", list, [])
        )
        profiles = [
            Profile.from_dict(p) for p in read_field(data, "profiles", list, [])
        ]
        return LockManifest(
            version=read_field(data, "version", int),
            current_profile_name=read_field(data, "current_profile_name", str, ""),
            load_init=read_field(data, "load_init", bool, True),
            repos=repos,
            profiles=profiles,
        )

    def find_by_path(self, repos_path: str) -> Optional[RepositoryEntry]:
        return self.repos.find_by_path(repos_path)

    def contains(self, repos_path: str) -> bool:
        return self.repos.contains(repos_path)

    def remove_by_path(self, repos_path: str) -> None:
        """Remove a repository; does nothing if it is not present."""
        self.repos.remove_by_path(repos_path)

    def find_profile(self, name: str) -> Optional[Profile]:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None

    def current_profile(self) -> Optional[Profile]:
        return self.find_profile(self.current_profile_name)

    def remove_repos_path_from_profiles(self, repos_path: str) -> int:
        """
        Remove a repository from every profile that loads it.

        Returns:
            Number of profiles that were changed
        """
        changed = 0
        for profile in self.profiles:
            if repos_path in profile.repos_paths:
                profile.repos_paths.remove(repos_path)
                changed += 1
        return changed

    def get_repos_by_profile(self, profile: Profile) -> List[RepositoryEntry]:
        """
        Resolve a profile's paths to repository entries, in profile order.

        Raises:
            ValidationError: If the profile refers to an unknown repository
        """
        result = []
        for repos_path in profile.repos_paths:
            entry = self.find_by_path(repos_path)
            if entry is None:
                raise ValidationError(
                    f"repos '{repos_path}' of profile '{profile.name}' does not exist"
                )
            result.append(entry)
        return result

    def validate(self) -> None:
        """
        Check every lock.json invariant.

        Raises:
            DuplicateRepositoryError: If two entries share a path
            ValidationError: If any other invariant is violated
        """
        if self.version < 1:
            raise ValidationError(
                f"{LOCK_MANIFEST_NAME} version is {self.version} (must be 1 or greater)"
            )
        if self.version > LOCK_MANIFEST_VERSION:
            raise ValidationError(
                f"{LOCK_MANIFEST_NAME} version is {self.version}, newer than the "
                f"supported v{LOCK_MANIFEST_VERSION}. Please upgrade plugkeeper."
            )

        duplicates = self.repos.duplicate_paths()
        if duplicates:
            raise DuplicateRepositoryError(duplicates[0], LOCK_MANIFEST_NAME)

        for i, entry in enumerate(self.repos):
            _check_normalized(entry.path, f"repos[{i}].path")

        names = set()
        for i, profile in enumerate(self.profiles):
            if not profile.name:
                raise ValidationError(f"missing: profiles[{i}].name")
            if profile.name in names:
                raise ValidationError(f"duplicate profile '{profile.name}'")
            names.add(profile.name)

            seen = set()
            for j, repos_path in enumerate(profile.repos_paths):
                if repos_path in seen:
                    raise ValidationError(
                        f"duplicate '{repos_path}' (path) in profile '{profile.name}'"
                    )
                seen.add(repos_path)
                if not self.contains(repos_path):
                    raise ValidationError(
                        f"'{repos_path}' (profiles[{i}].path[{j}]) doesn't exist in repos"
                    )

        if (self.repos or self.profiles) and self.current_profile_name not in names:
            raise ValidationError(
                f"'{self.current_profile_name}' (current_profile_name) "
                f"doesn't exist in profiles"
            )


def _check_normalized(repos_path: str, where: str) -> None:
    try:
        normalized = normalize(repos_path)
    except InvalidFormatError as e:
        raise ValidationError(f"{where}: {e}") from e
    if normalized != repos_path:
        raise ValidationError(
            f"{where}: '{repos_path}' is not normalized (expected '{normalized}')"
        )


class LockManifestManager:
    """
    Reads and writes lock.json.

    Attributes:
        lock_file_path: Path to lock.json (default: {data}/lock.json)
    """

    def __init__(self, lock_file_path: Optional[Path] = None):
        if lock_file_path is None:
            lock_file_path = get_lock_manifest_path()
        self.lock_file_path = Path(lock_file_path)

    def read(self) -> LockManifest:
        """
        Load lock.json, migrating it in memory when its version is old.

        Returns:
            The manifest; a fresh one if the file does not exist

        Raises:
            ParseError: If the file cannot be read or is not valid lock.json
            MigrationFailedError: If a migration step fails
            ValidationError: If the migrated document violates an invariant
        """
        if not exists(self.lock_file_path):
            logger.debug(f"Lock manifest not found, using initial state: {self.lock_file_path}")
            return LockManifest()

        try:
            raw = self.lock_file_path.read_bytes()
        except OSError as e:
            raise ParseError(self.lock_file_path, f"cannot read file: {e}") from e
        manifest = self._parse(raw)

        if LOCK_MANIFEST_MIGRATOR.needs_migration(manifest):
            logger.warning(
                f"Performing auto-migration of {LOCK_MANIFEST_NAME}: "
                f"v{manifest.version} -> v{LOCK_MANIFEST_VERSION}"
            )
            logger.warning(
                "Run 'plugkeeper migrate' to write the migrated file "
                "if no later command updates it"
            )
            LOCK_MANIFEST_MIGRATOR.migrate(raw, manifest)

        manifest.validate()
        logger.debug(f"Loaded lock manifest: {self.lock_file_path}")
        return manifest

    def _parse(self, raw: bytes) -> LockManifest:
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise TypeError("top-level value is not an object")
            return LockManifest.from_dict(data)
        except (ValueError, TypeError) as e:
            raise ParseError(self.lock_file_path, str(e)) from e

    def write(self, manifest: LockManifest) -> None:
        """
        Validate and save lock.json atomically.

        Parent directories are created when missing.

        Raises:
            DuplicateRepositoryError: If two entries share a path
            ValidationError: If any other invariant is violated
        """
        manifest.validate()
        atomic_write(self.lock_file_path, json.dumps(manifest.to_dict(), indent=2))
        logger.debug(f"Saved lock manifest: {self.lock_file_path}")

    def migrate(self) -> LockManifest:
        """
        Rewrite lock.json in the latest schema version.

        Returns:
            The migrated manifest
        """
        manifest = self.read()
        self.write(manifest)
        logger.info(f"Migrated {self.lock_file_path} to v{manifest.version}")
        return manifest


__all__ = [
    "LOCK_MANIFEST_VERSION",
    "DEFAULT_PROFILE_NAME",
    "read_field",
    "ReposType",
    "RepositoryEntry",
    "Profile",
    "LockManifest",
    "LockManifestManager",
]
