"""
Build cache (build-info.json) for plugkeeper.

The build cache records what the last build actually installed: one entry per
repository with the version it was built from and, for static (non-VCS)
repositories, a fingerprint of every file. The build step compares it with
lock.json to decide which repositories must be rebuilt.

Rebuild contract, per desired repository:
- no cache entry -> rebuild
- git repository whose cached version differs from the resolved one -> rebuild
- cached or current worktree is dirty -> rebuild
- static repository with a changed, missing or untracked file -> rebuild

After a (re)build the cache entry is replaced wholesale with replace_repos(),
so fingerprints of removed files never survive.

Example:
    >>> from plugkeeper.core.build_cache import BuildInfoManager, needs_rebuild
    >>>
    >>> manager = BuildInfoManager()
    >>> build_info = manager.read()
    >>> for entry in manifest.repos:
    ...     cached = build_info.find_by_path(entry.path)
    ...     if needs_rebuild(entry, cached):
    ...         rebuild(entry)
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from plugkeeper.config.lockfile import RepositoryEntry, ReposType, read_field
from plugkeeper.config.parser import STRATEGIES
from plugkeeper.core.directory import get_build_info_path, get_opt_dir
from plugkeeper.core.exceptions import (
    DuplicateRepositoryError,
    InvalidFormatError,
    ParseError,
    ValidationError,
)
from plugkeeper.core.filesystem import atomic_write, compute_file_hash, exists, iter_files
from plugkeeper.core.repository import RepositoryPath, ReposList, decode_flat_name

logger = logging.getLogger(__name__)

BUILD_INFO_NAME = "build-info.json"
BUILD_INFO_VERSION = 2


@dataclass
class BuildInfoRepos:
    """
    Build state of one repository.

    Attributes:
        path: Normalized repository path
        type: Source kind
        version: Version the repository was built from
        files: Relative file path -> fingerprint (static repositories only)
        dirty_worktree: Worktree had uncommitted changes at build time
    """

    path: RepositoryPath
    type: ReposType = ReposType.GIT
    version: str = ""
    files: Dict[str, str] = field(default_factory=dict)
    dirty_worktree: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            "type": self.type.value,
            "path": str(self.path),
            "version": self.version,
        }
        if self.files:
            data["files"] = dict(self.files)
        if self.dirty_worktree:
            data["dirty_worktree"] = True
        return data

    @staticmethod
    def from_dict(data: dict) -> "BuildInfoRepos":
        """Create from dictionary loaded from JSON."""
        files = read_field(data, "files", dict, {})
        for name, fingerprint in files.items():
            if not isinstance(fingerprint, str):
                raise TypeError(f"fingerprint of '{name}' must be str")
        return BuildInfoRepos(
            path=RepositoryPath(read_field(data, "path", str)),
            type=ReposType(read_field(data, "type", str, ReposType.GIT.value)),
            version=read_field(data, "version", str, ""),
            files=dict(files),
            dirty_worktree=read_field(data, "dirty_worktree", bool, False),
        )


@dataclass
class BuildInfo:
    """
    Complete build-info.json structure.

    A zero-value BuildInfo (version 0, no strategy) stands for "never built".

    Attributes:
        repos: Built repositories, unique by path
        version: Build cache format version
        strategy: Install strategy of the last build ('symlink' or 'copy')
    """

    repos: ReposList = field(default_factory=ReposList)
    version: int = 0
    strategy: str = ""

    def to_dict(self) -> dict:
        return {
            "repos": [r.to_dict() for r in self.repos],
            "version": self.version,
            "strategy": self.strategy,
        }

    @staticmethod
    def from_dict(data: dict) -> "BuildInfo":
        return BuildInfo(
            repos=ReposList(
                BuildInfoRepos.from_dict(r) for r in read_field(data, "repos", list, [])
            ),
            version=read_field(data, "version", int, 0),
            strategy=read_field(data, "strategy", str, ""),
        )

    def validate(self) -> None:
        """
        Raises:
            DuplicateRepositoryError: If two entries share a path
            ValidationError: If the strategy is unknown
        """
        duplicates = self.repos.duplicate_paths()
        if duplicates:
            raise DuplicateRepositoryError(duplicates[0], BUILD_INFO_NAME)
        # "" is the strategy of a cache that was never built
        if self.strategy and self.strategy not in STRATEGIES:
            raise ValidationError(
                f"{BUILD_INFO_NAME}: unknown strategy {self.strategy!r} "
                f"(expected one of {', '.join(STRATEGIES)})"
            )

    def find_by_path(self, repos_path: str) -> Optional[BuildInfoRepos]:
        return self.repos.find_by_path(repos_path)

    def remove_by_path(self, repos_path: str) -> None:
        self.repos.remove_by_path(repos_path)

    def replace_repos(self, repos: BuildInfoRepos) -> None:
        """Replace the entry for repos.path (or add it) with repos as a whole."""
        self.repos.remove_by_path(repos.path)
        self.repos.append(repos)

    def retain_only(self, repos_paths: Iterable[str]) -> List[RepositoryPath]:
        """
        Drop entries of repositories that are no longer desired.

        Returns:
            Paths of the removed entries
        """
        keep = set(repos_paths)
        removed = [r.path for r in self.repos if r.path not in keep]
        self.repos[:] = [r for r in self.repos if r.path in keep]
        return removed


class BuildInfoManager:
    """
    Reads and writes build-info.json.

    Attributes:
        build_info_path: Path to build-info.json (default: {install}/build-info.json)
    """

    def __init__(self, build_info_path: Optional[Path] = None):
        if build_info_path is None:
            build_info_path = get_build_info_path()
        self.build_info_path = Path(build_info_path)

    def read(self) -> BuildInfo:
        """
        Load build-info.json.

        Returns:
            The build cache; a zero-value BuildInfo if the file does not exist

        Raises:
            ParseError: If the file cannot be read or is not valid build-info.json
            DuplicateRepositoryError: If two entries share a path
            ValidationError: If the strategy is unknown
        """
        if not exists(self.build_info_path):
            logger.debug(f"Build info not found, using empty state: {self.build_info_path}")
            return BuildInfo()

        try:
            raw = self.build_info_path.read_bytes()
        except OSError as e:
            raise ParseError(self.build_info_path, f"cannot read file: {e}") from e

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise TypeError("top-level value is not an object")
            build_info = BuildInfo.from_dict(data)
        except (ValueError, TypeError) as e:
            raise ParseError(self.build_info_path, str(e)) from e

        build_info.validate()
        logger.debug(f"Loaded build info: {self.build_info_path}")
        return build_info

    def write(self, build_info: BuildInfo) -> None:
        """
        Validate and save build-info.json atomically.

        Raises:
            DuplicateRepositoryError: If two entries share a path
            ValidationError: If the strategy is unknown
        """
        build_info.validate()
        atomic_write(self.build_info_path, json.dumps(build_info.to_dict(), indent=2))
        logger.debug(f"Saved build info: {self.build_info_path}")


# ============================================================================
# Rebuild Decisions
# ============================================================================


@dataclass
class FileChanges:
    """Differences between tracked fingerprints and the files on disk."""

    changed: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.changed or self.missing or self.untracked)


def fingerprint_files(root: Path) -> Dict[str, str]:
    """
    Fingerprint every file below root.

    Args:
        root: Repository directory

    Returns:
        Relative POSIX path -> SHA256 hex digest
    """
    root = Path(root)
    return {
        path.relative_to(root).as_posix(): compute_file_hash(path)
        for path in iter_files(root)
    }


def diff_files(tracked: Dict[str, str], current: Dict[str, str]) -> FileChanges:
    """Compare cached fingerprints with current ones."""
    changes = FileChanges()
    for name, fingerprint in sorted(tracked.items()):
        if name not in current:
            changes.missing.append(name)
        elif current[name] != fingerprint:
            changes.changed.append(name)
    changes.untracked = sorted(name for name in current if name not in tracked)
    return changes


def needs_full_build(build_info: BuildInfo, strategy: str) -> bool:
    """
    Check whether every repository must be rebuilt.

    A full build is needed when the cache was written by a different cache
    format version or with a different install strategy.
    """
    if build_info.version != BUILD_INFO_VERSION:
        logger.debug(
            f"Full build needed: build info version {build_info.version} "
            f"(current: {BUILD_INFO_VERSION})"
        )
        return True
    if build_info.strategy != strategy:
        logger.debug(
            f"Full build needed: strategy changed "
            f"({build_info.strategy!r} -> {strategy!r})"
        )
        return True
    return False


def needs_rebuild(
    entry: RepositoryEntry,
    cached: Optional[BuildInfoRepos],
    current_version: Optional[str] = None,
    dirty: bool = False,
    current_files: Optional[Dict[str, str]] = None,
) -> bool:
    """
    Decide whether one repository must be rebuilt.

    Args:
        entry: Desired repository from lock.json
        cached: Its build-info.json entry, or None
        current_version: Resolved version of the source (default: entry.version)
        dirty: Whether the source worktree currently has local changes
        current_files: Current fingerprints (static repositories); when not
            given for a static repository the rebuild is always required

    Returns:
        True if the repository must be rebuilt
    """
    if cached is None:
        logger.debug(f"Rebuild needed: {entry.path} not built yet")
        return True

    if cached.type != entry.type:
        logger.debug(f"Rebuild needed: {entry.path} changed type to {entry.type.value}")
        return True

    if cached.dirty_worktree or dirty:
        logger.debug(f"Rebuild needed: {entry.path} has a dirty worktree")
        return True

    if entry.type == ReposType.GIT:
        if current_version is None:
            current_version = entry.version
        if cached.version != current_version:
            logger.debug(
                f"Rebuild needed: {entry.path} version changed "
                f"({cached.version} -> {current_version})"
            )
            return True
        return False

    if current_files is None:
        logger.debug(f"Rebuild needed: no fingerprints given for {entry.path}")
        return True

    changes = diff_files(cached.files, current_files)
    if changes:
        logger.debug(
            f"Rebuild needed: {entry.path} files changed "
            f"(changed={len(changes.changed)}, missing={len(changes.missing)}, "
            f"untracked={len(changes.untracked)})"
        )
        return True
    return False


def find_orphaned_installs(
    desired: Iterable[str], opt_dir: Optional[Path] = None
) -> List[RepositoryPath]:
    """
    Find installed repositories that are no longer desired.

    Args:
        desired: Repository paths that should stay installed
        opt_dir: Install tree (default: {install}/opt)

    Directories whose name is not a flat repository name are skipped.

    Returns:
        Decoded paths of install directories not in desired
    """
    if opt_dir is None:
        opt_dir = get_opt_dir()
    opt_dir = Path(opt_dir)
    if not opt_dir.is_dir():
        return []

    keep = set(desired)
    orphaned = []
    for entry in sorted(opt_dir.iterdir()):
        if not entry.is_dir():
            continue
        try:
            repos_path = decode_flat_name(entry.name)
        except InvalidFormatError:
            logger.warning(f"Skipping unrecognized install directory: {entry}")
            continue
        if repos_path not in keep:
            orphaned.append(repos_path)
    return orphaned


__all__ = [
    "BUILD_INFO_NAME",
    "BUILD_INFO_VERSION",
    "BuildInfoRepos",
    "BuildInfo",
    "BuildInfoManager",
    "FileChanges",
    "fingerprint_files",
    "diff_files",
    "needs_full_build",
    "needs_rebuild",
    "find_orphaned_installs",
]
