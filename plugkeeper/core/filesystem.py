"""
File system utilities for plugkeeper.

This module provides the small set of file operations the state core relies on:
- Atomic writes (temp file + rename) for lock.json and build-info.json
- Existence checks that do not follow symlinks
- Chunked file hashing used as file fingerprints for static repositories

All writes go through atomic_write so a document is never observed in a
partially-written state.
"""

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Iterator, Union


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def exists(path: Union[str, Path]) -> bool:
    """
    Check whether a path exists without following symlinks.

    A dangling symlink counts as existing, matching what a subsequent
    create or rename at that path would observe.

    Args:
        path: Path to check

    Returns:
        True if something exists at path
    """
    return os.path.lexists(path)


def iter_files(root: Union[str, Path]) -> Iterator[Path]:
    """
    Yield every regular file below root, in sorted order.

    Args:
        root: Directory to walk

    Yields:
        Paths of regular files (symlinks to files included)
    """
    root = Path(root)
    for item in sorted(root.rglob("*")):
        if item.is_file():
            yield item


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(file_path: Union[str, Path], content: str) -> None:
    """
    Replace a persisted document in one step.

    The text is written as UTF-8 to a hidden sibling file which is then
    renamed over file_path, so readers see either the old or the new
    document. Parent directories are created when missing; on failure the
    sibling is removed and the previous document stays in place.

    Example:
        >>> atomic_write(get_lock_manifest_path(), json.dumps(data, indent=2))
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    fd, staged = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    staged_path = Path(staged)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(content)
        staged_path.replace(file_path)
    except Exception:
        staged_path.unlink(missing_ok=True)
        raise


# ============================================================================
# File Fingerprints
# ============================================================================

_READ_SIZE = 64 * 1024


def compute_file_hash(file_path: Union[str, Path]) -> str:
    """
    Fingerprint one file of a static repository.

    Returns:
        SHA256 hex digest of the file content

    Raises:
        FilesystemError: If the file does not exist
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FilesystemError(f"File not found: {file_path}")

    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        while block := f.read(_READ_SIZE):
            digest.update(block)
    return digest.hexdigest()


__all__ = [
    "FilesystemError",
    "exists",
    "iter_files",
    "atomic_write",
    "compute_file_hash",
]
