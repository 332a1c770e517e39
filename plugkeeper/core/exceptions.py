"""
Centralized exception hierarchy for plugkeeper.

This module defines all custom exceptions raised by the state-management
core so callers can catch one base class and still print an actionable
message (every exception carries the path or value it failed on).
"""

from pathlib import Path
from typing import Optional, Union


# ============================================================================
# Base Exceptions
# ============================================================================


class PlugkeeperError(Exception):
    """Base exception for all plugkeeper errors."""

    pass


# ============================================================================
# Repository Identifier Exceptions
# ============================================================================


class InvalidFormatError(PlugkeeperError):
    """Raised when a repository identifier cannot be normalized."""

    def __init__(self, raw: str, reason: str = ""):
        self.raw = raw
        self.reason = reason
        msg = f"Invalid format of repository: {raw!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


# ============================================================================
# Persisted Document Exceptions
# ============================================================================


class ParseError(PlugkeeperError):
    """Raised when a persisted JSON or TOML document is malformed."""

    def __init__(self, path: Union[str, Path], detail: str):
        self.path = Path(path)
        self.detail = detail
        super().__init__(
            f"Failed to parse {self.path}: {detail}. "
            f"Fix or delete the file and run the command again."
        )


class ValidationError(PlugkeeperError):
    """Raised when a document violates one of its invariants."""

    pass


class DuplicateRepositoryError(ValidationError):
    """Raised when two entries of one document share a repository path."""

    def __init__(self, repos_path: str, document: str):
        self.repos_path = repos_path
        self.document = document
        super().__init__(f"validation failed: {document}: duplicate repos '{repos_path}'")


class MigrationFailedError(PlugkeeperError):
    """Raised when a migration step cannot read its legacy input."""

    def __init__(self, document: str, from_version: int, reason: str):
        self.document = document
        self.from_version = from_version
        self.reason = reason
        super().__init__(
            f"Failed to migrate {document} v{from_version} to "
            f"v{from_version + 1}: {reason}"
        )


class ConfigError(PlugkeeperError):
    """Raised when config.toml holds an invalid value."""

    pass


# ============================================================================
# Transaction Exceptions
# ============================================================================


class TransactionError(PlugkeeperError):
    """Base exception for transaction errors."""

    pass


class LockHeldError(TransactionError):
    """Raised when the transaction lock directory already exists."""

    def __init__(self, lock_path: Union[str, Path], detail: Optional[str] = None):
        self.lock_path = Path(lock_path)
        msg = (
            f"Transaction lock is held: {self.lock_path}. "
            f"Another plugkeeper process may be running. "
            f"If you are sure no other process is running, a previous run "
            f"crashed: remove '{self.lock_path}' manually and retry."
        )
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class TrxIDOverflowError(TransactionError):
    """Raised when the transaction ID space is exhausted."""

    def __init__(self, trx_id: str):
        self.trx_id = trx_id
        super().__init__(f"Transaction ID overflow: cannot increment {trx_id}")
