"""
Core functionality for plugkeeper.

This package contains the state-management modules every command depends on:
repository identifiers, directories and the transaction manager. The build
cache lives in plugkeeper.core.build_cache and is imported from there.
"""

from .directory import (
    get_data_dir,
    get_install_dir,
    get_opt_dir,
    get_repos_dir,
    get_trx_dir,
    DirectoryError,
)

from .repository import (
    RepositoryPath,
    ReposList,
    normalize,
    normalize_local,
    encode_flat_name,
    decode_flat_name,
)

from .transaction import (
    TrxID,
    Transaction,
    TransactionManager,
    transaction,
    greater_than,
)

from .exceptions import (
    PlugkeeperError,
    InvalidFormatError,
    ParseError,
    ValidationError,
    DuplicateRepositoryError,
    MigrationFailedError,
    ConfigError,
    TransactionError,
    LockHeldError,
    TrxIDOverflowError,
)

__all__ = [
    # Directory
    "get_data_dir",
    "get_install_dir",
    "get_opt_dir",
    "get_repos_dir",
    "get_trx_dir",
    "DirectoryError",
    # Repository
    "RepositoryPath",
    "ReposList",
    "normalize",
    "normalize_local",
    "encode_flat_name",
    "decode_flat_name",
    # Transaction
    "TrxID",
    "Transaction",
    "TransactionManager",
    "transaction",
    "greater_than",
    # Exceptions
    "PlugkeeperError",
    "InvalidFormatError",
    "ParseError",
    "ValidationError",
    "DuplicateRepositoryError",
    "MigrationFailedError",
    "ConfigError",
    "TransactionError",
    "LockHeldError",
    "TrxIDOverflowError",
]
