"""
Cross-process transactions for plugkeeper.

Every mutating command runs inside a transaction so that two plugkeeper
processes working on the same data directory never interleave their updates
of lock.json and build-info.json.

Protocol:
- start(): create ``{trx}/lock`` with a single exclusive, non-recursive
  mkdir. Directory creation is atomic, so exactly one process wins. If the
  directory already exists the transaction fails with LockHeldError.
- The new transaction ID is the largest numeral directory name under
  ``{trx}`` plus one (``"1"`` when there is none).
- done(): rename ``{trx}/lock`` to ``{trx}/{id}``. The rename is the commit
  point; committed directories form an append-only log.

A process that dies before done() leaves ``{trx}/lock`` behind. The next
start() reports it and never removes it automatically: only the operator can
tell a crashed run from a live one.

Usage:
    from plugkeeper.core.transaction import transaction

    with transaction() as trx:
        manifest = manager.read()
        ...
        manager.write(manifest)
        trx.write_log(command="get", lock_json=manifest.to_dict())
"""

import logging
import os
import re
from contextlib import contextmanager
from functools import cmp_to_key
from pathlib import Path
from typing import List, Optional

import yaml

from plugkeeper.core.directory import get_trx_dir
from plugkeeper.core.exceptions import (
    LockHeldError,
    TransactionError,
    TrxIDOverflowError,
)
from plugkeeper.core.filesystem import atomic_write, exists

logger = logging.getLogger(__name__)

LOCK_DIR_NAME = "lock"
LOG_FILE_NAME = "log.yaml"
MAX_TRX_ID = 2**32 - 1

_NUMERAL_PATTERN = re.compile(r"^[0-9]+$")


def greater_than(a: str, b: str) -> bool:
    """
    Compare two decimal numerals of arbitrary width.

    The shorter operand is left-padded with zeros before a plain string
    comparison, so "10" is greater than "9".

    Example:
        >>> greater_than("10", "9")
        True
        >>> "10" > "9"
        False
    """
    width = max(len(a), len(b))
    return a.zfill(width) > b.zfill(width)


def _compare(a: str, b: str) -> int:
    if greater_than(a, b):
        return 1
    if greater_than(b, a):
        return -1
    return 0


class TrxID(str):
    """Transaction ID: a decimal numeral, also the name of its log directory."""

    __slots__ = ()

    def increment(self) -> "TrxID":
        """
        Return the next transaction ID.

        Raises:
            TransactionError: If this ID is not a decimal numeral
            TrxIDOverflowError: If the next ID would leave the unsigned
                32-bit range
        """
        if not _NUMERAL_PATTERN.match(self):
            raise TransactionError(f"Invalid transaction ID: {self!r}")
        value = int(self)
        if value >= MAX_TRX_ID:
            raise TrxIDOverflowError(self)
        return TrxID(str(value + 1))


FIRST_TRX_ID = TrxID("1")


class Transaction:
    """
    A running transaction.

    Attributes:
        trx_dir: Transaction log root
        id: ID allocated at start; name of the directory done() creates
    """

    def __init__(self, trx_dir: Path, trx_id: TrxID):
        self.trx_dir = Path(trx_dir)
        self.id = trx_id
        self._committed = False

    @property
    def lock_dir(self) -> Path:
        return self.trx_dir / LOCK_DIR_NAME

    @property
    def committed_dir(self) -> Path:
        return self.trx_dir / self.id

    @property
    def committed(self) -> bool:
        return self._committed

    def write_log(self, **content) -> Path:
        """
        Record what this transaction does.

        Writes ``log.yaml`` into the provisional directory; it moves into the
        committed log entry on done().

        Args:
            **content: YAML-serializable values (plain dicts, lists, strings)

        Returns:
            Path of the written log file

        Raises:
            TransactionError: If the transaction is already committed
        """
        if self._committed:
            raise TransactionError(
                f"Cannot write log of committed transaction {self.id}"
            )
        data = {"trx_id": str(self.id)}
        data.update(content)
        log_file = self.lock_dir / LOG_FILE_NAME
        atomic_write(
            log_file, yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
        )
        logger.debug(f"Wrote transaction log: {log_file}")
        return log_file

    def done(self) -> None:
        """
        Commit the transaction by renaming ``lock`` to its ID.

        Raises:
            TransactionError: If already committed, if the lock directory is
                gone, or if the target directory already exists
        """
        if self._committed:
            raise TransactionError(f"Transaction {self.id} is already committed")

        if not self.lock_dir.is_dir():
            raise TransactionError(
                f"Lock directory of transaction {self.id} disappeared: {self.lock_dir}"
            )

        if exists(self.committed_dir):
            raise TransactionError(
                f"Cannot commit transaction {self.id}: "
                f"{self.committed_dir} already exists"
            )

        try:
            os.rename(self.lock_dir, self.committed_dir)
        except OSError as e:
            raise TransactionError(
                f"Failed to commit transaction {self.id}: {e}"
            ) from e

        self._committed = True
        logger.info(f"Committed transaction {self.id}: {self.committed_dir}")


class TransactionManager:
    """
    Starts transactions and allocates their IDs.

    Attributes:
        trx_dir: Transaction log root (default: {data}/trx)
    """

    def __init__(self, trx_dir: Optional[Path] = None):
        if trx_dir is None:
            trx_dir = get_trx_dir()
        self.trx_dir = Path(trx_dir)

    @property
    def lock_dir(self) -> Path:
        return self.trx_dir / LOCK_DIR_NAME

    def is_locked(self) -> bool:
        """Check whether a transaction is running or a crashed one left its lock."""
        return exists(self.lock_dir)

    def start(self) -> Transaction:
        """
        Start a transaction.

        This is a single non-blocking attempt: it either takes the lock
        immediately or fails immediately.

        Returns:
            The running transaction

        Raises:
            LockHeldError: If ``{trx}/lock`` already exists
            TrxIDOverflowError: If no further ID can be allocated
        """
        self.trx_dir.mkdir(parents=True, exist_ok=True)

        try:
            self.lock_dir.mkdir()
        except FileExistsError as e:
            logger.error(
                f"Could not start transaction: {self.lock_dir} already exists. "
                "Another plugkeeper process may be running."
            )
            raise LockHeldError(self.lock_dir) from e

        try:
            trx_id = self.next_trx_id()
        except Exception:
            # Only the directory created just above is removed here
            self.lock_dir.rmdir()
            raise

        logger.debug(f"Started transaction {trx_id}: {self.lock_dir}")
        return Transaction(self.trx_dir, trx_id)

    def _scan_ids(self) -> List[TrxID]:
        if not self.trx_dir.is_dir():
            return []
        return [
            TrxID(entry.name)
            for entry in self.trx_dir.iterdir()
            if entry.is_dir() and _NUMERAL_PATTERN.match(entry.name)
        ]

    def committed_ids(self) -> List[TrxID]:
        """
        List committed transaction IDs in ascending numeric order.

        Returns:
            IDs of the numeral-named directories under the log root
        """
        return sorted(self._scan_ids(), key=cmp_to_key(_compare))

    def latest_trx_id(self) -> Optional[TrxID]:
        """Return the greatest committed ID, or None when the log is empty."""
        latest = None
        for trx_id in self._scan_ids():
            if latest is None or greater_than(trx_id, latest):
                latest = trx_id
        return latest

    def next_trx_id(self) -> TrxID:
        """
        Allocate the ID following the greatest committed one.

        Raises:
            TrxIDOverflowError: If the greatest ID is already at the limit
        """
        latest = self.latest_trx_id()
        if latest is None:
            return FIRST_TRX_ID
        return latest.increment()


@contextmanager
def transaction(trx_dir: Optional[Path] = None):
    """
    Run a block inside a transaction.

    The transaction is committed when the block exits, also when it raises,
    so the log keeps a record of attempted work. Only a process crash leaves
    the lock directory behind.

    Args:
        trx_dir: Transaction log root (default: {data}/trx)

    Yields:
        Transaction: the running transaction

    Raises:
        LockHeldError: If another transaction holds the lock
    """
    trx = TransactionManager(trx_dir).start()
    try:
        yield trx
    finally:
        if not trx.committed:
            trx.done()


__all__ = [
    "LOCK_DIR_NAME",
    "LOG_FILE_NAME",
    "MAX_TRX_ID",
    "FIRST_TRX_ID",
    "greater_than",
    "TrxID",
    "Transaction",
    "TransactionManager",
    "transaction",
    "LockHeldError",
    "TrxIDOverflowError",
    "TransactionError",
]
