"""
Forward-only schema migration for persisted documents.

A Migrator holds an ordered list of single-step upgrade functions; the step at
index ``n - 1`` upgrades a document from version ``n`` to ``n + 1``. Steps
receive the original raw bytes next to the in-memory document: fields that
were renamed or dropped no longer exist on the current dataclasses, so legacy
values are read from the raw input by name.

The engine bumps ``version`` by exactly one after each successful step and
leaves it untouched when a step fails, so a caller may persist after any step
and a failed migration can simply be retried.

Example:
    >>> raw = b'{"version": 1, "active_profile": "work", ...}'
    >>> manifest = LockManifest.from_dict(json.loads(raw))
    >>> LOCK_MANIFEST_MIGRATOR.migrate(raw, manifest)
    1
    >>> manifest.current_profile_name
    'work'
"""

import json
import logging
from typing import Any, Callable, Optional, Sequence

from plugkeeper.core.exceptions import MigrationFailedError

logger = logging.getLogger(__name__)

LOCK_MANIFEST_NAME = "lock.json"

MigrationStep = Callable[[bytes, Any], None]


class Migrator:
    """
    Applies the registered steps of one document type in order.

    Attributes:
        document_name: Name used in log messages and errors (e.g. 'lock.json')
        steps: Step functions; steps[n - 1] upgrades v{n} to v{n + 1}
    """

    def __init__(self, document_name: str, steps: Sequence[MigrationStep]):
        self.document_name = document_name
        self.steps = list(steps)

    @property
    def latest_version(self) -> int:
        return len(self.steps) + 1

    def needs_migration(self, document) -> bool:
        return document.version < self.latest_version

    def migrate(
        self, raw: bytes, document, target_version: Optional[int] = None
    ) -> int:
        """
        Upgrade document in place.

        Args:
            raw: The bytes the document was parsed from
            document: Object with an integer ``version`` attribute
            target_version: Stop once this version is reached (default: latest)

        Returns:
            Number of steps applied (0 when already current)

        Raises:
            MigrationFailedError: If the document version is below 1 or a
                step cannot read its legacy input
        """
        if document.version < 1:
            raise MigrationFailedError(
                self.document_name,
                document.version,
                "version must be 1 or greater",
            )

        if target_version is None:
            target_version = self.latest_version

        applied = 0
        while (
            document.version - 1 < len(self.steps)
            and document.version < target_version
        ):
            from_version = document.version
            logger.info(
                f"Migrating {self.document_name} v{from_version} "
                f"to v{from_version + 1} ..."
            )
            self.steps[from_version - 1](raw, document)
            document.version = from_version + 1
            applied += 1

        return applied


def _load_raw_object(raw: bytes, document_name: str, from_version: int) -> dict:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise MigrationFailedError(document_name, from_version, str(e)) from e
    if not isinstance(data, dict):
        raise MigrationFailedError(
            document_name, from_version, "top-level value is not an object"
        )
    return data


# Rename 'active_profile' to 'current_profile_name'
def migrate_lock_manifest_1_to_2(raw: bytes, manifest) -> None:
    data = _load_raw_object(raw, LOCK_MANIFEST_NAME, 1)
    active_profile = data.get("active_profile")
    if not isinstance(active_profile, str):
        raise MigrationFailedError(
            LOCK_MANIFEST_NAME, 1, "'active_profile' is missing or not a string"
        )
    manifest.current_profile_name = active_profile


LOCK_MANIFEST_MIGRATOR = Migrator(LOCK_MANIFEST_NAME, [migrate_lock_manifest_1_to_2])


__all__ = [
    "LOCK_MANIFEST_NAME",
    "MigrationStep",
    "Migrator",
    "migrate_lock_manifest_1_to_2",
    "LOCK_MANIFEST_MIGRATOR",
    "MigrationFailedError",
]
