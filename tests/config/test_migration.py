"""
Unit tests for the schema migration engine.
"""

import json
from dataclasses import dataclass

import pytest

from plugkeeper.config.lockfile import LockManifest
from plugkeeper.config.migration import (
    LOCK_MANIFEST_MIGRATOR,
    Migrator,
    migrate_lock_manifest_1_to_2,
)
from plugkeeper.core.exceptions import MigrationFailedError


@dataclass
class _Document:
    version: int
    history: list = None

    def __post_init__(self):
        if self.history is None:
            self.history = []


def _step(name):
    def step(raw, document):
        document.history.append(name)

    return step


def _failing_step(raw, document):
    raise MigrationFailedError("doc.json", document.version, "boom")


class TestMigrator:
    """Tests for the generic Migrator."""

    def test_latest_version(self):
        migrator = Migrator("doc.json", [_step("a"), _step("b")])
        assert migrator.latest_version == 3

    def test_applies_steps_in_order(self):
        migrator = Migrator("doc.json", [_step("1->2"), _step("2->3"), _step("3->4")])
        document = _Document(version=1)

        applied = migrator.migrate(b"{}", document)

        assert applied == 3
        assert document.version == 4
        assert document.history == ["1->2", "2->3", "3->4"]

    def test_starts_at_document_version(self):
        migrator = Migrator("doc.json", [_step("1->2"), _step("2->3")])
        document = _Document(version=2)

        migrator.migrate(b"{}", document)

        assert document.history == ["2->3"]

    def test_current_document_untouched(self):
        """Test migrating at the latest version is a no-op."""
        migrator = Migrator("doc.json", [_step("1->2")])
        document = _Document(version=2)

        assert migrator.migrate(b"{}", document) == 0
        assert document.version == 2
        assert not migrator.needs_migration(document)

    def test_newer_document_untouched(self):
        migrator = Migrator("doc.json", [_step("1->2")])
        document = _Document(version=5)

        assert migrator.migrate(b"{}", document) == 0
        assert document.version == 5

    def test_target_version(self):
        migrator = Migrator("doc.json", [_step("1->2"), _step("2->3")])
        document = _Document(version=1)

        assert migrator.migrate(b"{}", document, target_version=2) == 1
        assert document.version == 2

    def test_failure_keeps_version(self):
        """Test a failed step leaves the version at the last success."""
        migrator = Migrator("doc.json", [_step("1->2"), _failing_step])
        document = _Document(version=1)

        with pytest.raises(MigrationFailedError):
            migrator.migrate(b"{}", document)

        assert document.version == 2

    def test_retry_after_failure(self):
        migrator = Migrator("doc.json", [_failing_step])
        document = _Document(version=1)
        with pytest.raises(MigrationFailedError):
            migrator.migrate(b"{}", document)

        fixed = Migrator("doc.json", [_step("1->2")])
        fixed.migrate(b"{}", document)
        assert document.version == 2

    def test_version_below_one(self):
        migrator = Migrator("doc.json", [_step("1->2")])
        with pytest.raises(MigrationFailedError, match="1 or greater"):
            migrator.migrate(b"{}", _Document(version=0))


class TestLockManifestMigration:
    """Tests for the lock.json 1 -> 2 step."""

    def test_renames_active_profile(self):
        raw = json.dumps({"version": 1, "active_profile": "work"}).encode()
        manifest = LockManifest.from_dict(json.loads(raw))

        LOCK_MANIFEST_MIGRATOR.migrate(raw, manifest)

        assert manifest.version == 2
        assert manifest.current_profile_name == "work"

    @pytest.mark.parametrize(
        "raw",
        [
            b'{"version": 1}',
            b'{"version": 1, "active_profile": 3}',
            b"not json",
            b"[1]",
        ],
    )
    def test_bad_legacy_input(self, raw):
        manifest = LockManifest(version=1, current_profile_name="")

        with pytest.raises(MigrationFailedError) as exc_info:
            migrate_lock_manifest_1_to_2(raw, manifest)

        assert exc_info.value.document == "lock.json"
        assert manifest.current_profile_name == ""
