"""
Integration tests for a complete state update.

These tests run the sequence every mutating command follows: start a
transaction, read lock.json and build-info.json, change them, write them back
and commit.
"""

import json

import pytest
import yaml

from plugkeeper.config.lockfile import (
    LockManifestManager,
    RepositoryEntry,
    ReposType,
)
from plugkeeper.config.parser import load_config
from plugkeeper.core.build_cache import (
    BUILD_INFO_VERSION,
    BuildInfoManager,
    BuildInfoRepos,
    find_orphaned_installs,
    fingerprint_files,
    needs_full_build,
    needs_rebuild,
)
from plugkeeper.core.exceptions import LockHeldError
from plugkeeper.core.repository import normalize, normalize_local
from plugkeeper.core.transaction import LOG_FILE_NAME, TransactionManager, transaction


@pytest.mark.integration
class TestStateWorkflow:
    """End-to-end state updates against temporary roots."""

    def test_get_then_build(self, plugkeeper_env):
        """Test adding repositories and recording their build."""
        caw = normalize("https://github.com/tyru/caw.vim.git")
        local = normalize_local("myplugin")
        local_src = local.full_path()
        (local_src / "plugin").mkdir(parents=True)
        (local_src / "plugin" / "myplugin.vim").write_text('" local plugin\n')

        with transaction() as trx:
            lock_manager = LockManifestManager()
            manifest = lock_manager.read()
            manifest.repos.append(RepositoryEntry(path=caw, version="abc123"))
            manifest.repos.append(RepositoryEntry(path=local, type=ReposType.STATIC))
            manifest.current_profile().repos_paths.extend([caw, local])
            lock_manager.write(manifest)
            trx.write_log(command="get", repos=[str(caw), str(local)])

        with transaction():
            config = load_config()
            manifest = LockManifestManager().read()
            build_manager = BuildInfoManager()
            build_info = build_manager.read()
            assert needs_full_build(build_info, config.build.strategy)

            for entry in manifest.get_repos_by_profile(manifest.current_profile()):
                cached = build_info.find_by_path(entry.path)
                if entry.type == ReposType.STATIC:
                    files = fingerprint_files(entry.path.full_path())
                    assert needs_rebuild(entry, cached, current_files=files)
                    build_info.replace_repos(
                        BuildInfoRepos(path=entry.path, type=entry.type, files=files)
                    )
                else:
                    assert needs_rebuild(entry, cached)
                    build_info.replace_repos(
                        BuildInfoRepos(path=entry.path, version=entry.version)
                    )
                entry.path.install_path().mkdir(parents=True)

            build_info.version = BUILD_INFO_VERSION
            build_info.strategy = config.build.strategy
            build_manager.write(build_info)

        trx_manager = TransactionManager()
        assert trx_manager.committed_ids() == ["1", "2"]
        assert not trx_manager.is_locked()

        log = yaml.safe_load(
            (plugkeeper_env / "data" / "trx" / "1" / LOG_FILE_NAME).read_text()
        )
        assert log["command"] == "get"

        build_info = BuildInfoManager().read()
        assert not needs_full_build(build_info, "symlink")
        manifest = LockManifestManager().read()
        for entry in manifest.repos:
            cached = build_info.find_by_path(entry.path)
            files = None
            if entry.type == ReposType.STATIC:
                files = fingerprint_files(entry.path.full_path())
            assert not needs_rebuild(entry, cached, current_files=files)

        on_disk = json.loads(
            (plugkeeper_env / "install" / "build-info.json").read_text()
        )
        assert on_disk["strategy"] == "symlink"
        assert on_disk["repos"][1]["files"] == {
            "plugin/myplugin.vim": build_info.find_by_path(local).files[
                "plugin/myplugin.vim"
            ]
        }

    def test_remove_repository(self, plugkeeper_env):
        """Test removing a repository from every document and the install tree."""
        caw = normalize("tyru/caw.vim")
        other = normalize("user/my_plugin")

        with transaction():
            lock_manager = LockManifestManager()
            manifest = lock_manager.read()
            for path in (caw, other):
                manifest.repos.append(RepositoryEntry(path=path, version="v1"))
                path.install_path().mkdir(parents=True)
            manifest.current_profile().repos_paths.extend([caw, other])
            lock_manager.write(manifest)

            build_manager = BuildInfoManager()
            build_info = build_manager.read()
            for path in (caw, other):
                build_info.replace_repos(BuildInfoRepos(path=path, version="v1"))
            build_manager.write(build_info)

        with transaction() as trx:
            lock_manager = LockManifestManager()
            manifest = lock_manager.read()
            manifest.remove_by_path(other)
            assert manifest.remove_repos_path_from_profiles(other) == 1
            lock_manager.write(manifest)

            build_manager = BuildInfoManager()
            build_info = build_manager.read()
            assert build_info.retain_only(manifest.repos.paths()) == [other]
            build_manager.write(build_info)

            orphaned = find_orphaned_installs(manifest.repos.paths())
            assert orphaned == [other]
            trx.write_log(command="rm", repos=[str(p) for p in orphaned])

        manifest = LockManifestManager().read()
        assert manifest.repos.paths() == [caw]
        assert manifest.current_profile().repos_paths == [caw]
        assert BuildInfoManager().read().repos.paths() == [caw]

    def test_crashed_transaction_blocks_next(self, plugkeeper_env):
        """Test a lock left by a crash stops every later command."""
        trx_manager = TransactionManager()
        trx_manager.start()

        with pytest.raises(LockHeldError):
            with transaction():
                LockManifestManager().write(LockManifestManager().read())

        assert not (plugkeeper_env / "data" / "lock.json").exists()
        assert trx_manager.committed_ids() == []
