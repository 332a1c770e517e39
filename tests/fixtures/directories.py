"""Reusable directory structure fixtures for testing.

This module provides pytest fixtures that create realistic plugkeeper data and
install roots for testing the lock manifest, build cache and transactions.
"""

import json
import pytest
from pathlib import Path


@pytest.fixture
def mock_data_dir(tmp_path) -> Path:
    """
    Create an empty plugkeeper data root.

    Creates:
    - repos/ (empty)
    - trx/ (empty)

    Returns:
        Path to the data root

    Example:
        def test_layout(mock_data_dir):
            assert (mock_data_dir / "trx").is_dir()
    """
    data_dir = tmp_path / "plugkeeper"
    (data_dir / "repos").mkdir(parents=True)
    (data_dir / "trx").mkdir()
    return data_dir


@pytest.fixture
def mock_data_dir_with_manifest(mock_data_dir) -> Path:
    """
    Create a data root holding a current (v2) lock.json.

    The manifest has two repositories and one 'default' profile loading both.
    """
    manifest = {
        "current_profile_name": "default",
        "load_init": True,
        "repos": [
            {
                "type": "git",
                "path": "github.com/tyru/caw.vim",
                "version": "2a9e8c4b5d1f0a7e3c6b9d2f8a1e4c7b0d3f6a9e",
                "active": True,
            },
            {
                "type": "static",
                "path": "localhost/local/myplugin",
                "version": "",
                "active": True,
            },
        ],
        "profiles": [
            {
                "name": "default",
                "path": ["github.com/tyru/caw.vim", "localhost/local/myplugin"],
                "load_init": True,
            }
        ],
        "version": 2,
    }
    (mock_data_dir / "lock.json").write_text(json.dumps(manifest, indent=2))
    return mock_data_dir


@pytest.fixture
def legacy_lock_manifest(mock_data_dir) -> Path:
    """
    Create a v1 lock.json that still uses 'active_profile'.

    Returns:
        Path to the lock.json file
    """
    manifest = {
        "version": 1,
        "active_profile": "work",
        "load_init": True,
        "repos": [
            {
                "type": "git",
                "path": "github.com/tyru/caw.vim",
                "version": "0123456789abcdef0123456789abcdef01234567",
                "active": True,
            }
        ],
        "profiles": [
            {"name": "default", "path": [], "load_init": True},
            {"name": "work", "path": ["github.com/tyru/caw.vim"], "load_init": False},
        ],
    }
    lock_file = mock_data_dir / "lock.json"
    lock_file.write_text(json.dumps(manifest, indent=2))
    return lock_file


@pytest.fixture
def mock_install_dir(tmp_path) -> Path:
    """
    Create an install root with two installed repositories.

    Creates:
    - opt/github.com_tyru_caw.vim/plugin/caw.vim
    - opt/github.com_user_my__plugin/plugin/my_plugin.vim

    Returns:
        Path to the install root
    """
    install_dir = tmp_path / "pack" / "plugkeeper"
    for flat_name, file_name in [
        ("github.com_tyru_caw.vim", "caw.vim"),
        ("github.com_user_my__plugin", "my_plugin.vim"),
    ]:
        plugin_dir = install_dir / "opt" / flat_name / "plugin"
        plugin_dir.mkdir(parents=True)
        (plugin_dir / file_name).write_text('" plugin\n')
    return install_dir
