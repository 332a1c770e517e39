"""
Directory layout for plugkeeper.

This module resolves every on-disk location the state core touches. Callers
never build these paths by hand, so overriding the roots through the
environment relocates everything consistently.

Directory Structure:
    Data root ($PLUGKEEPER_HOME or ~/plugkeeper):
        - lock.json     : Desired state (repositories, profiles)
        - config.toml   : User configuration
        - repos/        : Cloned sources, {host}/{user}/{name}
        - trx/          : Transaction log
          - lock/       : Provisional directory of the running transaction
          - 1, 2, ...   : Committed transactions (never pruned)

    Install root ($PLUGKEEPER_INSTALL_DIR or ~/.vim/pack/plugkeeper):
        - build-info.json : State of the last build
        - opt/            : One flat-named directory per installed repository
"""

import os
from pathlib import Path

DATA_DIR_ENV = "PLUGKEEPER_HOME"
INSTALL_DIR_ENV = "PLUGKEEPER_INSTALL_DIR"


class DirectoryError(Exception):
    """Base exception for directory-related errors."""

    pass


def get_home_dir() -> Path:
    """
    Get the current user's home directory.

    Returns:
        Path: $HOME, or %USERPROFILE% on Windows

    Raises:
        DirectoryError: If neither variable is set
    """
    home = os.environ.get("HOME") or os.environ.get("USERPROFILE")
    if not home:
        raise DirectoryError(
            "Neither HOME nor USERPROFILE is set. "
            "Cannot determine the plugkeeper data directory."
        )
    return Path(home)


def get_data_dir() -> Path:
    """
    Get the data root holding lock.json, config.toml, repos/ and trx/.

    Returns:
        Path: $PLUGKEEPER_HOME if set, otherwise ~/plugkeeper

    Example:
        >>> get_data_dir()
        PosixPath('/home/user/plugkeeper')
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override)
    return get_home_dir() / "plugkeeper"


def get_vim_dir() -> Path:
    """Get the user's Vim directory (~/.vim, or ~/vimfiles on Windows)."""
    if os.name == "nt":
        return get_home_dir() / "vimfiles"
    return get_home_dir() / ".vim"


def get_install_dir() -> Path:
    """
    Get the install root the build step populates.

    Returns:
        Path: $PLUGKEEPER_INSTALL_DIR if set, otherwise {vim dir}/pack/plugkeeper
    """
    override = os.environ.get(INSTALL_DIR_ENV)
    if override:
        return Path(override)
    return get_vim_dir() / "pack" / "plugkeeper"


def get_opt_dir() -> Path:
    """Get the directory holding one flat-named directory per installed repository."""
    return get_install_dir() / "opt"


def get_repos_dir() -> Path:
    """Get the directory holding cloned sources."""
    return get_data_dir() / "repos"


def get_trx_dir() -> Path:
    """Get the transaction log root."""
    return get_data_dir() / "trx"


def get_lock_manifest_path() -> Path:
    """Get the path of lock.json."""
    return get_data_dir() / "lock.json"


def get_config_path() -> Path:
    """Get the path of config.toml."""
    return get_data_dir() / "config.toml"


def get_build_info_path() -> Path:
    """Get the path of build-info.json."""
    return get_install_dir() / "build-info.json"


__all__ = [
    "DATA_DIR_ENV",
    "INSTALL_DIR_ENV",
    "DirectoryError",
    "get_home_dir",
    "get_data_dir",
    "get_vim_dir",
    "get_install_dir",
    "get_opt_dir",
    "get_repos_dir",
    "get_trx_dir",
    "get_lock_manifest_path",
    "get_config_path",
    "get_build_info_path",
]
