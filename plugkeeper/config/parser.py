"""TOML configuration parser for plugkeeper.

This module reads config.toml from the data directory. Every key is optional:
missing keys take their default value, and a missing file yields the default
configuration.

Example config.toml:

    [build]
    strategy = "copy"

    [get]
    create_skeleton_plugconf = false
    fallback_git_cmd = true

    [edit]
    editor = "nvim"
"""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from plugkeeper.core.directory import get_config_path
from plugkeeper.core.exceptions import ConfigError, ParseError
from plugkeeper.core.filesystem import exists

logger = logging.getLogger(__name__)

SYMLINK_STRATEGY = "symlink"
COPY_STRATEGY = "copy"
STRATEGIES = (SYMLINK_STRATEGY, COPY_STRATEGY)


@dataclass
class BuildConfig:
    """Build step configuration."""

    strategy: str = SYMLINK_STRATEGY  # 'symlink' or 'copy'


@dataclass
class GetConfig:
    """Repository retrieval configuration."""

    create_skeleton_plugconf: bool = True
    fallback_git_cmd: bool = True


@dataclass
class EditConfig:
    """Editor used to open plugconf files."""

    editor: Optional[str] = None


@dataclass
class PlugkeeperConfig:
    """Complete plugkeeper configuration."""

    build: BuildConfig = field(default_factory=BuildConfig)
    get: GetConfig = field(default_factory=GetConfig)
    edit: EditConfig = field(default_factory=EditConfig)


def load_config(config_path: Optional[Path] = None) -> PlugkeeperConfig:
    """
    Load config.toml, filling in defaults.

    Args:
        config_path: Path to config.toml (default: {data}/config.toml)

    Returns:
        Parsed and validated configuration

    Raises:
        ParseError: If the file is not valid TOML
        ConfigError: If a value is invalid
    """
    if config_path is None:
        config_path = get_config_path()
    config_path = Path(config_path)

    if not exists(config_path):
        logger.debug(f"Config file not found, using defaults: {config_path}")
        return PlugkeeperConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ParseError(config_path, f"invalid TOML syntax: {e}") from e

    config = _parse_and_validate(data)
    logger.debug(f"Loaded config: {config_path}")
    return config


def _parse_and_validate(data: dict) -> PlugkeeperConfig:
    """Parse and validate configuration data."""
    build_data = _section(data, "build")
    get_data = _section(data, "get")
    edit_data = _section(data, "edit")

    strategy = _value(build_data, "build", "strategy", str, SYMLINK_STRATEGY)
    if strategy not in STRATEGIES:
        raise ConfigError(
            f"build.strategy is {strategy!r}: valid values are "
            f"{SYMLINK_STRATEGY!r} or {COPY_STRATEGY!r}"
        )

    return PlugkeeperConfig(
        build=BuildConfig(strategy=strategy),
        get=GetConfig(
            create_skeleton_plugconf=_value(
                get_data, "get", "create_skeleton_plugconf", bool, True
            ),
            fallback_git_cmd=_value(get_data, "get", "fallback_git_cmd", bool, True),
        ),
        edit=EditConfig(editor=_value(edit_data, "edit", "editor", str, None)),
    )


def _section(data: dict, name: str) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _value(section: dict, section_name: str, key: str, expected: type, default):
    if key not in section:
        return default
    value = section[key]
    if not isinstance(value, expected):
        raise ConfigError(
            f"{section_name}.{key} must be {expected.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


__all__ = [
    "SYMLINK_STRATEGY",
    "COPY_STRATEGY",
    "STRATEGIES",
    "BuildConfig",
    "GetConfig",
    "EditConfig",
    "PlugkeeperConfig",
    "load_config",
    "ConfigError",
]
