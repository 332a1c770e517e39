"""
Pytest configuration and shared fixtures for plugkeeper tests.
"""

import pytest
import tempfile
from pathlib import Path
from typing import Generator

# Import test fixtures to make them available to all tests
# These imports register the fixtures with pytest's fixture discovery system
# ruff: noqa: F401
from tests.fixtures.directories import (
    mock_data_dir,
    mock_data_dir_with_manifest,
    legacy_lock_manifest,
    mock_install_dir,
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that spawn processes or run a full workflow",
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake_home = temp_dir / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))
    monkeypatch.delenv("PLUGKEEPER_HOME", raising=False)
    monkeypatch.delenv("PLUGKEEPER_INSTALL_DIR", raising=False)

    return fake_home


@pytest.fixture
def plugkeeper_env(temp_dir: Path, monkeypatch) -> Path:
    """
    Point both plugkeeper roots into a temporary directory.

    Returns:
        The temporary directory; the data root is ``data/`` and the
        install root is ``install/`` below it
    """
    monkeypatch.setenv("PLUGKEEPER_HOME", str(temp_dir / "data"))
    monkeypatch.setenv("PLUGKEEPER_INSTALL_DIR", str(temp_dir / "install"))
    return temp_dir
