"""Test fixtures for plugkeeper tests.

This package provides reusable pytest fixtures for testing plugkeeper components:

- directories: Data and install roots, with and without a lock.json

Import fixtures in your tests using:
    from tests.fixtures.directories import mock_data_dir
"""

__all__ = [
    "directories",
]
