"""
Shared pytest fixtures and configuration for osprey tests.

This module provides:
- structlog reset between tests (CliRunner closes the streams loggers bind to)
- A migrations directory factory writing numbered, tagged ``.sql`` files
- An in-memory SQLite adapter with real transactional behaviour

Usage:
    def test_something(write_migration, migrations_dir, sqlite_adapter):
        write_migration("001_init.sql", "-- tag: up\\nCREATE TABLE t (id INT);\\n")
"""

import logging
import sys
import textwrap
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import structlog

# Ensure osprey package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from osprey.core.adapters import SQLiteAdapter


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Logging Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo ``configure_logging`` and bound contextvars after every test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.getLogger().handlers.clear()


# =============================================================================
# Migration Directory Fixtures
# =============================================================================


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    """Empty migrations directory."""
    d = tmp_path / "migrations"
    d.mkdir()
    return d


@pytest.fixture
def write_migration(migrations_dir: Path) -> Callable[[str, str], Path]:
    """Write a dedented migration file into ``migrations_dir``."""

    def _write(name: str, body: str) -> Path:
        path = migrations_dir / name
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    return _write


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def sqlite_adapter() -> Generator[SQLiteAdapter, None, None]:
    """Connected in-memory SQLite adapter."""
    adapter = SQLiteAdapter(":memory:")
    adapter.connect()
    yield adapter
    adapter.disconnect()

