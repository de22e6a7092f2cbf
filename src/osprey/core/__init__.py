"""
Osprey core primitives.

Errors, structured logging, settings, database adapters and the migration
engine. Import from the submodules directly::

    from osprey.core.adapters import SQLiteAdapter
    from osprey.core.migrations import MigrationRunner
"""

from osprey.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    ExecutionError,
    OspreyError,
    ParseError,
    RunCancelledError,
    SanityError,
    TagMissingError,
    WriteError,
)

__all__ = [
    "OspreyError",
    "ConfigError",
    "ParseError",
    "SanityError",
    "TagMissingError",
    "DatabaseConnectionError",
    "ExecutionError",
    "WriteError",
    "RunCancelledError",
]
