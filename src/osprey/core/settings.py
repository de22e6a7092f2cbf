"""Environment-driven settings for osprey.

Two settings classes are read from the environment (and a ``.env`` file):

- ``PostgresSettings`` keeps the ``POSTGRES_HOST`` / ``POSTGRES_USER`` /
  ``POSTGRES_PASSWORD`` / ``POSTGRES_DB`` contract deployments already use.
- ``OspreySettings`` (``OSPREY_`` prefix) carries the engine defaults that
  the CLI options override.

Examples:
    >>> import os
    >>> os.environ["OSPREY_BACKEND"] = "sqlite"
    >>> OspreySettings().backend
    'sqlite'

Tags:
    settings, configuration, pydantic, environment, osprey
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def validate_table_name(value: str) -> str:
    """Reject anything that is not a plain (optionally schema-qualified) identifier."""
    if not _TABLE_NAME.match(value):
        raise ValueError(f"invalid ledger table name: {value!r}")
    return value


class PostgresSettings(BaseSettings):
    """Connection parameters for the PostgreSQL backend."""

    model_config = SettingsConfigDict(
        env_prefix="POSTGRES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: SecretStr = SecretStr("postgres")
    db: str = "postgres"
    connect_timeout: int = 10


class OspreySettings(BaseSettings):
    """Engine defaults.

    Fields
    ──────
    backend               : ``postgresql`` or ``sqlite``
    sqlite_path           : Database file for the sqlite backend
    migrations_directory  : Directory scanned for ``*.sql`` files
    migrations_table      : Ledger table name
    tag                   : Tag applied by ``migrate``
    compensate_tag        : Tag run when the applied tag fails
    log_level             : structlog level
    json_logs             : JSON log lines; unset means "JSON unless a TTY"
    """

    model_config = SettingsConfigDict(
        env_prefix="OSPREY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: Literal["postgresql", "sqlite"] = "postgresql"
    sqlite_path: Path = Path("osprey.db")

    migrations_directory: Path = Field(
        default=Path("./migrations/"),
        description="Directory containing tagged *.sql migration files",
    )
    migrations_table: str = "_migrations"
    tag: str = "up"
    compensate_tag: str = "down"

    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("migrations_table")
    @classmethod
    def _check_table_name(cls, value: str) -> str:
        return validate_table_name(value)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


__all__ = [
    "PostgresSettings",
    "OspreySettings",
    "validate_table_name",
]
