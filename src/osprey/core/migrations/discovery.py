"""Migration file discovery.

``MigrationDirectory`` is a restartable, lazy view over a directory of
``*.sql`` files. Each iteration rescans the directory, checks identifiers for
collisions, sorts by identifier and then parses files one at a time as they
are consumed. Nothing is cached between iterations: the directory is the
source of truth on every run.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from osprey.core.errors import ConfigError, ParseError
from osprey.core.logging import get_logger

from .sql_file import MigrationFile, derive_identifier

logger = get_logger(__name__)

SQL_EXTENSION = ".sql"


class MigrationDirectory:
    """
    Ordered, lazily parsed migration files of one directory.

    Example::

        directory = MigrationDirectory("./migrations/")
        for migration in directory:
            print(migration.identifier, migration.tags)
    """

    def __init__(self, path: Path | str, *, extension: str = SQL_EXTENSION) -> None:
        self._path = Path(path)
        self._extension = extension

    @property
    def path(self) -> Path:
        return self._path

    def __iter__(self) -> Iterator[MigrationFile]:
        for path in self.paths():
            yield MigrationFile.from_path(path)

    def __repr__(self) -> str:
        return f"MigrationDirectory({str(self._path)!r})"

    def load(self) -> list[MigrationFile]:
        """Parse every file now and return them in identifier order."""
        files = list(self)
        logger.debug("discovery.loaded", directory=str(self._path), count=len(files))
        return files

    def paths(self) -> list[Path]:
        """
        Return migration file paths sorted by identifier.

        Raises:
            ConfigError: If the path is not a directory.
            ParseError: If an identifier cannot be derived or two files share one.
        """
        if not self._path.is_dir():
            raise ConfigError(f"Migrations path is not a directory: {self._path}")

        by_ordinal: dict[int, Path] = {}
        for path in self._path.iterdir():
            if not path.is_file() or path.suffix != self._extension:
                continue
            identifier, ordinal = derive_identifier(path)
            existing = by_ordinal.get(ordinal)
            if existing is not None:
                first, second = sorted([existing.name, path.name])
                raise ParseError(
                    f"Identifier {identifier} is used by more than one file: {first}, {second}"
                ).with_context(identifier=identifier, path=str(path))
            by_ordinal[ordinal] = path

        return [by_ordinal[ordinal] for ordinal in sorted(by_ordinal)]


__all__ = [
    "SQL_EXTENSION",
    "MigrationDirectory",
]
