"""
Tagged SQL migration files.

A migration file is plain SQL partitioned into named sections by comment
markers. Each section holds one or more statements; a statement ends on a
line ending in ``;``::

    -- tag: up
    CREATE TABLE t (
        id INTEGER PRIMARY KEY
    );
    CREATE INDEX t_id ON t (id);

    -- tag: down
    DROP TABLE t;

Statement text is opaque: the parser only finds section and statement
boundaries, it never interprets SQL. Comments between statements are
allowed; a comment inside an unfinished statement is an error.

The identifier is the leading run of digits in the filename
(``001_init.sql`` -> ``"001"``) and files are ordered by its numeric value.

Examples:
    >>> sections = parse_sections("-- tag: up\\nCREATE TABLE t (id INT);\\n")
    >>> list(sections)
    ['up']
    >>> sections["up"].statements
    ('CREATE TABLE t (id INT);',)

Tags:
    parser, migrations, sql, tags, osprey
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path

from osprey.core.errors import ParseError
from osprey.core.hashing import fingerprint

TAG_MARKER = "tag:"
COMMENT_PREFIX = "--"

_TAG_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")
_IDENTIFIER = re.compile(r"^(\d+)")


class SyntaxErrorMessage(str, Enum):
    """Reasons a migration file fails to parse."""

    STATEMENT_WITHOUT_TAG = "Statement defined without tag name"
    TAG_INSIDE_STATEMENT = "Tag name defined without completing previous statement"
    NO_STATEMENT_FOR_TAG = "No statement given for tag"
    MALFORMED_TAG = "Could not parse tag name"
    DUPLICATE_TAG = "Tag defined more than once in the same file"
    COMMENT_INSIDE_STATEMENT = "Comment found while defining statement"
    UNFINISHED_STATEMENT = "End of file found: unfinished statement"
    NO_STATEMENTS = "No statements found"

    def error(self, line: int, detail: str | None = None) -> ParseError:
        message = f"{self.value}: {detail}" if detail else self.value
        return ParseError(message, line=line)


@dataclass(frozen=True)
class TagSection:
    """The statements defined under one tag marker."""

    name: str
    statements: tuple[str, ...]
    line: int = 0

    @property
    def text(self) -> str:
        return "\n".join(self.statements)

    @cached_property
    def fingerprint(self) -> str:
        return fingerprint(self.text)


@dataclass(frozen=True)
class MigrationFile:
    """
    One parsed migration file.

    Built fresh on every run from the directory, never cached. ``sections``
    preserves the order tags appear in the file.
    """

    identifier: str
    ordinal: int
    path: Path
    content: str = field(repr=False, compare=False)
    sections: Mapping[str, TagSection] = field(repr=False, compare=False, default_factory=dict)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self.sections)

    def has_tag(self, tag: str) -> bool:
        return tag in self.sections

    def section(self, tag: str) -> TagSection | None:
        return self.sections.get(tag)

    def fingerprint(self, tag: str) -> str | None:
        """Fingerprint of ``tag``'s statements, or None if the tag is not defined."""
        section = self.sections.get(tag)
        return section.fingerprint if section else None

    @classmethod
    def from_string(cls, path: Path | str, text: str) -> MigrationFile:
        """Parse ``text`` as the content of the file at ``path``."""
        path = Path(path)
        identifier, ordinal = derive_identifier(path)
        try:
            sections = parse_sections(text)
        except ParseError as e:
            raise e.with_context(identifier=identifier, path=str(path))
        return cls(
            identifier=identifier,
            ordinal=ordinal,
            path=path,
            content=text,
            sections=sections,
        )

    @classmethod
    def from_path(cls, path: Path | str) -> MigrationFile:
        """Read and parse a migration file from disk."""
        path = Path(path)
        try:
            text = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"Could not read file: {e}", cause=e).with_context(path=str(path)) from e
        return cls.from_string(path, text)


def derive_identifier(path: Path | str) -> tuple[str, int]:
    """
    Extract the identifier from a migration filename.

    Returns the identifier as written (``"001"``) and its numeric value,
    which defines the ordering.

    Raises:
        ParseError: If the filename stem does not start with digits.
    """
    path = Path(path)
    match = _IDENTIFIER.match(path.stem)
    if not match:
        raise ParseError(
            f"Could not derive an identifier from filename '{path.name}' "
            "(expected a leading number, e.g. 001_init.sql)"
        ).with_context(path=str(path))
    digits = match.group(1)
    return digits, int(digits)


def parse_sections(text: str) -> dict[str, TagSection]:
    """
    Split file content into an ordered ``tag -> TagSection`` mapping.

    Raises:
        ParseError: On any marker or statement boundary problem; the error
            carries the 1-based line number.
    """
    sections: dict[str, TagSection] = {}
    tag: str | None = None
    tag_line = 0
    statements: list[str] = []
    pending: list[str] = []

    def close_section() -> None:
        if tag is None:
            return
        if not statements:
            raise SyntaxErrorMessage.NO_STATEMENT_FOR_TAG.error(tag_line, tag)
        sections[tag] = TagSection(name=tag, statements=tuple(statements), line=tag_line)

    # Only "\n" ends a line.
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()

    lineno = 0
    for lineno, raw in enumerate(lines, start=1):
        raw = raw.removesuffix("\r")
        line = raw.strip()
        if not line:
            continue

        if line.startswith(COMMENT_PREFIX):
            if TAG_MARKER not in line:
                if pending:
                    raise SyntaxErrorMessage.COMMENT_INSIDE_STATEMENT.error(lineno)
                continue

            if pending:
                raise SyntaxErrorMessage.TAG_INSIDE_STATEMENT.error(lineno)
            close_section()

            name = line.split(TAG_MARKER, 1)[1].strip()
            if not name or not _TAG_NAME.match(name):
                raise SyntaxErrorMessage.MALFORMED_TAG.error(lineno, repr(name) if name else None)
            if name in sections:
                raise SyntaxErrorMessage.DUPLICATE_TAG.error(lineno, name)

            tag, tag_line, statements = name, lineno, []
            continue

        if tag is None:
            raise SyntaxErrorMessage.STATEMENT_WITHOUT_TAG.error(lineno)

        pending.append(raw)
        if line.endswith(";"):
            statements.append("\n".join(pending))
            pending = []

    if pending:
        raise SyntaxErrorMessage.UNFINISHED_STATEMENT.error(lineno)
    if tag is None:
        raise SyntaxErrorMessage.NO_STATEMENTS.error(lineno)
    close_section()
    return sections


__all__ = [
    "TAG_MARKER",
    "SyntaxErrorMessage",
    "TagSection",
    "MigrationFile",
    "derive_identifier",
    "parse_sections",
]
