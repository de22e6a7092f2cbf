"""
Structured error types for the osprey migration engine.

Every failure the engine can report has its own type. Each error carries a
category for routing, a structured context (which file, which tag, which line)
and the chained driver exception that caused it, so the CLI can print a precise
message and pick a distinct exit code without string matching.

Manifesto:
    - **Typed Error Hierarchy:** Pre-flight failures (parse, sanity, missing tag)
      are distinguishable from apply-time failures (execution, ledger write)
    - **No Retries:** Nothing in the engine retries; a retry policy belongs to
      whoever invokes it
    - **Rich Context:** Errors carry identifier/tag/path/line for logging
    - **Error Chaining:** Driver exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                         OspreyError                              │
        │                 (category, context, cause, exit_code)           │
        ├─────────────────────────────────────────────────────────────────┤
        │  Pre-flight                    │  Apply-time                     │
        │  ──────────                    │  ──────────                     │
        │  ConfigError        (2)        │  DatabaseConnectionError (6)    │
        │  ParseError         (3)        │  QueryError                     │
        │  SanityError        (4)        │  ExecutionError          (7)    │
        │  TagMissingError    (5)        │  WriteError              (8)    │
        │                                │  RunCancelledError     (130)    │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> err = ParseError("No query given for tag", line=4)
    >>> err.with_context(identifier="001", path="migrations/001_init.sql")
    ParseError('No query given for tag', category=PARSE)
    >>> err.exit_code
    3

Tags:
    error-handling, exception-hierarchy, exit-codes, osprey

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from osprey.core.migrations.sanity import ReconciliationRecord


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories follow the engine's control flow: configuration and parsing
    happen first, then the sanity gate and planning, then execution against
    the backing store.
    """

    CONFIG = "CONFIG"
    PARSE = "PARSE"
    SANITY = "SANITY"
    PLAN = "PLAN"
    DATABASE = "DATABASE"
    EXECUTION = "EXECUTION"
    LEDGER = "LEDGER"
    CANCELLED = "CANCELLED"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        identifier: Migration identifier (``"001"``)
        tag: Tag that was being parsed or executed
        path: Path of the migration file
        line: 1-based line number for parse errors
        metadata: Additional key-value pairs
    """

    identifier: str | None = None
    tag: str | None = None
    path: str | None = None
    line: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["identifier", "tag", "path", "line"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OspreyError(Exception):
    """
    Base exception for all osprey errors.

    Subclasses set ``default_category`` and ``exit_code``. The CLI maps any
    ``OspreyError`` to ``exit_code`` so a deployment script can tell a drifted
    ledger from a broken statement.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OspreyError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ParseError("Could not parse tag name").with_context(
                identifier="001", path="migrations/001_init.sql"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "exit_code": self.exit_code,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# PRE-FLIGHT ERRORS (nothing has executed)
# =============================================================================


class ConfigError(OspreyError):
    """Invalid option, setting, or migrations directory."""

    default_category = ErrorCategory.CONFIG
    exit_code = 2


class ParseError(OspreyError):
    """
    Malformed migration file, tag marker, or identifier.

    ``line`` is 1-based and refers to the line of the file where the
    parser gave up.
    """

    default_category = ErrorCategory.PARSE
    exit_code = 3

    def __init__(self, message: str, *, line: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        if line is not None:
            self.context.line = line

    @property
    def line(self) -> int | None:
        return self.context.line

    def __str__(self) -> str:
        parts = []
        if self.context.path:
            parts.append(self.context.path)
        if self.context.line is not None:
            parts.append(f"line {self.context.line}")
        prefix = ":".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message


class SanityError(OspreyError):
    """
    The ledger and the migrations directory disagree.

    Raised by the sanity gate before any statement runs. ``records`` holds
    every offending reconciliation record, not just the first one.
    """

    default_category = ErrorCategory.SANITY
    exit_code = 4

    def __init__(
        self,
        message: str,
        *,
        records: Sequence[ReconciliationRecord] = (),
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.records = list(records)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["records"] = [
            {"identifier": r.identifier, "status": r.status.value, "detail": r.detail}
            for r in self.records
        ]
        return result


class TagMissingError(OspreyError):
    """A file selected to run does not define the requested tag."""

    default_category = ErrorCategory.PLAN
    exit_code = 5

    def __init__(self, tag: str, identifiers: Iterable[str], message: str | None = None):
        self.tag = tag
        self.identifiers = list(identifiers)
        super().__init__(
            message
            or f"Tag '{tag}' is not defined in pending file(s): {', '.join(self.identifiers)}",
            context=ErrorContext(tag=tag),
        )


# =============================================================================
# APPLY-TIME ERRORS
# =============================================================================


class DatabaseConnectionError(OspreyError):
    """Backing store unreachable."""

    default_category = ErrorCategory.DATABASE
    exit_code = 6


class QueryError(OspreyError):
    """A driver error raised while executing SQL through an adapter."""

    default_category = ErrorCategory.DATABASE


class ExecutionError(OspreyError):
    """
    A migration statement failed at apply time.

    ``compensated`` reports whether the file's compensating tag ran and
    committed. ``compensation_error`` holds the failure of the compensating
    statement itself, if it also failed.
    """

    default_category = ErrorCategory.EXECUTION
    exit_code = 7

    def __init__(
        self,
        message: str,
        *,
        identifier: str,
        tag: str,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.identifier = identifier
        self.tag = tag
        self.compensated = False
        self.compensation_error: Exception | None = None
        self.context.identifier = identifier
        self.context.tag = tag

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["compensated"] = self.compensated
        if self.compensation_error is not None:
            result["compensation_error"] = str(self.compensation_error)
        return result


class WriteError(OspreyError):
    """
    The ledger could not be written after a statement succeeded.

    The atomic unit is rolled back, but a backing store that cannot put the
    statement and the ledger row in one transaction may keep the statement's
    effects without a matching ledger entry.
    """

    default_category = ErrorCategory.LEDGER
    exit_code = 8

    WARNING = (
        "statement effects may be applied without a matching ledger entry; "
        "inspect the database before re-running"
    )


class RunCancelledError(OspreyError):
    """Cancellation was requested; honoured between files."""

    default_category = ErrorCategory.CANCELLED
    exit_code = 130


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "OspreyError",
    "ConfigError",
    "ParseError",
    "SanityError",
    "TagMissingError",
    "DatabaseConnectionError",
    "QueryError",
    "ExecutionError",
    "WriteError",
    "RunCancelledError",
]
