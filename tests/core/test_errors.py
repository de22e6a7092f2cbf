"""Tests for ``osprey.core.errors`` - typed error hierarchy and exit codes."""

from __future__ import annotations

import pytest

from osprey.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    ErrorCategory,
    ErrorContext,
    ExecutionError,
    OspreyError,
    ParseError,
    QueryError,
    RunCancelledError,
    SanityError,
    TagMissingError,
    WriteError,
)
from osprey.core.migrations.sanity import ReconciliationRecord, ReconciliationStatus


class TestErrorContext:
    def test_empty_to_dict(self):
        assert ErrorContext().to_dict() == {}

    def test_to_dict_skips_none_and_merges_metadata(self):
        ctx = ErrorContext(identifier="001", tag="up", metadata={"statement": 2})
        assert ctx.to_dict() == {"identifier": "001", "tag": "up", "statement": 2}


class TestOspreyError:
    def test_defaults(self):
        err = OspreyError("boom")
        assert err.message == "boom"
        assert err.category is ErrorCategory.INTERNAL
        assert err.exit_code == 1
        assert err.cause is None

    def test_cause_is_chained(self):
        cause = RuntimeError("driver")
        err = OspreyError("wrapped", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "driver"

    def test_with_context_sets_known_fields_and_metadata(self):
        err = OspreyError("x").with_context(identifier="002", path="m/002.sql", run="abc")
        assert err.context.identifier == "002"
        assert err.context.path == "m/002.sql"
        assert err.context.metadata == {"run": "abc"}

    def test_to_dict(self):
        d = ConfigError("bad").with_context(path="./migrations/").to_dict()
        assert d["error_type"] == "ConfigError"
        assert d["category"] == "CONFIG"
        assert d["exit_code"] == 2
        assert d["context"] == {"path": "./migrations/"}

    def test_repr(self):
        assert repr(ParseError("oops")) == "ParseError('oops', category=PARSE)"


class TestExitCodes:
    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (ConfigError("x"), 2),
            (ParseError("x"), 3),
            (SanityError("x"), 4),
            (TagMissingError("seed", ["001"]), 5),
            (DatabaseConnectionError("x"), 6),
            (ExecutionError("x", identifier="001", tag="up"), 7),
            (WriteError("x"), 8),
            (RunCancelledError("x"), 130),
            (QueryError("x"), 1),
        ],
    )
    def test_distinct_exit_codes(self, error, code):
        assert error.exit_code == code

    def test_all_are_osprey_errors(self):
        for cls in (ConfigError, ParseError, SanityError, QueryError, WriteError):
            assert issubclass(cls, OspreyError)


class TestParseError:
    def test_line_number(self):
        err = ParseError("No statement given for tag", line=4)
        assert err.line == 4

    def test_str_includes_path_and_line(self):
        err = ParseError("Could not parse tag name", line=7).with_context(path="m/001_init.sql")
        assert str(err) == "m/001_init.sql:line 7: Could not parse tag name"

    def test_str_without_location(self):
        assert str(ParseError("No statements found")) == "No statements found"


class TestSanityError:
    def test_records_in_to_dict(self):
        record = ReconciliationRecord(
            "001", ReconciliationStatus.APPLIED_DRIFTED, detail="tag 'up' changed"
        )
        err = SanityError("drift", records=[record])
        assert err.records == [record]
        assert err.to_dict()["records"] == [
            {"identifier": "001", "status": "applied-drifted", "detail": "tag 'up' changed"}
        ]


class TestTagMissingError:
    def test_message_lists_identifiers(self):
        err = TagMissingError("seed", ["002", "003"])
        assert err.tag == "seed"
        assert err.identifiers == ["002", "003"]
        assert "002, 003" in err.message
        assert err.context.tag == "seed"


class TestExecutionError:
    def test_context_and_compensation_flags(self):
        err = ExecutionError("failed", identifier="002", tag="up")
        assert err.context.identifier == "002"
        assert err.context.tag == "up"
        assert err.compensated is False
        assert err.compensation_error is None
        assert err.to_dict()["compensated"] is False

    def test_compensation_error_in_to_dict(self):
        err = ExecutionError("failed", identifier="002", tag="up")
        err.compensation_error = QueryError("down failed too")
        assert err.to_dict()["compensation_error"] == "down failed too"


class TestWriteError:
    def test_warning_mentions_ledger(self):
        assert "ledger entry" in WriteError.WARNING
