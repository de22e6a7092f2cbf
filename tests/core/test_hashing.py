"""Tests for ``osprey.core.hashing`` - statement fingerprints."""

import hashlib

from osprey.core.hashing import fingerprint


class TestFingerprint:
    def test_deterministic(self):
        assert fingerprint("DROP TABLE t;") == fingerprint("DROP TABLE t;")

    def test_whitespace_is_drift(self):
        assert fingerprint("DROP TABLE t;") != fingerprint("DROP TABLE  t;")

    def test_case_is_drift(self):
        assert fingerprint("DROP TABLE t;") != fingerprint("drop table t;")

    def test_is_full_sha256_hex(self):
        digest = fingerprint("DROP TABLE t;")
        assert digest == hashlib.sha256(b"DROP TABLE t;").hexdigest()
        assert len(digest) == 64

    def test_non_ascii_text(self):
        text = "INSERT INTO t VALUES ('café');"
        assert fingerprint(text) == hashlib.sha256(text.encode("utf-8")).hexdigest()
