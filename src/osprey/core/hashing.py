"""
Deterministic fingerprints for drift detection.

A fingerprint is the SHA-256 of a tag's statement text, taken when the tag
is applied and stored in the ledger. On every later run the sanity gate
recomputes it from the file on disk; any difference means the file was
edited after it was applied.

Manifesto:
    - **Deterministic:** Same text always produces the same fingerprint
    - **Byte-exact:** Whitespace and case changes are drift too
    - **Full digest:** All 64 hex characters are stored and compared

Examples:
    >>> fingerprint("CREATE TABLE t (id INT);") == fingerprint("CREATE TABLE t (id INT);")
    True
    >>> fingerprint("CREATE TABLE t (id INT);") == fingerprint("create table t (id int);")
    False

Tags:
    hashing, fingerprint, drift-detection, osprey
"""

import hashlib


def fingerprint(statement_text: str) -> str:
    """Lower-case SHA-256 hex digest of a tag's statement text, as stored in the ledger."""
    return hashlib.sha256(statement_text.encode("utf-8")).hexdigest()


__all__ = [
    "fingerprint",
]
