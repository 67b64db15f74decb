"""Text helpers shared by the GTFS loader and exporter.

All functions are pure except the StringInterner, whose table lives only as
long as the load that owns it.
"""

from __future__ import annotations

import hashlib
import random
import re
import string
from pathlib import Path

_UNSAFE_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_]")
_NAMESPACE_LENGTH = 12
_HASH_CHUNK_SIZE = 1024 * 1024


# ---------------------------------------------------------------------------
# trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str:
    """Strip leading/trailing whitespace; None becomes the empty string."""
    if value is None:
        return ""
    return value.strip()


# ---------------------------------------------------------------------------
# SQL identifiers
# ---------------------------------------------------------------------------

def sanitize_identifier(value: str) -> str:
    """Drop every character that is not a letter, digit or underscore.

    Column names come straight from feed headers and end up in DDL, so they
    are reduced to a conservative identifier alphabet.
    """
    return _UNSAFE_IDENTIFIER_CHARS.sub("", value)


def random_namespace() -> str:
    """Return a random lowercase schema name for one loaded feed."""
    return "".join(random.choices(string.ascii_lowercase, k=_NAMESPACE_LENGTH))


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------

def file_hashes(path: Path) -> tuple[str, str]:
    """Return (md5_hex, sha1_hex) of the file at *path*."""
    md5 = hashlib.md5()
    sha1 = hashlib.sha1()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_HASH_CHUNK_SIZE), b""):
            md5.update(chunk)
            sha1.update(chunk)
    return md5.hexdigest(), sha1.hexdigest()


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------

def human_count(n: int) -> str:
    """Format a large row count for log lines: 1500000 -> '1.5M'."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}k"
    return str(n)


# ---------------------------------------------------------------------------
# String interning
# ---------------------------------------------------------------------------

class StringInterner:
    """Deduplicate repeated string values within one load.

    GTFS files repeat the same ids millions of times (trip_id in stop_times,
    service_id in trips). Returning the first-seen instance keeps one copy of
    each distinct value alive for the length of the load.
    """

    def __init__(self) -> None:
        self._table: dict[str, str] = {}

    def intern(self, value: str) -> str:
        return self._table.setdefault(value, value)

    def __len__(self) -> int:
        return len(self._table)

    def clear(self) -> None:
        self._table.clear()
