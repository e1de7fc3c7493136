"""Fingerprints and identifiers for stored records.

Fingerprints are 128 bit MD5 digests over a canonical JSON rendering of a
value (keys sorted, no insignificant whitespace), so two structurally equal
values always share a fingerprint regardless of key insertion order.

Example:
    >>> from featurestore.utils import hashing
    >>> hashing.fingerprint({"b": 1, "a": 2}) == hashing.fingerprint(
    ...     {"a": 2, "b": 1}
    ... )
    True
    >>> fid = hashing.new_fid()  # e.g. "0f8c4c0e-3c1f-4ad6-9c5b-..."
"""

from __future__ import annotations

import hashlib
import json
import uuid
from typing import Any


def canonical_json(value: Any) -> str:
    """Render a value as deterministic JSON text."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def fingerprint(value: Any) -> str:
    """Return the MD5 hex digest of a JSON-compatible value.

    Args:
        value: Any JSON-serialisable structure (dicts, lists, scalars).

    Returns:
        32 character lowercase hexadecimal digest.

    Raises:
        TypeError: If the value contains objects JSON cannot represent.
        ValueError: If the value contains NaN or infinite floats.
    """
    return hashlib.md5(canonical_json(value).encode("utf-8")).hexdigest()


def new_fid() -> str:
    """Create a random RFC 4122 version 4 identifier."""
    return str(uuid.uuid4())
