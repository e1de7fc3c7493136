"""Tests for record fingerprints and identifiers."""

from __future__ import annotations

import hashlib
import math
import uuid

import pytest

from featurestore.utils import hashing


def test_canonical_json_sorts_keys_without_whitespace() -> None:
    assert hashing.canonical_json({"b": [1, 2], "a": "é"}) == '{"a":"é","b":[1,2]}'


def test_fingerprint_is_md5_of_canonical_json() -> None:
    expected = hashlib.md5(b'{"iso":"BRA","kind":"country"}').hexdigest()
    assert hashing.fingerprint({"kind": "country", "iso": "BRA"}) == expected


def test_fingerprint_ignores_key_order() -> None:
    left = {"a": {"x": 1, "y": 2}, "b": None}
    right = {"b": None, "a": {"y": 2, "x": 1}}
    assert hashing.fingerprint(left) == hashing.fingerprint(right)


def test_fingerprint_distinguishes_values() -> None:
    assert hashing.fingerprint({"n": 1}) != hashing.fingerprint({"n": "1"})


def test_fingerprint_rejects_nan() -> None:
    with pytest.raises(ValueError):
        hashing.fingerprint({"n": math.nan})


def test_new_fid_is_unique_uuid4() -> None:
    fids = {hashing.new_fid() for _ in range(50)}
    assert len(fids) == 50
    assert all(uuid.UUID(fid).version == 4 for fid in fids)
