"""Dotted-path access into nested dicts and lists.

Paths are dot separated keys; numeric segments index into lists, so
``"features.0.properties.fid"`` addresses the fid of the first feature.
set_value never mutates its input and returns an updated deep copy.

Example:
    >>> from featurestore.utils import paths
    >>> doc = {"meta": {"version": "1.0.0"}, "tags": ["a", "b"]}
    >>> paths.get_value(doc, "tags.1")
    'b'
    >>> paths.set_value(doc, "meta.version", "1.1.0")["meta"]
    {'version': '1.1.0'}
"""

from __future__ import annotations

import copy
from typing import Any


def split_path(path: str | list[str]) -> list[str]:
    """Split a dotted path into its segments."""
    segments = path.split(".") if isinstance(path, str) else list(path)
    if not segments or any(segment == "" for segment in segments):
        raise ValueError(f"Invalid property path: {path!r}")
    return segments


def _step(node: Any, segment: str) -> Any:
    if isinstance(node, list):
        return node[int(segment)]
    return node[segment]


def get_value(obj: Any, path: str | list[str], default: Any = None) -> Any:
    """Return the value at ``path`` or ``default`` when any segment is missing."""
    node = obj
    for segment in split_path(path):
        try:
            node = _step(node, segment)
        except (KeyError, IndexError, TypeError, ValueError):
            return default
    return node


def set_value(obj: Any, path: str | list[str], value: Any) -> Any:
    """Return a copy of ``obj`` with ``value`` stored at ``path``.

    Missing intermediate dict keys are created as empty dicts. List segments
    must address an existing index or the position right after the end,
    which appends.

    Args:
        obj: Nested dict/list structure to copy.
        path: Dotted path or list of segments.
        value: Value to store.

    Returns:
        Updated deep copy of ``obj``.

    Raises:
        ValueError: If the path is empty or traverses a scalar, or a list
            index is not an integer or is out of range.
    """
    segments = split_path(path)
    result = copy.deepcopy(obj)
    node = result
    for position, segment in enumerate(segments):
        last = position == len(segments) - 1
        if isinstance(node, list):
            try:
                index = int(segment)
            except ValueError:
                raise ValueError(
                    f"List index expected at {segment!r} in {path!r}"
                ) from None
            if not 0 <= index <= len(node):
                raise ValueError(f"Index {index} out of range in {path!r}")
            if index == len(node):
                node.append(value if last else {})
            elif last:
                node[index] = value
            node = node[index]
        elif isinstance(node, dict):
            if last:
                node[segment] = value
            elif not isinstance(node.get(segment), (dict, list)):
                node[segment] = {}
            node = node[segment]
        else:
            raise ValueError(f"Cannot set {path!r}: {segment!r} is not a container")
    return result
