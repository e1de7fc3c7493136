"""Query engine: exact-match predicates over the collection index.

A predicate is built from a mapping of field names to literals and selects,
at any depth of a document tree, every mapping node whose fields equal all
of the literals. Queries run against the lookup entries kept in the store
index, so only the properties chosen as index fields (plus fid, prop_hash
and geom_hash) can be matched without reading record files.

Equality is typed: strings only equal strings, booleans only equal
booleans, None only equals None, and numbers compare by value (``1`` equals
``1.0`` but not ``"1"`` or ``True``).

Example:
    Find Brazil in the countries collection:
        >>> from featurestore.services import query, store
        >>> fstore = store.open_store("./fstore")
        >>> hits = query.query_lookup(
        ...     fstore, "countries", {"iso": "BRA", "kind": "country"}
        ... )
        >>> hits[0]["fid"]  # doctest: +SKIP
        '5b1b7c4e-...'
"""

from __future__ import annotations

import dataclasses
import logging
import numbers
import time
from typing import TYPE_CHECKING, Any

from featurestore.core import exceptions
from featurestore.db import storage as db_storage
from featurestore.services import collections
from featurestore.services import features as feature_service

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from featurestore.db import models as db_models

logger = logging.getLogger(__name__)


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, numbers.Number):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


def typed_equal(left: Any, right: Any) -> bool:
    """Compare two JSON values for equality without cross-type coercion."""
    kind = _kind(left)
    if kind != _kind(right):
        return False
    if kind == "array":
        return len(left) == len(right) and all(
            typed_equal(a, b) for a, b in zip(left, right, strict=True)
        )
    if kind == "object":
        return (
            isinstance(left, dict)
            and isinstance(right, dict)
            and left.keys() == right.keys()
            and all(typed_equal(left[key], right[key]) for key in left)
        )
    return left == right


def _render(value: Any) -> str:
    if isinstance(value, str):
        return "'" + value.replace("'", "\\'") + "'"
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return repr(value)


def _descendants(node: Any) -> Iterator[Any]:
    """Yield every node below ``node`` in pre-order document order."""
    children: list[Any]
    if isinstance(node, dict):
        children = list(node.values())
    elif isinstance(node, list):
        children = list(node)
    else:
        return
    for child in children:
        yield child
        yield from _descendants(child)


@dataclasses.dataclass(frozen=True)
class Predicate:
    """Conjunction of field equalities evaluated at any depth."""

    match: dict[str, Any]

    @property
    def expression(self) -> str:
        """JSONPath-style rendering of the predicate, used in logs."""
        clauses = " && ".join(
            f"@.{field} == {_render(value)}" for field, value in self.match.items()
        )
        return f"$..*[?({clauses})]"

    def matches(self, node: Any) -> bool:
        return isinstance(node, dict) and all(
            field in node and typed_equal(node[field], value)
            for field, value in self.match.items()
        )

    def select(self, tree: Any) -> list[Any]:
        """Return the descendants of ``tree`` that satisfy the predicate."""
        return [node for node in _descendants(tree) if self.matches(node)]


def build_predicate(match_spec: Mapping[str, Any]) -> Predicate:
    """Build a predicate requiring every field to equal its literal.

    Args:
        match_spec: Field names mapped to the literal each must equal.

    Returns:
        The predicate.

    Raises:
        ValidationError: If ``match_spec`` is empty or a field name is not
            a non-empty string.
    """
    if not match_spec:
        raise exceptions.ValidationError("Query needs at least one field")
    for field in match_spec:
        if not isinstance(field, str) or not field:
            raise exceptions.ValidationError(f"Invalid query field: {field!r}")
    return Predicate(dict(match_spec))


def match_fid(node: dict[str, Any]) -> str:
    """Return the record id a matched node refers to."""
    fid = node.get("fid")
    if fid is None:
        fid = node.get("id")
    if not isinstance(fid, str):
        raise exceptions.NotFoundError(f"Matched node has no fid: {node!r}")
    return fid


def query_lookup(
    fstore: db_models.FeatureStore,
    collection_id: str,
    match_spec: Mapping[str, Any],
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> list[dict[str, Any]]:
    """Query the lookup entries of a collection.

    Args:
        fstore: Store holding the collection.
        collection_id: Collection to query.
        match_spec: Field names mapped to the literal each must equal.
        storage: Document storage backend (local filesystem by default).

    Returns:
        Matching nodes of the lookup entries in index order, usually the
        ``properties`` mapping of each matching entry. Empty when nothing
        matches.

    Raises:
        NotFoundError: If the collection does not exist.
        ValidationError: If ``match_spec`` is empty.
    """
    predicate = build_predicate(match_spec)
    started = time.perf_counter()
    entry = collections.load_collection(fstore, collection_id, storage)
    tree = [feature.to_document() for feature in entry.features]
    results = predicate.select(tree)
    logger.info(
        f"Queried {collection_id} with {predicate.expression}: "
        f"{len(results)} matches in {time.perf_counter() - started:.3f}s"
    )
    return results


def query_records(
    fstore: db_models.FeatureStore,
    collection_id: str,
    match_spec: Mapping[str, Any],
    include_records: bool = False,
    include_geometry: bool = False,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> list[dict[str, Any]]:
    """Query a collection and optionally read the matching records.

    Args:
        fstore: Store holding the collection.
        collection_id: Collection to query.
        match_spec: Field names mapped to the literal each must equal.
        include_records: Return the full record documents instead of the
            matched lookup nodes.
        include_geometry: Attach each match's geometry document under
            "geometry" (null for records stored without geometry).
        storage: Document storage backend (local filesystem by default).

    Returns:
        Matched lookup nodes, or record documents read one after another in
        match order.

    Raises:
        NotFoundError: If the collection or a matched record file is missing.
    """
    storage = db_storage.resolve_storage(storage)
    matches = query_lookup(fstore, collection_id, match_spec, storage)
    if not (include_records or include_geometry):
        return matches

    results = []
    for node in matches:
        fid = match_fid(node)
        if include_records:
            result = feature_service.read_record(
                fstore, collection_id, fid, include_geometry, storage
            )
        else:
            result = {**node, "geometry": None}
            if storage.exists(collections.geometry_path(fstore, collection_id, fid)):
                result["geometry"] = feature_service.read_geometry(
                    fstore, collection_id, fid, storage
                )
        results.append(result)
    return results
