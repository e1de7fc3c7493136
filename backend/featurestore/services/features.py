"""Record writer: create and read individual features of a collection.

A record is stored as two documents named after its fid:

- ``<root>/<collection>/records/<fid>.doc``: a GeoJSON Feature with
  ``geometry: null``, the caller's properties plus ``fid``, ``prop_hash``
  and ``geom_hash``, and the ``bbox`` of its geometry.
- ``<root>/<collection>/geometries/<fid>.doc``: the normalised geometry.

The ``prop_hash`` fingerprint is taken over the caller's properties before
any field is injected. The ``geom_hash`` fingerprint is taken after the
geometry has been rounded and rewound, so it describes the stored geometry.

create_record only writes files and returns a lookup entry;
create_records_from_document appends the lookup entries of a whole GeoJSON
document to the store index.

Example:
    Add a country to an existing collection:
        >>> from featurestore.services import features, store
        >>> fstore = store.open_store("./fstore")
        >>> fstore = features.create_records_from_document(
        ...     fstore,
        ...     "countries",
        ...     {
        ...         "type": "Feature",
        ...         "properties": {"iso": "HRV", "kind": "country"},
        ...         "geometry": {"type": "Point", "coordinates": [15.97, 45.81]},
        ...     },
        ...     index_fields=["iso"],
        ... )
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from featurestore.core import exceptions
from featurestore.db import models as db_models
from featurestore.db import storage as db_storage
from featurestore.services import collections
from featurestore.services import store as store_service
from featurestore.utils import geometry as geometry_utils
from featurestore.utils import hashing

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

MANDATORY_INDEX_FIELDS = ("fid", "prop_hash", "geom_hash")

ProgressCallback = Callable[[int, int], None]

logger = logging.getLogger(__name__)


def lookup_projection(
    record: db_models.Record,
    index_fields: Iterable[str] | None = None,
) -> db_models.LookupEntry:
    """Project a record onto its id, type and indexed properties.

    Fields named in ``index_fields`` that the record does not carry are
    left out rather than stored as null.
    """
    wanted = [*MANDATORY_INDEX_FIELDS, *(index_fields or [])]
    return db_models.LookupEntry(
        id=record.id,
        properties={
            name: record.properties[name]
            for name in dict.fromkeys(wanted)
            if name in record.properties
        },
    )


def create_record(
    fstore: db_models.FeatureStore,
    collection_id: str,
    attributes: dict[str, Any],
    geometry: dict[str, Any] | None = None,
    index_fields: Sequence[str] | None = None,
    coordinate_precision: int = 6,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.LookupEntry:
    """Write one record and return its lookup entry.

    The store index is not modified; see create_records_from_document.

    Args:
        fstore: Store holding the collection.
        collection_id: Target collection, which must already exist.
        attributes: The record's properties.
        geometry: Optional GeoJSON geometry.
        index_fields: Property names copied into the lookup entry in
            addition to fid, prop_hash and geom_hash.
        coordinate_precision: Decimal places coordinates are rounded to.
        storage: Document storage backend (local filesystem by default).

    Returns:
        The lookup entry of the new record.

    Raises:
        ValidationError: If the geometry is malformed or a property value
            cannot be serialised as JSON (for example NaN).
        OSError: If a document cannot be written.
    """
    storage = db_storage.resolve_storage(storage)
    fid = hashing.new_fid()
    try:
        prop_hash = hashing.fingerprint(attributes)
    except (TypeError, ValueError) as e:
        raise exceptions.ValidationError(f"Invalid feature properties: {e}") from e
    properties = {**attributes, "prop_hash": prop_hash, "fid": fid}
    properties.pop("geom_hash", None)

    bbox = None
    if geometry is not None:
        validated = db_models.parse_geometry(geometry).to_document()
        normalized = geometry_utils.normalize(validated, coordinate_precision)
        properties["geom_hash"] = hashing.fingerprint(normalized)
        bbox = geometry_utils.bounding_box(normalized)
        storage.write_document(
            collections.geometry_path(fstore, collection_id, fid), normalized
        )

    record = db_models.Record(id=fid, properties=properties, bbox=bbox)
    storage.write_document(
        collections.record_path(fstore, collection_id, fid),
        record.to_document(),
    )
    logger.debug(f"Created record {fid} in collection {collection_id}")
    return lookup_projection(record, index_fields)


def _records_from_document(
    document: dict[str, Any],
) -> list[tuple[dict[str, Any], dict[str, Any] | None]]:
    """Split a GeoJSON document into (properties, geometry) pairs."""
    kind = document.get("type") if isinstance(document, dict) else None
    if kind in db_models.GEOMETRY_TYPES:
        return [({}, document)]
    if kind == "Feature":
        feature = db_models.parse_feature(document)
        return [(feature.properties or {}, _geometry_of(feature))]
    if kind == "FeatureCollection":
        collection = db_models.parse_feature_collection(document)
        return [
            (feature.properties or {}, _geometry_of(feature))
            for feature in collection.features
        ]
    raise exceptions.ValidationError(f"Unsupported GeoJSON type: {kind!r}")


def _geometry_of(feature: db_models.Feature) -> dict[str, Any] | None:
    if feature.geometry is None:
        return None
    return feature.geometry.to_document()


def create_records_from_document(
    fstore: db_models.FeatureStore,
    collection_id: str,
    document: dict[str, Any],
    index_fields: Sequence[str] | None = None,
    coordinate_precision: int = 6,
    progress: ProgressCallback | None = None,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.FeatureStore:
    """Create records from a GeoJSON document and index them.

    A bare geometry becomes one record with empty properties, a Feature
    becomes one record and a FeatureCollection becomes one record per
    feature. Records are written in input order and their lookup entries
    are appended to the collection in the same order.

    Args:
        fstore: Store holding the collection.
        collection_id: Target collection, which must already exist.
        document: GeoJSON Geometry, Feature or FeatureCollection.
        index_fields: Property names to copy into the lookup entries.
        coordinate_precision: Decimal places coordinates are rounded to.
        progress: Optional callback receiving (done, total) after each record.
        storage: Document storage backend (local filesystem by default).

    Returns:
        The updated store.

    Raises:
        NotFoundError: If the collection does not exist.
        ValidationError: If the document or any geometry is malformed.
        OSError: If a document cannot be written.
    """
    storage = db_storage.resolve_storage(storage)
    collections.load_collection(fstore, collection_id, storage)
    pairs = _records_from_document(document)
    logger.info(
        f"Adding {len(pairs)} features from {document.get('type')} "
        f"to collection {collection_id}"
    )

    entries: list[db_models.LookupEntry] = []
    for done, (attributes, geometry) in enumerate(pairs, start=1):
        entries.append(
            create_record(
                fstore,
                collection_id,
                attributes,
                geometry,
                index_fields,
                coordinate_precision,
                storage,
            )
        )
        logger.debug(f"Added feature {done}/{len(pairs)} to {collection_id}")
        if progress is not None:
            progress(done, len(pairs))

    fstore = store_service.reload(fstore, storage)
    entry = fstore.find_collection(collection_id)
    if entry is None:
        raise exceptions.NotFoundError(
            f"Collection {collection_id} not found in {fstore.root_path}"
        )
    updated = entry.model_copy(update={"features": [*entry.features, *entries]})
    fstore = fstore.model_copy(
        update={
            "collections": [
                updated if c.id == collection_id else c
                for c in fstore.collections
            ]
        }
    )
    store_service.persist_store(fstore, storage)
    store_service.summarise(fstore)
    return fstore


def read_geometry(
    fstore: db_models.FeatureStore,
    collection_id: str,
    fid: str,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> dict[str, Any]:
    """Read and validate the geometry document of a record.

    Raises:
        NotFoundError: If the record has no geometry document.
    """
    storage = db_storage.resolve_storage(storage)
    document = storage.read_document(
        collections.geometry_path(fstore, collection_id, fid)
    )
    return db_models.parse_geometry(document).to_document()


def read_record(
    fstore: db_models.FeatureStore,
    collection_id: str,
    fid: str,
    include_geometry: bool = False,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> dict[str, Any]:
    """Read the record document of ``fid``.

    Args:
        fstore: Store holding the collection.
        collection_id: Collection of the record.
        fid: Record identifier.
        include_geometry: Replace the null geometry with the stored geometry
            document when the record has one.
        storage: Document storage backend (local filesystem by default).

    Returns:
        The record as a GeoJSON Feature dict.

    Raises:
        NotFoundError: If the record document does not exist.
    """
    storage = db_storage.resolve_storage(storage)
    document = storage.read_document(
        collections.record_path(fstore, collection_id, fid)
    )
    record = db_models.parse_record(document).to_document()
    if include_geometry and "geom_hash" in record["properties"]:
        record["geometry"] = read_geometry(fstore, collection_id, fid, storage)
    return record


def read_records(
    fstore: db_models.FeatureStore,
    collection_id: str,
    fids: Iterable[str],
    include_geometry: bool = False,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> list[dict[str, Any]]:
    return [
        read_record(fstore, collection_id, fid, include_geometry, storage)
        for fid in fids
    ]


def read_geometries(
    fstore: db_models.FeatureStore,
    collection_id: str,
    fids: Iterable[str],
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> list[dict[str, Any]]:
    return [read_geometry(fstore, collection_id, fid, storage) for fid in fids]
