"""Collection manager: collection directories and index entries.

Each collection owns two directories under the store root,
``<root>/<collection_id>/records`` and ``<root>/<collection_id>/geometries``,
and one entry in the root index holding its metadata, attribute
descriptors and lookup entries. Every collection starts with three
mandatory attribute descriptors (fid, prop_hash, geom_hash) ahead of any
caller-supplied ones.

Example:
    Create a collection with metadata and one extra attribute:
        >>> from featurestore.services import collections, store
        >>> fstore = store.open_store("./fstore")
        >>> meta = collections.create_collection_metadata(
        ...     name="Countries", version="1.0.0", keywords=["admin"]
        ... )
        >>> iso = collections.create_attribute_descriptor(
        ...     short_name="iso",
        ...     standard_name="iso_3166_alpha_3_code",
        ...     units="1",
        ...     long_name="ISO country code",
        ...     description="Three letter ISO 3166 country code",
        ...     missing_value=None,
        ...     data_type="string",
        ...     url="https://www.iso.org/iso-3166-country-codes.html",
        ... )
        >>> fstore = collections.create_collection(
        ...     fstore, "countries", meta, [iso]
        ... )
"""

from __future__ import annotations

import logging
import pathlib
from typing import TYPE_CHECKING, Any

from featurestore.core import exceptions
from featurestore.db import models as db_models
from featurestore.db import storage as db_storage
from featurestore.services import store as store_service
from featurestore.utils import paths

if TYPE_CHECKING:
    from collections.abc import Iterable

RECORDS_DIR = "records"
GEOMETRIES_DIR = "geometries"
DOCUMENT_SUFFIX = ".doc"

MANDATORY_ATTRIBUTES: tuple[db_models.AttributeDescriptor, ...] = (
    db_models.AttributeDescriptor(
        short_name="fid",
        standard_name="unique_identifier_of_feature",
        units="1",
        long_name="Feature identifier",
        description=(
            "The universally unique identifier (UUID) of the feature "
            "and its geometry"
        ),
        missing_value=None,
        data_type="string",
        url="https://en.wikipedia.org/wiki/Universally_unique_identifier",
    ),
    db_models.AttributeDescriptor(
        short_name="prop_hash",
        standard_name="md5_128_hash_of_properties",
        units="1",
        long_name="Properties MD5 hash",
        description=(
            "A 128 bit MD5 hash of the caller-supplied feature properties "
            "(excluding fid, prop_hash and geom_hash)"
        ),
        missing_value=None,
        data_type="string",
        url="https://en.wikipedia.org/wiki/MD5",
    ),
    db_models.AttributeDescriptor(
        short_name="geom_hash",
        standard_name="md5_128_hash_of_geometry",
        units="1",
        long_name="Geometry MD5 hash",
        description="A 128 bit MD5 hash of the normalised feature geometry",
        missing_value=None,
        data_type="string",
        url="https://en.wikipedia.org/wiki/MD5",
    ),
)

logger = logging.getLogger(__name__)


def collection_dir(fstore: db_models.FeatureStore, collection_id: str) -> pathlib.Path:
    return pathlib.Path(fstore.root_path) / collection_id


def record_path(
    fstore: db_models.FeatureStore, collection_id: str, fid: str
) -> pathlib.Path:
    """Path of the attribute document of record ``fid``."""
    return (
        collection_dir(fstore, collection_id)
        / RECORDS_DIR
        / f"{fid}{DOCUMENT_SUFFIX}"
    )


def geometry_path(
    fstore: db_models.FeatureStore, collection_id: str, fid: str
) -> pathlib.Path:
    """Path of the geometry document of record ``fid``."""
    return (
        collection_dir(fstore, collection_id)
        / GEOMETRIES_DIR
        / f"{fid}{DOCUMENT_SUFFIX}"
    )


def create_collection_metadata(**fields: Any) -> db_models.CollectionMetadata:
    """Build validated collection metadata.

    Raises:
        ValidationError: On unknown fields or wrongly typed values.
    """
    return db_models.parse_collection_metadata(fields)


def create_attribute_descriptor(**fields: Any) -> db_models.AttributeDescriptor:
    """Build a validated attribute descriptor.

    Raises:
        ValidationError: On missing, unknown or wrongly typed fields.
    """
    return db_models.parse_attribute_descriptor(fields)


def create_collection(
    fstore: db_models.FeatureStore,
    collection_id: str,
    metadata: db_models.CollectionMetadata | dict[str, Any] | None = None,
    attributes: Iterable[db_models.AttributeDescriptor | dict[str, Any]] | None = None,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.FeatureStore:
    """Create a collection in a store.

    The store index is re-read from disk first. If a collection with the
    same id is already indexed nothing is changed and the re-read store is
    returned.

    Args:
        fstore: Store to create the collection in.
        collection_id: Identifier, unique within the store and usable as a
            directory name, e.g. "countries".
        metadata: Optional descriptive metadata.
        attributes: Optional descriptors of the collection's own properties,
            stored after the mandatory fid, prop_hash and geom_hash.
        storage: Document storage backend (local filesystem by default).

    Returns:
        The updated (or unchanged) store.

    Raises:
        ValidationError: If the id, metadata or descriptors are invalid.
        OSError: If directories or the index cannot be written.
    """
    storage = db_storage.resolve_storage(storage)
    fstore = store_service.reload(fstore, storage)

    if collection_id in fstore.collection_ids():
        logger.info(
            f"Collection {collection_id} already exists, "
            "returning the existing store"
        )
        return fstore

    entry = db_models.parse_collection_entry(
        {
            "id": collection_id,
            "collection_metadata": metadata,
            "property_attributes": [*MANDATORY_ATTRIBUTES, *(attributes or [])],
            "features": [],
        }
    )

    directory = collection_dir(fstore, collection_id)
    logger.info(f"Creating collection {collection_id} at {directory}")
    storage.mkdir(directory / RECORDS_DIR)
    storage.mkdir(directory / GEOMETRIES_DIR)

    fstore = fstore.model_copy(
        update={"collections": [*fstore.collections, entry]}
    )
    store_service.persist_store(fstore, storage)
    store_service.summarise(fstore)
    return fstore


def load_collection(
    fstore: db_models.FeatureStore,
    collection_id: str,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.CollectionEntry:
    """Return the freshly read index entry of a collection.

    Raises:
        NotFoundError: If the collection is not in the store index.
    """
    fstore = store_service.reload(fstore, storage)
    entry = fstore.find_collection(collection_id)
    if entry is None:
        raise exceptions.NotFoundError(
            f"Collection {collection_id} not found in {fstore.root_path}"
        )
    return entry


def list_collections(
    fstore: db_models.FeatureStore,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> list[db_models.CollectionEntry]:
    """Return every collection entry of a store in index order."""
    return store_service.reload(fstore, storage).collections


def update_collection(
    fstore: db_models.FeatureStore,
    collection_id: str,
    property_path: str,
    value: Any,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.FeatureStore:
    """Set a value inside a collection entry and persist the store.

    Args:
        fstore: Store holding the collection.
        collection_id: Collection to update.
        property_path: Dotted path inside the collection entry, e.g.
            "collection_metadata.version" or
            "property_attributes.3.units".
        value: JSON-compatible value to store.
        storage: Document storage backend (local filesystem by default).

    Returns:
        The updated store.

    Raises:
        NotFoundError: If the collection is not in the store index.
        ValidationError: If the path targets the collection id or the
            updated entry no longer validates.
    """
    storage = db_storage.resolve_storage(storage)
    fstore = store_service.reload(fstore, storage)
    entry = fstore.find_collection(collection_id)
    if entry is None:
        raise exceptions.NotFoundError(
            f"Collection {collection_id} not found in {fstore.root_path}"
        )

    try:
        segments = paths.split_path(property_path)
        if segments[0] == "id":
            raise ValueError("the collection id cannot be changed")
        previous = paths.get_value(entry.to_document(), segments)
        updated = paths.set_value(entry.to_document(), segments, value)
    except ValueError as e:
        raise exceptions.ValidationError(
            f"Invalid update of collection {collection_id}: {e}"
        ) from e
    new_entry = db_models.parse_collection_entry(updated)

    fstore = fstore.model_copy(
        update={
            "collections": [
                new_entry if c.id == collection_id else c
                for c in fstore.collections
            ]
        }
    )
    logger.info(
        f"Updated {property_path} of collection {collection_id}: "
        f"{previous!r} -> {value!r}"
    )
    return store_service.persist_store(fstore, storage)
