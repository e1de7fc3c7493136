"""Collection management API endpoints.

This module provides REST API endpoints for listing, creating, describing
and updating the collections of the configured feature store. Creating a
collection that already exists is not an error: the existing collection is
returned unchanged.

Example:
    Create a collection and list all collections:
        >>> response = client.post(
        ...     "/api/collections",
        ...     json={"id": "countries", "metadata": {"name": "Countries"}},
        ... )
        >>> response = client.get("/api/collections")
        >>> # Returns: [{"id": "countries", "feature_count": 0, ...}]

    Bump the version of a collection:
        >>> client.patch(
        ...     "/api/collections/countries",
        ...     json={"path": "collection_metadata.version", "value": "1.1.0"},
        ... )
"""

from __future__ import annotations

from typing import Any

import fastapi
import pydantic

from featurestore.core import config
from featurestore.db import models as db_models
from featurestore.db import storage as db_storage
from featurestore.services import collections
from featurestore.services import store as store_service

router = fastapi.APIRouter(prefix="/api/collections", tags=["collections"])


class CollectionCreate(pydantic.BaseModel):
    id: str
    metadata: db_models.CollectionMetadata | None = None
    attributes: list[db_models.AttributeDescriptor] = []


class CollectionUpdate(pydantic.BaseModel):
    path: str
    value: Any = None


def _get_storage(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> db_storage.DocumentStorageProtocol:
    """Resolve the document storage dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        DocumentStorageProtocol implementation
            (LocalDocumentStorage in production).
    """
    return db_storage.get_document_storage(settings)


def _summary(entry: db_models.CollectionEntry) -> dict[str, Any]:
    """Describe a collection without its lookup entries."""
    document = entry.to_document()
    document["feature_count"] = len(document.pop("features"))
    return document


@router.get("")
async def list_collections(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> list[dict[str, Any]]:
    """List all collections of the store in index order.

    Returns:
        Collection summaries: id, metadata, attribute descriptors and
        feature_count.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    return [_summary(c) for c in collections.list_collections(fstore, storage)]


@router.post("")
async def create_collection(
    body: CollectionCreate,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> dict[str, Any]:
    """Create a collection, or return it unchanged if it already exists.

    Args:
        body: Collection id, optional metadata and extra attribute
            descriptors.
        settings: Application settings (injected via FastAPI Depends).
        storage: Document storage (injected via FastAPI Depends).

    Returns:
        Summary of the created (or existing) collection.

    Raises:
        HTTPException: 422 if the collection id is not a valid directory name.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    fstore = collections.create_collection(
        fstore,
        body.id,
        body.metadata,
        body.attributes,
        storage,
    )
    return _summary(collections.load_collection(fstore, body.id, storage))


@router.get("/{collection_id}")
async def get_collection(
    collection_id: str,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> dict[str, Any]:
    """Return the full index entry of a collection, lookup entries included.

    Raises:
        HTTPException: 404 if the collection does not exist.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    return collections.load_collection(fstore, collection_id, storage).to_document()


@router.patch("/{collection_id}")
async def update_collection(
    collection_id: str,
    body: CollectionUpdate,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> dict[str, Any]:
    """Set one value inside a collection entry by dotted path.

    Raises:
        HTTPException: 404 if the collection does not exist, 422 if the
            update targets the id or produces an invalid collection.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    fstore = collections.update_collection(
        fstore, collection_id, body.path, body.value, storage
    )
    return _summary(collections.load_collection(fstore, collection_id, storage))
