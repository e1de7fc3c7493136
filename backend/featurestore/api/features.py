"""Feature ingestion, query and retrieval API endpoints.

Features can be added to a collection either as a GeoJSON document in the
request body or as an uploaded vector file that is converted with ogr2ogr.
Queries match exact property values against the collection's lookup
entries and can optionally return full records and their geometries.

Example:
    Add a feature and query it back:
        >>> client.post(
        ...     "/api/collections/countries/features",
        ...     params={"index_fields": ["iso", "kind"]},
        ...     json={
        ...         "type": "Feature",
        ...         "properties": {"iso": "BRA", "kind": "country"},
        ...         "geometry": {"type": "Point", "coordinates": [-47.9, -15.8]},
        ...     },
        ... )
        >>> response = client.post(
        ...     "/api/collections/countries/query",
        ...     json={"match": {"iso": "BRA"}, "include_records": True},
        ... )
        >>> # Returns: [{"type": "Feature", "id": "...", "properties": {...}}]

    Upload a zipped shapefile:
        >>> files = {"file": ("countries.zip", open("countries.zip", "rb"))}
        >>> client.post(
        ...     "/api/collections/countries/upload",
        ...     params={"index_fields": ["iso"]},
        ...     files=files,
        ... )
"""

from __future__ import annotations

import pathlib
import shutil
import tempfile
from typing import Any

import fastapi
import pydantic

from featurestore.core import config
from featurestore.db import models as db_models
from featurestore.db import storage as db_storage
from featurestore.services import collections
from featurestore.services import features as feature_service
from featurestore.services import ingest_vector, query
from featurestore.services import store as store_service
from featurestore.utils import gdal_helpers

router = fastapi.APIRouter(prefix="/api/collections", tags=["features"])


class QueryRequest(pydantic.BaseModel):
    match: dict[str, Any]
    include_records: bool = False
    include_geometry: bool = False


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


def _save_upload(
    file: fastapi.UploadFile,
    upload_dir: pathlib.Path,
    max_size: int,
) -> pathlib.Path:
    """Persist an uploaded file to disk with size validation.

    Args:
        file: FastAPI UploadFile object containing the file data.
        upload_dir: Directory where the file should be saved.
        max_size: Maximum allowed file size in bytes.

    Returns:
        Path to the saved file, named after the uploaded file.

    Raises:
        HTTPException: If the file exceeds the maximum size limit.
    """
    upload_dir.mkdir(parents=True, exist_ok=True)
    target_path = upload_dir / pathlib.Path(file.filename or "upload").name
    with tempfile.NamedTemporaryFile(delete=False, dir=upload_dir) as tmp:
        size = 0
        for chunk in iter(lambda: file.file.read(1024 * 1024), b""):
            size += len(chunk)
            if size > max_size:
                tmp.close()
                pathlib.Path(tmp.name).unlink(missing_ok=True)
                raise fastapi.HTTPException(
                    status_code=413,
                    detail="Upload too large",
                )

            tmp.write(chunk)

        tmp.flush()

    shutil.move(tmp.name, target_path)

    return target_path


def _added_entries(
    fstore: db_models.FeatureStore,
    collection_id: str,
    before: int,
) -> list[dict[str, Any]]:
    """Lookup entries appended to a collection after the first ``before``."""
    entry = fstore.find_collection(collection_id)
    added = entry.features[before:] if entry is not None else []
    return [lookup.to_document() for lookup in added]


@router.post("/{collection_id}/features")
async def add_features(
    collection_id: str,
    document: dict[str, Any] = fastapi.Body(...),  # noqa: B008
    index_fields: list[str] = fastapi.Query(default=[]),  # noqa: B008
    coordinate_precision: int | None = None,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> dict[str, Any]:
    """Add the features of a GeoJSON document to a collection.

    Args:
        collection_id: Target collection.
        document: GeoJSON Geometry, Feature or FeatureCollection.
        index_fields: Property names to copy into the lookup entries.
        coordinate_precision: Decimal places to round coordinates to
            (defaults to the configured precision).
        settings: Application settings (injected via FastAPI Depends).
        storage: Document storage (injected via FastAPI Depends).

    Returns:
        Dictionary with the collection id and the new lookup entries in
        input order.

    Raises:
        HTTPException: 404 if the collection does not exist, 422 if the
            document is not valid GeoJSON.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    before = len(collections.load_collection(fstore, collection_id, storage).features)
    fstore = feature_service.create_records_from_document(
        fstore,
        collection_id,
        document,
        index_fields=index_fields,
        coordinate_precision=(
            settings.coordinate_precision
            if coordinate_precision is None
            else coordinate_precision
        ),
        storage=storage,
    )
    return {
        "id": collection_id,
        "features": _added_entries(fstore, collection_id, before),
    }


@router.post("/{collection_id}/upload")
async def upload_features(
    collection_id: str,
    file: fastapi.UploadFile,
    index_fields: list[str] = fastapi.Query(default=[]),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> dict[str, Any]:
    """Upload a vector file and add its features to a collection.

    The file is converted to GeoJSON with ogr2ogr (EPSG:4326) and removed
    once ingested.

    Raises:
        HTTPException: 404 if the collection does not exist, 413 if the
            upload is too large, 400 if ogr2ogr cannot read the file.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    before = len(collections.load_collection(fstore, collection_id, storage).features)
    saved_path = _save_upload(
        file,
        settings.upload_dir,
        settings.max_upload_size_bytes,
    )
    try:
        fstore = ingest_vector.ingest_vector_file(
            fstore,
            collection_id,
            saved_path,
            settings.upload_dir,
            index_fields=index_fields,
            coordinate_precision=settings.coordinate_precision,
            storage=storage,
        )
    except gdal_helpers.CommandError as e:
        raise fastapi.HTTPException(status_code=400, detail=str(e)) from e
    finally:
        saved_path.unlink(missing_ok=True)

    return {
        "id": collection_id,
        "features": _added_entries(fstore, collection_id, before),
    }


@router.post("/{collection_id}/query")
async def query_features(
    collection_id: str,
    body: QueryRequest,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> list[dict[str, Any]]:
    """Query a collection by exact property values.

    Returns:
        Matching lookup properties, or full records when include_records is
        set. An empty list when nothing matches.

    Raises:
        HTTPException: 404 if the collection does not exist, 422 if the
            match is empty.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    return query.query_records(
        fstore,
        collection_id,
        body.match,
        include_records=body.include_records,
        include_geometry=body.include_geometry,
        storage=storage,
    )


@router.get("/{collection_id}/features/{fid}")
async def get_feature(
    collection_id: str,
    fid: str,
    include_geometry: bool = False,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> dict[str, Any]:
    """Return a record, optionally with its geometry.

    Raises:
        HTTPException: 404 if the collection or record does not exist.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    collections.load_collection(fstore, collection_id, storage)
    return feature_service.read_record(
        fstore, collection_id, fid, include_geometry, storage
    )


@router.get("/{collection_id}/features/{fid}/geometry")
async def get_feature_geometry(
    collection_id: str,
    fid: str,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    storage: db_storage.DocumentStorageProtocol = fastapi.Depends(_get_storage),  # noqa: B008
) -> dict[str, Any]:
    """Return the stored (normalised) geometry of a record.

    Raises:
        HTTPException: 404 if the collection, record or geometry does not exist.
    """
    fstore = store_service.open_store(settings.store_root, storage)
    collections.load_collection(fstore, collection_id, storage)
    return feature_service.read_geometry(fstore, collection_id, fid, storage)
