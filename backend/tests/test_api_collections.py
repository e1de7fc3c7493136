"""API endpoint tests for the collection management endpoints.

This module provides tests for the /api/collections endpoints, covering:
    - Listing collections of an empty and a populated store,
    - Creating collections, including the no-op on an existing id,
    - Reading and updating a collection, and the 404/422 error mapping.

Settings and document storage are always injected using dependency
overrides, backed by InMemoryDocumentStorage.

See Also:
    - backend/featurestore/api/collections.py for API implementation,
    - backend/featurestore/db/storage.py for the storage protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import testclient

from featurestore import main
from featurestore.api import collections as api_collections
from featurestore.api import features as api_features
from featurestore.core import config
from featurestore.db import storage as db_storage

if TYPE_CHECKING:
    import pathlib

    import fastapi


def _test_app(
    tmp_path: pathlib.Path,
) -> tuple[fastapi.FastAPI, db_storage.InMemoryDocumentStorage]:
    settings = config.Settings(
        store_root=tmp_path / "fstore",
        upload_dir=tmp_path / "uploads",
    )
    backend = db_storage.InMemoryDocumentStorage()
    app = main.create_app()
    app.dependency_overrides[config.get_settings] = lambda: settings
    app.dependency_overrides[api_collections._get_storage] = lambda: backend
    app.dependency_overrides[api_features._get_storage] = lambda: backend
    return app, backend


def test_list_collections_empty(tmp_path: pathlib.Path) -> None:
    """Listing creates the store on first use and returns no collections."""
    app, backend = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        response = client.get("/api/collections")
        assert response.status_code == 200
        assert response.json() == []
        assert backend.exists(tmp_path / "fstore" / ".store_index")
    finally:
        app.dependency_overrides.clear()


def test_create_collection(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        response = client.post(
            "/api/collections",
            json={
                "id": "countries",
                "metadata": {"name": "Countries", "keywords": ["admin"]},
                "attributes": [
                    {
                        "short_name": "iso",
                        "standard_name": "iso_3166_alpha_3_code",
                        "units": "1",
                        "long_name": "ISO country code",
                        "description": "Three letter country code",
                        "missing_value": None,
                        "data_type": "string",
                        "url": "https://www.iso.org",
                    }
                ],
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "countries"
        assert body["feature_count"] == 0
        assert body["collection_metadata"]["keywords"] == ["admin"]
        assert [a["short_name"] for a in body["property_attributes"]] == [
            "fid",
            "prop_hash",
            "geom_hash",
            "iso",
        ]
    finally:
        app.dependency_overrides.clear()


def test_create_collection_twice_keeps_first(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        client.post(
            "/api/collections",
            json={"id": "countries", "metadata": {"name": "Countries"}},
        )
        response = client.post(
            "/api/collections",
            json={"id": "countries", "metadata": {"name": "Nations"}},
        )
        assert response.status_code == 200
        assert response.json()["collection_metadata"]["name"] == "Countries"

        listed = client.get("/api/collections").json()
        assert [c["id"] for c in listed] == ["countries"]
    finally:
        app.dependency_overrides.clear()


def test_create_collection_invalid_id(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        response = client.post("/api/collections", json={"id": ".."})
        assert response.status_code == 422
        assert "single path segment" in response.json()["detail"]
    finally:
        app.dependency_overrides.clear()


def test_get_collection_not_found(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        response = client.get("/api/collections/rivers")
        assert response.status_code == 404
        assert "not found" in response.json()["detail"].lower()
    finally:
        app.dependency_overrides.clear()


def test_get_collection_includes_lookup_entries(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        client.post(
            "/api/collections/countries/features",
            json={"type": "Point", "coordinates": [1.0, 2.0]},
        )
        response = client.get("/api/collections/countries")
        assert response.status_code == 200
        entries = response.json()["features"]
        assert len(entries) == 1
        assert entries[0]["type"] == "Feature"
        assert entries[0]["properties"]["fid"] == entries[0]["id"]
    finally:
        app.dependency_overrides.clear()


def test_update_collection(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        client.post(
            "/api/collections",
            json={"id": "countries", "metadata": {"version": "1.0.0"}},
        )
        response = client.patch(
            "/api/collections/countries",
            json={"path": "collection_metadata.version", "value": "1.1.0"},
        )
        assert response.status_code == 200
        assert response.json()["collection_metadata"]["version"] == "1.1.0"

        response = client.patch(
            "/api/collections/countries",
            json={"path": "id", "value": "nations"},
        )
        assert response.status_code == 422

        response = client.patch(
            "/api/collections/rivers",
            json={"path": "collection_metadata.version", "value": "2"},
        )
        assert response.status_code == 404
    finally:
        app.dependency_overrides.clear()
