"""API endpoint tests for feature ingestion, queries and record retrieval.

This module covers:
    - Adding GeoJSON documents to a collection and the returned entries,
    - Uploading vector files with ogr2ogr monkeypatched,
    - Upload size limits and conversion failures,
    - Querying by exact values and reading records and geometries.

Settings and document storage are injected using dependency overrides.

See Also:
    - backend/featurestore/api/features.py for API implementation,
    - test_ingest_vector.py for the conversion service.
"""

from __future__ import annotations

import json
import pathlib
from typing import TYPE_CHECKING, Any

from fastapi import testclient

from featurestore import main
from featurestore.api import collections as api_collections
from featurestore.api import features as api_features
from featurestore.core import config
from featurestore.db import storage as db_storage
from featurestore.services import ingest_vector
from featurestore.utils import gdal_helpers

if TYPE_CHECKING:
    import fastapi
    import pytest

BRAZIL = {
    "type": "Feature",
    "properties": {"iso": "BRA", "kind": "country", "name": "Brazil"},
    "geometry": {
        "type": "Polygon",
        "coordinates": [
            [
                [-50.0, -20.0],
                [-45.0, -20.0],
                [-45.0, -10.0],
                [-50.0, -10.0],
                [-50.0, -20.0],
            ]
        ],
    },
}


def _test_app(
    tmp_path: pathlib.Path,
    **overrides: Any,
) -> tuple[fastapi.FastAPI, db_storage.InMemoryDocumentStorage]:
    settings = config.Settings(
        store_root=tmp_path / "fstore",
        upload_dir=tmp_path / "uploads",
        **overrides,
    )
    backend = db_storage.InMemoryDocumentStorage()
    app = main.create_app()
    app.dependency_overrides[config.get_settings] = lambda: settings
    app.dependency_overrides[api_collections._get_storage] = lambda: backend
    app.dependency_overrides[api_features._get_storage] = lambda: backend
    return app, backend


def test_add_features(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        response = client.post(
            "/api/collections/countries/features",
            params={"index_fields": ["iso", "kind"]},
            json=BRAZIL,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "countries"
        assert len(body["features"]) == 1
        properties = body["features"][0]["properties"]
        assert set(properties) == {"fid", "prop_hash", "geom_hash", "iso", "kind"}
    finally:
        app.dependency_overrides.clear()


def test_add_features_returns_only_new_entries(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        client.post("/api/collections/countries/features", json=BRAZIL)
        response = client.post(
            "/api/collections/countries/features",
            json={"type": "FeatureCollection", "features": [BRAZIL, BRAZIL]},
        )
        assert len(response.json()["features"]) == 2
        collection = client.get("/api/collections/countries").json()
        assert len(collection["features"]) == 3
    finally:
        app.dependency_overrides.clear()


def test_add_features_coordinate_precision(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path, coordinate_precision=2)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "places"})
        point = {"type": "Point", "coordinates": [15.977777, 45.813333]}
        fid = client.post(
            "/api/collections/places/features", json=point
        ).json()["features"][0]["id"]
        geometry = client.get(f"/api/collections/places/features/{fid}/geometry")
        assert geometry.json()["coordinates"] == [15.98, 45.81]

        fid = client.post(
            "/api/collections/places/features",
            params={"coordinate_precision": 0},
            json=point,
        ).json()["features"][0]["id"]
        geometry = client.get(f"/api/collections/places/features/{fid}/geometry")
        assert geometry.json()["coordinates"] == [16.0, 46.0]
    finally:
        app.dependency_overrides.clear()


def test_add_features_errors(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        response = client.post("/api/collections/rivers/features", json=BRAZIL)
        assert response.status_code == 404

        client.post("/api/collections", json={"id": "countries"})
        response = client.post(
            "/api/collections/countries/features",
            json={"type": "Feature", "geometry": {"type": "Point"}},
        )
        assert response.status_code == 422
        assert "Invalid feature" in response.json()["detail"]
    finally:
        app.dependency_overrides.clear()


def test_add_features_non_finite_numbers(tmp_path: pathlib.Path) -> None:
    app, backend = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        for body in (
            '{"type": "Point", "coordinates": [NaN, 1.0]}',
            '{"type": "Feature", "properties": {"area": Infinity}, "geometry": null}',
        ):
            response = client.post(
                "/api/collections/countries/features",
                content=body,
                headers={"content-type": "application/json"},
            )
            assert response.status_code == 422
        assert not any("/records/" in path for path in backend.paths())
    finally:
        app.dependency_overrides.clear()


def test_query_features(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        client.post(
            "/api/collections/countries/features",
            params={"index_fields": ["iso", "kind"]},
            json=BRAZIL,
        )

        response = client.post(
            "/api/collections/countries/query",
            json={"match": {"iso": "BRA", "kind": "country"}},
        )
        assert response.status_code == 200
        hits = response.json()
        assert len(hits) == 1
        assert hits[0]["iso"] == "BRA"

        response = client.post(
            "/api/collections/countries/query",
            json={
                "match": {"iso": "BRA"},
                "include_records": True,
                "include_geometry": True,
            },
        )
        record = response.json()[0]
        assert record["properties"]["name"] == "Brazil"
        assert record["geometry"]["type"] == "Polygon"
        assert record["bbox"] == [-50.0, -20.0, -45.0, -10.0]

        response = client.post(
            "/api/collections/countries/query",
            json={"match": {"name": "Brazil"}},
        )
        assert response.json() == []
    finally:
        app.dependency_overrides.clear()


def test_query_features_errors(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        response = client.post(
            "/api/collections/rivers/query", json={"match": {"iso": "BRA"}}
        )
        assert response.status_code == 404

        client.post("/api/collections", json={"id": "countries"})
        response = client.post("/api/collections/countries/query", json={"match": {}})
        assert response.status_code == 422
    finally:
        app.dependency_overrides.clear()


def test_get_feature(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        fid = client.post(
            "/api/collections/countries/features", json=BRAZIL
        ).json()["features"][0]["id"]

        response = client.get(f"/api/collections/countries/features/{fid}")
        assert response.status_code == 200
        assert response.json()["geometry"] is None

        response = client.get(
            f"/api/collections/countries/features/{fid}",
            params={"include_geometry": True},
        )
        outer = response.json()["geometry"]["coordinates"][0]
        assert outer[1] == [-50.0, -10.0]

        response = client.get("/api/collections/countries/features/missing")
        assert response.status_code == 404
        response = client.get("/api/collections/countries/features/missing/geometry")
        assert response.status_code == 404
    finally:
        app.dependency_overrides.clear()


def _fake_ogr2ogr(command: Any, workdir: Any = None) -> None:
    args = [str(part) for part in command]
    document = {"type": "FeatureCollection", "features": [BRAZIL]}
    pathlib.Path(args[3]).write_text(json.dumps(document), encoding="utf-8")


def test_upload_features(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    app, _ = _test_app(tmp_path)
    monkeypatch.setattr(ingest_vector.gdal_helpers, "run_command", _fake_ogr2ogr)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        response = client.post(
            "/api/collections/countries/upload",
            params={"index_fields": ["iso"]},
            files={"file": ("../countries.geojson", b"{}", "application/json")},
        )
        assert response.status_code == 200
        features = response.json()["features"]
        assert len(features) == 1
        assert features[0]["properties"]["iso"] == "BRA"
        assert list((tmp_path / "uploads").iterdir()) == []
    finally:
        app.dependency_overrides.clear()


def test_upload_conversion_failure(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    app, _ = _test_app(tmp_path)

    def failing_run(command: Any, workdir: Any = None) -> None:
        raise gdal_helpers.CommandError("Unable to open datasource")

    monkeypatch.setattr(ingest_vector.gdal_helpers, "run_command", failing_run)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        response = client.post(
            "/api/collections/countries/upload",
            files={"file": ("broken.shp", b"not a shapefile")},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Unable to open datasource"
        assert list((tmp_path / "uploads").iterdir()) == []
    finally:
        app.dependency_overrides.clear()


def test_upload_too_large(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path, max_upload_size_bytes=4)
    client = testclient.TestClient(app)
    try:
        client.post("/api/collections", json={"id": "countries"})
        response = client.post(
            "/api/collections/countries/upload",
            files={"file": ("big.geojson", b"0123456789")},
        )
        assert response.status_code == 413
        assert list((tmp_path / "uploads").iterdir()) == []
    finally:
        app.dependency_overrides.clear()


def test_upload_unknown_collection(tmp_path: pathlib.Path) -> None:
    app, _ = _test_app(tmp_path)
    client = testclient.TestClient(app)
    try:
        response = client.post(
            "/api/collections/rivers/upload",
            files={"file": ("rivers.geojson", b"{}")},
        )
        assert response.status_code == 404
    finally:
        app.dependency_overrides.clear()
