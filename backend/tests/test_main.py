"""Tests for the FastAPI main application factory and health checks.

This module validates that:
    - The FastAPI app is correctly instantiated via main.create_app,
    - OpenAPI metadata (title, version) matches the project contract,
    - The collection and feature routers are registered,
    - The /health endpoint returns the expected response.

See Also:
    - backend/featurestore/main.py for the application factory.
"""

from __future__ import annotations

from fastapi import testclient

from featurestore import main


def test_create_app() -> None:
    """Test that create_app returns a configured FastAPI instance."""
    app = main.create_app()
    assert app is not None
    assert app.title == "Feature Store"
    assert app.version == "0.1.0"


def test_health_endpoint() -> None:
    """Test the health check endpoint returns ok status."""
    app = main.create_app()
    client = testclient.TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_app_includes_routers() -> None:
    """Test that all API routers are included in the app."""
    app = main.create_app()
    routes = app.openapi()["paths"]
    assert "/health" in routes
    assert "/api/collections" in routes
    assert "/api/collections/{collection_id}/query" in routes
    assert "/api/collections/{collection_id}/upload" in routes
