"""API router subpackage for the feature store service.

This package organises REST endpoints by domain. Each module exposes its
own APIRouter for composition in the application's main FastAPI instance.

Submodules:
    - collections: Endpoints for listing, creating, describing and updating
      collections.
    - features: Endpoints for adding features from GeoJSON or uploaded
      vector files, querying collections and reading records.
"""
