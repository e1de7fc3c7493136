"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that configures
logging, sets up CORS middleware, includes the collection and feature
routers, maps feature store errors to HTTP status codes and exposes a
health check endpoint for monitoring.

Example:
    The application can be run with uvicorn:
        $ uvicorn featurestore.main:app --reload

    Or imported and used programmatically:
        >>> from featurestore.main import app
        >>> # Use app in ASGI server
"""

import logging

import fastapi
from fastapi import responses
from fastapi.middleware import cors

from featurestore.api import collections, features
from featurestore.core import config, exceptions


async def _not_found(
    request: fastapi.Request,
    exc: Exception,
) -> responses.JSONResponse:
    return responses.JSONResponse(status_code=404, content={"detail": str(exc)})


async def _invalid(
    request: fastapi.Request,
    exc: Exception,
) -> responses.JSONResponse:
    return responses.JSONResponse(status_code=422, content={"detail": str(exc)})


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures the root log level from settings, includes the collection
    and feature routers, registers handlers translating NotFoundError to
    404 and ValidationError to 422, sets up CORS and adds a health check.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = fastapi.FastAPI(title="Feature Store", version="0.1.0")

    app.include_router(collections.router)
    app.include_router(features.router)

    app.add_exception_handler(exceptions.NotFoundError, _not_found)
    app.add_exception_handler(exceptions.ValidationError, _invalid)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
