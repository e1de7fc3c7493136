"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
the feature store root directory, the default coordinate precision applied
to stored geometries, the upload directory used for vector file ingestion,
CORS origins, file upload size limits and the logging level.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from featurestore.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.store_root)

    Environment variables can override defaults:
        >>> STORE_ROOT=/data/fstore
        >>> COORDINATE_PRECISION=5
        >>> MAX_UPLOAD_SIZE_BYTES=1073741824
"""

import functools
import pathlib

import pydantic
import pydantic_settings


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.
    The upload directory is created by ensure_directories(); the store root
    is created lazily by open_store().

    Attributes:
        store_root: Root directory of the feature store.
        coordinate_precision: Decimal places geometries are rounded to.
        upload_dir: Directory for temporary vector file uploads.
        allow_origins: List of allowed CORS origins (["*"] allows all).
        max_upload_size_bytes: Maximum file upload size (default 512MB).
        log_level: Root logging level used by the API application.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     store_root=Path("/data/fstore"),
            ...     coordinate_precision=4,
            ... )
            >>> settings.ensure_directories()
    """

    store_root: pathlib.Path = pathlib.Path("./fstore")
    coordinate_precision: int = pydantic.Field(default=6, ge=0, le=15)
    upload_dir: pathlib.Path = pathlib.Path("/tmp/featurestore/uploads")
    allow_origins: list[str] = ["*"]
    max_upload_size_bytes: int = 512 * 1024 * 1024
    log_level: str = "INFO"

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def ensure_directories(self) -> None:
        """Create the local directory for uploaded vector files."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance with directories initialized.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. Directories are created on first call.

    Returns:
        Settings instance with all configuration values populated and
        directories ensured to exist.
    """
    settings = Settings()
    settings.ensure_directories()
    return settings
