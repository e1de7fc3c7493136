"""Store manager: create, read and persist the root index document.

A store is a directory holding one index document, ``.store_index``, that
lists every collection and the lookup entries of its records. The index is
the authority for what exists; every mutating operation re-reads it from
disk right before changing it and writes the whole document back afterwards.
This assumes a single writer per store: concurrent writers are not
coordinated and the last persist wins.

Example:
    Open (or create) a store and summarise it:
        >>> from featurestore.services import store as store_service
        >>> fstore = store_service.open_store("./fstore")
        >>> print(store_service.summarise(fstore))
        FeatureStore ./fstore
        - no collections
"""

from __future__ import annotations

import logging
import pathlib
import time
from typing import TYPE_CHECKING

from featurestore.db import models as db_models
from featurestore.db import storage as db_storage

if TYPE_CHECKING:
    import os

INDEX_NAME = ".store_index"

logger = logging.getLogger(__name__)


def index_path(root_path: str | os.PathLike[str]) -> pathlib.Path:
    """Return the index document path of a store rooted at ``root_path``."""
    return pathlib.Path(root_path) / INDEX_NAME


def read_store(
    root_path: str | os.PathLike[str],
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.FeatureStore:
    """Read and validate the index document of an existing store.

    Args:
        root_path: Store root directory.
        storage: Document storage backend (local filesystem by default).

    Returns:
        The validated FeatureStore index, bound to ``root_path`` even when
        the stored root differs (a moved or copied store).

    Raises:
        NotFoundError: If no index document exists under ``root_path``.
        ValidationError: If the index document is malformed.
    """
    storage = db_storage.resolve_storage(storage)
    started = time.perf_counter()
    fstore = db_models.parse_store(storage.read_document(index_path(root_path)))
    # A moved or copied store belongs to the directory it was read from.
    fstore = fstore.model_copy(
        update={"store": db_models.StoreInfo(root_path=str(root_path))}
    )
    logger.debug(
        f"Read store index {index_path(root_path)} "
        f"in {time.perf_counter() - started:.3f}s"
    )
    return fstore


def reload(
    fstore: db_models.FeatureStore,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.FeatureStore:
    """Re-read the on-disk index of ``fstore``, discarding in-memory state."""
    return read_store(fstore.root_path, storage)


def persist_store(
    fstore: db_models.FeatureStore,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.FeatureStore:
    """Overwrite the index document with the full contents of ``fstore``.

    Returns:
        The persisted store, unchanged.

    Raises:
        OSError: If the index cannot be written. The previous index is left
            intact by the local backend.
    """
    storage = db_storage.resolve_storage(storage)
    storage.write_document(index_path(fstore.root_path), fstore.to_document())
    logger.debug(f"Persisted store index {index_path(fstore.root_path)}")
    return fstore


def open_store(
    root_path: str | os.PathLike[str] = "./fstore",
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.FeatureStore:
    """Open the store at ``root_path``, creating it when missing.

    When an index document already exists it is read and returned without
    modification, so calling this repeatedly is safe. Otherwise the
    directory is created and an empty index is written.

    Args:
        root_path: Store root directory.
        storage: Document storage backend (local filesystem by default).

    Returns:
        The existing or newly created FeatureStore index.

    Example:
        >>> fstore = open_store("./fstore")
        >>> fstore.root_path
        './fstore'
    """
    storage = db_storage.resolve_storage(storage)
    root = str(root_path)
    if storage.exists(index_path(root)):
        logger.info(f"Store {root} already exists, returning existing store")
        return read_store(root, storage)

    logger.info(f"Creating store at {root}")
    storage.mkdir(root)
    fstore = db_models.FeatureStore(
        store=db_models.StoreInfo(root_path=root),
        collections=[],
    )
    return persist_store(fstore, storage)


def summarise(fstore: db_models.FeatureStore) -> str:
    """Describe a store and its collections in a few lines of text."""
    lines = [f"FeatureStore {fstore.root_path}"]
    if not fstore.collections:
        lines.append("- no collections")
    for collection in fstore.collections:
        lines.append(
            f"- {collection.id}: {len(collection.features)} features, "
            f"{len(collection.property_attributes)} attributes"
        )
    summary = "\n".join(lines)
    logger.info(summary)
    return summary
