"""Document models and storage backends.

This package holds the typed documents the feature store persists
(models) and the storage backends that read and write them (storage),
supporting both the local filesystem and an in-memory backend for tests.

Example:
    Open a store on an in-memory backend:
        >>> from featurestore.db import storage
        >>> from featurestore.services import store
        >>> backend = storage.InMemoryDocumentStorage()
        >>> fstore = store.open_store("/fstore", backend)
"""
