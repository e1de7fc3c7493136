"""Document storage backends for the feature store.

Storage backends read and write whole JSON documents addressed by path.
The local backend writes atomically (temporary file in the same directory,
fsync, then rename over the target) so a failed write never leaves a
partially written index behind. The in-memory backend serves tests and
local experiments.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
import tempfile
from typing import TYPE_CHECKING, Any, Protocol

from featurestore.core import exceptions

if TYPE_CHECKING:
    from featurestore.core import config

logger = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]


class DocumentStorageProtocol(Protocol):
    """Protocol interface for reading and writing store documents.

    Implementations persist JSON-compatible documents under a hierarchical
    path namespace, supporting both in-memory (testing) and local
    filesystem (production) backends.
    """

    def exists(self, path: PathLike) -> bool: ...

    def mkdir(self, path: PathLike) -> None: ...

    def read_document(self, path: PathLike) -> Any: ...

    def write_document(self, path: PathLike, document: Any) -> None: ...


class InMemoryDocumentStorage(DocumentStorageProtocol):
    """Simple in-memory storage for tests and local development.

    Documents are kept as serialised JSON text so callers never share
    mutable structures with the store. Data is lost when the process exits.
    Writes fail like the filesystem would when the parent directory has not
    been created.
    """

    def __init__(self) -> None:
        """Initialize empty storage with only the filesystem root."""
        self._documents: dict[pathlib.PurePath, str] = {}
        self._directories: set[pathlib.PurePath] = {pathlib.PurePosixPath("/")}

    @staticmethod
    def _key(path: PathLike) -> pathlib.PurePath:
        return pathlib.PurePosixPath(os.path.abspath(path))

    def exists(self, path: PathLike) -> bool:
        key = self._key(path)
        return key in self._documents or key in self._directories

    def mkdir(self, path: PathLike) -> None:
        key = self._key(path)
        if key in self._documents:
            raise FileExistsError(f"Not a directory: {path}")
        self._directories.add(key)
        self._directories.update(key.parents)

    def read_document(self, path: PathLike) -> Any:
        key = self._key(path)
        if key not in self._documents:
            raise exceptions.NotFoundError(f"Document not found: {path}")
        return json.loads(self._documents[key])

    def write_document(self, path: PathLike, document: Any) -> None:
        key = self._key(path)
        if key.parent not in self._directories:
            raise FileNotFoundError(f"No such directory: {key.parent}")
        self._documents[key] = json.dumps(document)

    def paths(self) -> list[str]:
        """List every stored document path, sorted."""
        return sorted(str(key) for key in self._documents)


class LocalDocumentStorage(DocumentStorageProtocol):
    """Local filesystem storage with atomic document writes."""

    def exists(self, path: PathLike) -> bool:
        return pathlib.Path(path).exists()

    def mkdir(self, path: PathLike) -> None:
        pathlib.Path(path).mkdir(parents=True, exist_ok=True)

    def read_document(self, path: PathLike) -> Any:
        """Read and parse a JSON document.

        Raises:
            NotFoundError: If no document exists at ``path``.
            OSError: On any other read failure.
            ValueError: If the file does not hold valid JSON.
        """
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            raise exceptions.NotFoundError(f"Document not found: {path}") from None

    def write_document(self, path: PathLike, document: Any) -> None:
        """Serialise ``document`` and atomically replace the file at ``path``.

        The parent directory must already exist.

        Raises:
            OSError: If the temporary file cannot be written or renamed.
        """
        target = pathlib.Path(path)
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                json.dump(document, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug(f"Wrote {target}")


def get_document_storage(
    settings: config.Settings | None = None,
) -> DocumentStorageProtocol:
    """Factory function to create the document storage backend.

    Args:
        settings: Application settings. The local backend reads its paths
            from each call and needs no configuration of its own.

    Returns:
        LocalDocumentStorage instance for production use.
    """
    return LocalDocumentStorage()


def resolve_storage(
    storage: DocumentStorageProtocol | None,
) -> DocumentStorageProtocol:
    """Return ``storage`` or the default backend when None."""
    return storage if storage is not None else get_document_storage()
