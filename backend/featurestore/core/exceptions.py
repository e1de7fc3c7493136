"""Exception hierarchy for the feature store.

Missing documents raise NotFoundError and documents that fail their
structural shape check raise ValidationError. Both derive from
FeatureStoreError and from the matching built-in (LookupError, ValueError)
so callers can catch either. Filesystem failures are not wrapped and
propagate as the built-in OSError.

Example:
    Handle a missing collection:
        >>> from featurestore.core import exceptions
        >>> try:
        ...     collections.load_collection(store, "rivers")
        ... except exceptions.NotFoundError as e:
        ...     print(f"No such collection: {e}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pydantic


class FeatureStoreError(Exception):
    """Base class for all feature store errors."""


class NotFoundError(FeatureStoreError, LookupError):
    """Raised when a store, collection, record or geometry does not exist."""


class ValidationError(FeatureStoreError, ValueError):
    """Raised when a document does not match its declared structure.

    Example:
        Wrap a pydantic failure:
            >>> try:
            ...     models.parse_geometry({"type": "Point"})
            ... except ValidationError as e:
            ...     print(e)
    """

    @classmethod
    def from_pydantic(
        cls,
        error: pydantic.ValidationError,
        what: str,
    ) -> ValidationError:
        """Build a ValidationError from a pydantic error.

        Args:
            error: The pydantic validation error.
            what: Human-readable name of the document that failed.

        Returns:
            ValidationError whose message lists each failing location.
        """
        problems = "; ".join(
            f"{'.'.join(str(part) for part in item['loc']) or '<root>'}: "
            f"{item['msg']}"
            for item in error.errors()
        )
        return cls(f"Invalid {what}: {problems}")
