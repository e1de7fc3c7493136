"""Data models for feature store documents.

This module defines the typed documents persisted by the store and the
GeoJSON inputs it accepts. Every model validates on construction; parse
helpers convert pydantic failures into
:class:`featurestore.core.exceptions.ValidationError`.

Store-owned documents (the root index, collection entries, attribute
descriptors, record files and geometries) forbid unknown members. Incoming
GeoJSON Feature and FeatureCollection documents keep foreign members as
RFC 7946 allows.

Example:
    Validate a geometry and build a store index:
        >>> from featurestore.db import models
        >>> point = models.parse_geometry(
        ...     {"type": "Point", "coordinates": [15.97, 45.81]}
        ... )
        >>> store = models.FeatureStore(
        ...     store=models.StoreInfo(root_path="./fstore"),
        ...     collections=[],
        ... )
        >>> store.to_document()
        {'store': {'root_path': './fstore'}, 'collections': []}
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

import pydantic

from featurestore.core import exceptions

BBox = list[float]
Position = Annotated[list[float], pydantic.Field(min_length=2)]
GEOMETRY_TYPES = frozenset(
    {
        "Point",
        "MultiPoint",
        "LineString",
        "MultiLineString",
        "Polygon",
        "MultiPolygon",
        "GeometryCollection",
    }
)


class Document(pydantic.BaseModel):
    """Base for store-owned documents: strict shape, JSON round-trip."""

    model_config = pydantic.ConfigDict(extra="forbid")

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-compatible dict written to disk."""
        return self.model_dump(mode="json")


def _check_linear_ring(ring: list[list[float]]) -> list[list[float]]:
    if len(ring) < 4:
        raise ValueError("linear ring must have at least 4 positions")
    if ring[0] != ring[-1]:
        raise ValueError("linear ring must be closed")
    return ring


class _Geometry(Document):
    model_config = pydantic.ConfigDict(extra="forbid", allow_inf_nan=False)

    bbox: BBox | None = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class Point(_Geometry):
    type: Literal["Point"]
    coordinates: Position


class MultiPoint(_Geometry):
    type: Literal["MultiPoint"]
    coordinates: list[Position]


class LineString(_Geometry):
    type: Literal["LineString"]
    coordinates: Annotated[list[Position], pydantic.Field(min_length=2)]


class MultiLineString(_Geometry):
    type: Literal["MultiLineString"]
    coordinates: list[Annotated[list[Position], pydantic.Field(min_length=2)]]


class Polygon(_Geometry):
    type: Literal["Polygon"]
    coordinates: list[list[Position]]

    @pydantic.field_validator("coordinates")
    @classmethod
    def _closed_rings(cls, rings: list[list[list[float]]]) -> list[list[list[float]]]:
        return [_check_linear_ring(ring) for ring in rings]


class MultiPolygon(_Geometry):
    type: Literal["MultiPolygon"]
    coordinates: list[list[list[Position]]]

    @pydantic.field_validator("coordinates")
    @classmethod
    def _closed_rings(
        cls, polygons: list[list[list[list[float]]]]
    ) -> list[list[list[list[float]]]]:
        return [[_check_linear_ring(ring) for ring in rings] for rings in polygons]


class GeometryCollection(_Geometry):
    type: Literal["GeometryCollection"]
    geometries: list[Geometry]


Geometry = Annotated[
    Point
    | MultiPoint
    | LineString
    | MultiLineString
    | Polygon
    | MultiPolygon
    | GeometryCollection,
    pydantic.Field(discriminator="type"),
]

GeometryCollection.model_rebuild()

_geometry_adapter: pydantic.TypeAdapter[Any] = pydantic.TypeAdapter(Geometry)


class Feature(pydantic.BaseModel):
    """An incoming GeoJSON Feature."""

    model_config = pydantic.ConfigDict(extra="allow")

    type: Literal["Feature"]
    id: str | int | None = None
    geometry: Geometry | None = None
    properties: dict[str, Any] | None = None
    bbox: BBox | None = None


class FeatureCollection(pydantic.BaseModel):
    """An incoming GeoJSON FeatureCollection."""

    model_config = pydantic.ConfigDict(extra="allow")

    type: Literal["FeatureCollection"]
    features: list[Feature]
    bbox: BBox | None = None


class CollectionMetadata(Document):
    """Descriptive metadata of a collection, used for display and citation.

    Attributes:
        name: Display name of the collection.
        license: License text or URL.
        url: URL with more information.
        version: Version, preferably semantic ("1.0.0").
        keywords: Keywords describing the collection.
        description: Short description.
        language: Main language, e.g. "en".
        alt_name: Alternative (short) name.
        citation: Citation text.
        spatial_coverage: Geographic coverage, e.g. "Global land".
        temporal_coverage: Temporal coverage, e.g. "approx. 2018".
        data_lineage: Statements describing the processing history.
    """

    name: str | None = None
    license: str | None = None
    url: str | None = None
    version: str | None = None
    keywords: list[str] = []
    description: str | None = None
    language: str | None = None
    alt_name: str | None = None
    citation: str | None = None
    spatial_coverage: str | None = None
    temporal_coverage: str | None = None
    data_lineage: list[str] = []


class AttributeDescriptor(Document):
    """Describes one property field of the records in a collection.

    Attributes:
        short_name: Name of the property as used in record properties.
        standard_name: CF-style standard name.
        units: UDUNITS-style units, "1" when dimensionless.
        long_name: Human-readable name suitable for display.
        description: Short description of the property.
        missing_value: Sentinel value that represents missing data.
        data_type: Data type of the values ("string", "number", ...).
        url: URL giving more information about the property.
    """

    short_name: str = pydantic.Field(min_length=1)
    standard_name: str
    units: str
    long_name: str
    description: str
    missing_value: str | int | float | None
    data_type: str
    url: str


class LookupEntry(Document):
    """Index-resident projection of a record used to answer queries."""

    type: Literal["Feature"] = "Feature"
    id: str
    properties: dict[str, Any]


class Record(Document):
    """Record file: attributes and bbox, geometry kept in its own file."""

    type: Literal["Feature"] = "Feature"
    id: str
    geometry: None = None
    properties: dict[str, Any]
    bbox: BBox | None = None

    def to_document(self) -> dict[str, Any]:
        document = self.model_dump(mode="json")
        if document["bbox"] is None:
            del document["bbox"]
        return document


class CollectionEntry(Document):
    """A collection as stored in the root index."""

    id: str = pydantic.Field(min_length=1)
    collection_metadata: CollectionMetadata | None = None
    property_attributes: list[AttributeDescriptor]
    features: list[LookupEntry] = []

    @pydantic.field_validator("id")
    @classmethod
    def _single_path_segment(cls, value: str) -> str:
        if "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError("collection id must be a single path segment")
        return value


class StoreInfo(Document):
    root_path: str


class FeatureStore(Document):
    """The root index document of a store."""

    store: StoreInfo
    collections: list[CollectionEntry] = []

    @property
    def root_path(self) -> str:
        return self.store.root_path

    def collection_ids(self) -> list[str]:
        return [collection.id for collection in self.collections]

    def find_collection(self, collection_id: str) -> CollectionEntry | None:
        """Linear scan for a collection entry by id."""
        for collection in self.collections:
            if collection.id == collection_id:
                return collection
        return None


def _parse(model: type[pydantic.BaseModel], obj: Any, what: str) -> Any:
    try:
        return model.model_validate(obj)
    except pydantic.ValidationError as e:
        raise exceptions.ValidationError.from_pydantic(e, what) from e


def parse_geometry(obj: Any) -> _Geometry:
    """Validate a GeoJSON geometry dict.

    Raises:
        ValidationError: If the geometry is malformed.
    """
    try:
        return _geometry_adapter.validate_python(obj)
    except pydantic.ValidationError as e:
        raise exceptions.ValidationError.from_pydantic(e, "geometry") from e


def parse_feature(obj: Any) -> Feature:
    return _parse(Feature, obj, "feature")


def parse_feature_collection(obj: Any) -> FeatureCollection:
    return _parse(FeatureCollection, obj, "feature collection")


def parse_store(obj: Any) -> FeatureStore:
    return _parse(FeatureStore, obj, "store index")


def parse_record(obj: Any) -> Record:
    return _parse(Record, obj, "record")


def parse_collection_entry(obj: Any) -> CollectionEntry:
    return _parse(CollectionEntry, obj, "collection")


def parse_collection_metadata(obj: Any) -> CollectionMetadata:
    return _parse(CollectionMetadata, obj, "collection metadata")


def parse_attribute_descriptor(obj: Any) -> AttributeDescriptor:
    return _parse(AttributeDescriptor, obj, "attribute descriptor")
