"""Coordinate normalisation for GeoJSON geometries.

Geometries are canonicalised before they are fingerprinted and written:

1. Coordinates are rounded to a fixed number of decimal places.
2. Polygon rings are rewound so outer rings run clockwise and holes run
   counter-clockwise. This is the store's own convention and deliberately
   the opposite of the RFC 7946 right-hand rule.

Both steps are idempotent, so normalising an already normalised geometry
returns an equal document. All functions accept and return plain dicts and
never mutate their input.

Example:
    >>> from featurestore.utils import geometry
    >>> square = {
    ...     "type": "Polygon",
    ...     "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
    ... }
    >>> geometry.normalize(square)["coordinates"][0]
    [[0, 0], [0, 1], [1, 1], [1, 0], [0, 0]]
    >>> geometry.bounding_box(square)
    [0, 0, 1, 1]
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

BBox = list[float]

_COORDINATE_DEPTH = {
    "Point": 0,
    "MultiPoint": 1,
    "LineString": 1,
    "MultiLineString": 2,
    "Polygon": 2,
    "MultiPolygon": 3,
}


def _round_coordinates(coordinates: Any, precision: int) -> Any:
    if coordinates and isinstance(coordinates[0], list):
        return [_round_coordinates(c, precision) for c in coordinates]
    return [round(value, precision) for value in coordinates]


def set_precision(geometry: dict[str, Any], precision: int = 6) -> dict[str, Any]:
    """Round every coordinate of a geometry to ``precision`` decimals.

    Only ``type``, ``coordinates`` and ``geometries`` members are carried
    over; any input ``bbox`` is dropped because it may no longer match the
    rounded coordinates.

    Args:
        geometry: GeoJSON geometry dict (any type, including collections).
        precision: Number of decimal places to keep.

    Returns:
        A new geometry dict with rounded coordinates.
    """
    if geometry["type"] == "GeometryCollection":
        return {
            "type": "GeometryCollection",
            "geometries": [
                set_precision(g, precision) for g in geometry["geometries"]
            ],
        }
    return {
        "type": geometry["type"],
        "coordinates": _round_coordinates(geometry["coordinates"], precision),
    }


def ring_area(ring: list[list[float]]) -> float:
    """Return twice the signed area of a ring; positive means clockwise."""
    area = 0.0
    for i in range(len(ring)):
        x1, y1 = ring[i - 1][0], ring[i - 1][1]
        x2, y2 = ring[i][0], ring[i][1]
        area += (x2 - x1) * (y1 + y2)
    return area


def _wind_ring(ring: list[list[float]], clockwise: bool) -> list[list[float]]:
    area = ring_area(ring)
    # Degenerate rings have no orientation and are left untouched.
    if area == 0 or (area > 0) == clockwise:
        return [list(position) for position in ring]
    return [list(position) for position in reversed(ring)]


def _wind_polygon(rings: list[list[list[float]]]) -> list[list[list[float]]]:
    return [
        _wind_ring(ring, clockwise=(index == 0))
        for index, ring in enumerate(rings)
    ]


def rewind(geometry: dict[str, Any]) -> dict[str, Any]:
    """Apply the store winding convention to polygon rings.

    Outer rings are made clockwise and interior rings counter-clockwise.
    Non-polygonal geometries are returned as copies.

    Args:
        geometry: GeoJSON geometry dict.

    Returns:
        A new geometry dict with rewound rings.
    """
    kind = geometry["type"]
    if kind == "GeometryCollection":
        return {
            "type": kind,
            "geometries": [rewind(g) for g in geometry["geometries"]],
        }
    if kind == "Polygon":
        coordinates: Any = _wind_polygon(geometry["coordinates"])
    elif kind == "MultiPolygon":
        coordinates = [_wind_polygon(p) for p in geometry["coordinates"]]
    else:
        coordinates = geometry["coordinates"]
    return {"type": kind, "coordinates": coordinates}


def normalize(geometry: dict[str, Any], precision: int = 6) -> dict[str, Any]:
    """Round coordinates, then rewind rings."""
    return rewind(set_precision(geometry, precision))


def iter_positions(geometry: dict[str, Any]) -> Iterator[list[float]]:
    """Yield every position of a geometry in document order."""
    if geometry["type"] == "GeometryCollection":
        for member in geometry["geometries"]:
            yield from iter_positions(member)
        return
    depth = _COORDINATE_DEPTH[geometry["type"]]
    stack = [(geometry["coordinates"], depth)]
    while stack:
        coordinates, level = stack.pop()
        if level == 0:
            yield coordinates
        else:
            stack.extend((c, level - 1) for c in reversed(coordinates))


def bounding_box(geometry: dict[str, Any]) -> BBox | None:
    """Compute the 2D extent ``[minx, miny, maxx, maxy]`` of a geometry.

    Returns:
        The bounding box, or None for geometries without positions
        (e.g. an empty GeometryCollection or MultiPoint).
    """
    positions = list(iter_positions(geometry))
    if not positions:
        return None
    xs = [p[0] for p in positions]
    ys = [p[1] for p in positions]
    return [min(xs), min(ys), max(xs), max(ys)]
