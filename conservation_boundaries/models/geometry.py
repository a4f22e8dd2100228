"""Geometry data model: Point, Polygon, MultiPolygon.

Coordinates are WGS 84 ``(lng, lat)`` pairs in decimal degrees, in the
same order as GeoJSON.  A ``Polygon``'s first ring is its outer boundary,
any further rings are holes.  Every ring is explicitly closed and has at
least four points; ``validate_ring`` enforces that and never repairs input.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from conservation_boundaries.core.constants import MIN_RING_POINTS
from conservation_boundaries.core.exceptions import InvalidGeometryError

Coordinate: TypeAlias = tuple[float, float]
Ring: TypeAlias = list[Coordinate]


@dataclass(frozen=True, slots=True)
class Point:
    """A single location, used as a placeholder before a boundary exists."""

    lng: float
    lat: float

    type = "Point"

    def to_geojson(self) -> dict[str, Any]:
        return {"type": "Point", "coordinates": [self.lng, self.lat]}


@dataclass(frozen=True, slots=True)
class Polygon:
    """A polygon as a list of rings (outer boundary first, then holes)."""

    rings: list[Ring] = field(default_factory=list)

    type = "Polygon"

    @property
    def exterior(self) -> Ring:
        """The outer boundary ring (empty list for an empty polygon)."""
        return self.rings[0] if self.rings else []

    @property
    def holes(self) -> list[Ring]:
        return self.rings[1:]

    def to_geojson(self) -> dict[str, Any]:
        return {"type": "Polygon", "coordinates": _rings_to_lists(self.rings)}


@dataclass(frozen=True, slots=True)
class MultiPolygon:
    """Several disjoint (or, after flat concatenation, overlapping) polygons."""

    polygons: list[Polygon] = field(default_factory=list)

    type = "MultiPolygon"

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "MultiPolygon",
            "coordinates": [_rings_to_lists(p.rings) for p in self.polygons],
        }


Geometry: TypeAlias = Point | Polygon | MultiPolygon


# ---------------------------------------------------------------------------
# GeoJSON conversion
# ---------------------------------------------------------------------------


def geometry_from_geojson(data: Mapping[str, Any]) -> Geometry:
    """Parse a GeoJSON geometry object into a ``Geometry``.

    Only the structure is checked here (types, nesting, numeric pairs);
    ring closure and size are checked by ``validate_geometry``.

    Raises:
        InvalidGeometryError: If the type is unsupported or the coordinate
            nesting does not match it.
    """
    if not isinstance(data, Mapping):
        msg = f"Geometry must be a mapping, got {type(data).__name__}"
        raise InvalidGeometryError(msg)

    geometry_type = data.get("type")
    coordinates = data.get("coordinates")

    if geometry_type == "Point":
        lng, lat = _parse_coordinate(coordinates)
        return Point(lng=lng, lat=lat)
    if geometry_type == "Polygon":
        return _parse_polygon(coordinates)
    if geometry_type == "MultiPolygon":
        if not isinstance(coordinates, Sequence) or isinstance(coordinates, str):
            msg = "MultiPolygon coordinates must be a list of polygons"
            raise InvalidGeometryError(msg)
        return MultiPolygon(polygons=[_parse_polygon(p) for p in coordinates])

    msg = f"Unsupported geometry type: {geometry_type!r}"
    raise InvalidGeometryError(msg)


def _parse_polygon(coordinates: object) -> Polygon:
    if not isinstance(coordinates, Sequence) or isinstance(coordinates, str):
        msg = "Polygon coordinates must be a list of rings"
        raise InvalidGeometryError(msg)
    rings: list[Ring] = []
    for ring in coordinates:
        if not isinstance(ring, Sequence) or isinstance(ring, str):
            msg = "Polygon ring must be a list of coordinate pairs"
            raise InvalidGeometryError(msg)
        rings.append([_parse_coordinate(c) for c in ring])
    return Polygon(rings=rings)


def _parse_coordinate(value: object) -> Coordinate:
    if not isinstance(value, Sequence) or isinstance(value, str) or len(value) < 2:
        msg = f"Coordinate must be a [lng, lat] pair, got {value!r}"
        raise InvalidGeometryError(msg)
    try:
        return (float(value[0]), float(value[1]))
    except (TypeError, ValueError) as exc:
        msg = f"Coordinate values must be numeric, got {value!r}"
        raise InvalidGeometryError(msg) from exc


def _rings_to_lists(rings: list[Ring]) -> list[list[list[float]]]:
    return [[[x, y] for x, y in ring] for ring in rings]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_ring(ring: Sequence[Coordinate], *, context: str = "ring") -> None:
    """Validate ring size, closure and coordinate finiteness.

    Raises:
        InvalidGeometryError: If the ring has fewer than four points, is not
            closed, or contains NaN / infinite coordinates.
    """
    if len(ring) < MIN_RING_POINTS:
        msg = (
            f"Insufficient points in {context}: need at least "
            f"{MIN_RING_POINTS}, got {len(ring)}"
        )
        raise InvalidGeometryError(msg)
    for x, y in ring:
        if not (math.isfinite(x) and math.isfinite(y)):
            msg = f"Non-finite coordinate ({x}, {y}) in {context}"
            raise InvalidGeometryError(msg)
    if tuple(ring[0]) != tuple(ring[-1]):
        msg = f"Unclosed {context}: first point {ring[0]} != last point {ring[-1]}"
        raise InvalidGeometryError(msg)


def validate_geometry(geometry: Geometry) -> None:
    """Validate every ring of a geometry.

    Raises:
        InvalidGeometryError: On an empty MultiPolygon or the first malformed
            ring or coordinate.
    """
    if isinstance(geometry, Point):
        if not (math.isfinite(geometry.lng) and math.isfinite(geometry.lat)):
            msg = f"Non-finite point coordinate ({geometry.lng}, {geometry.lat})"
            raise InvalidGeometryError(msg)
        return
    if isinstance(geometry, MultiPolygon) and not geometry.polygons:
        msg = "MultiPolygon has no polygons"
        raise InvalidGeometryError(msg)
    for p_index, polygon in enumerate(polygons_of(geometry)):
        if not polygon.rings:
            msg = f"Polygon {p_index} has no rings"
            raise InvalidGeometryError(msg)
        for r_index, ring in enumerate(polygon.rings):
            validate_ring(ring, context=f"polygon {p_index} ring {r_index}")


# ---------------------------------------------------------------------------
# Traversal helpers
# ---------------------------------------------------------------------------


def is_areal(geometry: Geometry | None) -> bool:
    """Whether the geometry is a Polygon or MultiPolygon."""
    return isinstance(geometry, (Polygon, MultiPolygon))


def polygons_of(geometry: Geometry) -> list[Polygon]:
    """The constituent polygons of a geometry (empty for a Point)."""
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return list(geometry.polygons)
    return []


def outer_rings(geometry: Geometry) -> list[Ring]:
    """The outer ring of every constituent polygon."""
    return [p.exterior for p in polygons_of(geometry) if p.rings]


def vertex_count(geometry: Geometry) -> int:
    """Total number of coordinate pairs across all rings."""
    if isinstance(geometry, Point):
        return 1
    return sum(len(ring) for polygon in polygons_of(geometry) for ring in polygon.rings)
