"""Centroid, area and approximate-boundary synthesis.

These metrics are deterministic flat-projection approximations, used to
validate reconciled geometries and to stand in for missing boundaries.
They are not geodesically exact:

- ``planar_area_km2`` multiplies square degrees by 111.32², so it
  overstates area by roughly ``1 / cos(latitude)`` and must not be read as
  a survey figure at high latitudes or over wide longitude spans.
- ``geodesic_area_km2`` uses ``pyproj.Geod`` on the WGS 84 ellipsoid and
  is what authoritative boundaries are checked against.

``generate_approximate_polygon`` is seeded from a CRC-32 of the site id,
so the same site yields the same shape on every run and in every process.
"""

from __future__ import annotations

import logging
import math
import random
import zlib
from collections.abc import Sequence

from conservation_boundaries.core.constants import (
    DEFAULT_MAX_MULTIPART_PARTS,
    DEFAULT_MULTIPART_THRESHOLD_KM2,
    KM2_PER_APPROXIMATION_POINT,
    KM2_PER_SQUARE_DEGREE,
    KM_PER_DEGREE,
    MAX_APPROXIMATION_POINTS,
    MIN_APPROXIMATION_POINTS,
    MULTIPART_OFFSET_DEG,
)
from conservation_boundaries.core.exceptions import AreaValidationError, InvalidGeometryError
from conservation_boundaries.models.geometry import (
    Coordinate,
    Geometry,
    MultiPolygon,
    Point,
    Polygon,
    Ring,
    outer_rings,
    polygons_of,
)

logger = logging.getLogger("conservation_boundaries.activities.geometry_metrics")

# Radius varies by x[0.8, 1.2]; angle wobbles by at most +/-0.15 rad.
RADIUS_VARIATION = 0.4
ANGLE_WOBBLE_RAD = 0.3
SQ_METRES_PER_KM2 = 1_000_000.0


# ---------------------------------------------------------------------------
# Centroid
# ---------------------------------------------------------------------------


def centroid(geometry: Geometry) -> tuple[float, float]:
    """Unweighted vertex mean of all outer rings, as ``(lat, lng)``.

    For a MultiPolygon every outer-ring vertex of every part is pooled
    before averaging (not averaged per part).  Holes are ignored and the
    closing vertex of each ring is counted once.

    Raises:
        InvalidGeometryError: If the geometry has no vertices.
    """
    if isinstance(geometry, Point):
        return (geometry.lat, geometry.lng)

    sum_lng = 0.0
    sum_lat = 0.0
    count = 0
    for ring in outer_rings(geometry):
        vertices = _open_ring(ring)
        for lng, lat in vertices:
            sum_lng += lng
            sum_lat += lat
        count += len(vertices)

    if count == 0:
        msg = "Cannot compute centroid of a geometry without vertices"
        raise InvalidGeometryError(msg)
    return (sum_lat / count, sum_lng / count)


def _open_ring(ring: Sequence[Coordinate]) -> Sequence[Coordinate]:
    if len(ring) > 1 and tuple(ring[0]) == tuple(ring[-1]):
        return ring[:-1]
    return ring


# ---------------------------------------------------------------------------
# Area
# ---------------------------------------------------------------------------


def planar_ring_area_km2(ring: Sequence[Coordinate]) -> float:
    """Flat-projection ring area in km² (trapezoid rule, winding agnostic)."""
    area = 0.0
    for (lng1, lat1), (lng2, lat2) in zip(ring, ring[1:]):
        area += (lng2 - lng1) * (lat2 + lat1) / 2
    return abs(area) * KM2_PER_SQUARE_DEGREE


def planar_area_km2(geometry: Geometry) -> float:
    """Flat-projection area in km²: outer rings minus holes, summed over parts.

    Parts of a flat-concatenated MultiPolygon that overlap are counted
    twice.
    """
    total = 0.0
    for polygon in polygons_of(geometry):
        if not polygon.rings:
            continue
        part = planar_ring_area_km2(polygon.exterior)
        for hole in polygon.holes:
            part -= planar_ring_area_km2(hole)
        total += max(part, 0.0)
    return total


def geodesic_area_km2(geometry: Geometry) -> float:
    """Ellipsoidal (WGS 84) area in km², holes subtracted."""
    from pyproj import Geod

    geod = Geod(ellps="WGS84")

    total_m2 = 0.0
    for polygon in polygons_of(geometry):
        if not polygon.rings:
            continue
        part = abs(_ring_geodesic_area_m2(geod, polygon.exterior))
        for hole in polygon.holes:
            part -= abs(_ring_geodesic_area_m2(geod, hole))
        total_m2 += max(part, 0.0)
    return total_m2 / SQ_METRES_PER_KM2


def _ring_geodesic_area_m2(geod: object, ring: Ring) -> float:
    lons = [c[0] for c in ring]
    lats = [c[1] for c in ring]
    area_m2, _perimeter = geod.polygon_area_perimeter(lons, lats)  # type: ignore[attr-defined]
    return float(area_m2)


def area_error(actual: float, expected: float) -> float:
    """Relative error of ``actual`` against ``expected``."""
    if expected == 0:
        return 0.0 if actual == 0 else math.inf
    return abs(actual - expected) / abs(expected)


def validate_area(
    actual_km2: float,
    expected_km2: float,
    tolerance: float,
    *,
    site_id: str = "",
) -> float:
    """Check an area against a reference area.

    Returns:
        The relative error.

    Raises:
        AreaValidationError: If the relative error exceeds ``tolerance``.
    """
    error = area_error(actual_km2, expected_km2)
    if error > tolerance:
        msg = (
            f"Area {actual_km2:.2f} km² deviates {error * 100:.1f}% from reference "
            f"{expected_km2:.2f} km² (allowed {tolerance * 100:.0f}%)"
        )
        raise AreaValidationError(
            msg, actual_km2=actual_km2, expected_km2=expected_km2, site_id=site_id
        )
    return error


# ---------------------------------------------------------------------------
# Approximate boundary synthesis
# ---------------------------------------------------------------------------


def stable_seed(site_id: str) -> int:
    """Deterministic 32-bit seed for a site id."""
    return zlib.crc32(site_id.encode("utf-8"))


def default_point_count(area_km2: float) -> int:
    """More vertices for larger areas, between 24 and 100."""
    return int(
        min(
            max(MIN_APPROXIMATION_POINTS, area_km2 // KM2_PER_APPROXIMATION_POINT),
            MAX_APPROXIMATION_POINTS,
        )
    )


def generate_approximate_polygon(
    center_lat: float,
    center_lng: float,
    area_km2: float,
    num_points: int | None = None,
    *,
    site_id: str = "",
    multipart_threshold_km2: float = DEFAULT_MULTIPART_THRESHOLD_KM2,
    max_parts: int = DEFAULT_MAX_MULTIPART_PARTS,
) -> Polygon | MultiPolygon:
    """Synthesise an irregular closed boundary of a given area.

    The ring samples ``num_points`` angles around the centre at the
    equivalent-area radius ``sqrt(area / pi)``, with longitude stretched by
    ``1 / cos(lat)`` and radius / angle perturbed from a generator seeded by
    ``site_id``.  The offsets are then rescaled about the centre so that
    ``planar_area_km2`` of the result reproduces ``area_km2``.

    Areas above ``multipart_threshold_km2`` are split into
    ``min(ceil(area / threshold), max_parts)`` equal parts whose centres
    step diagonally by 0.5° and are returned as a MultiPolygon.

    Raises:
        InvalidGeometryError: If the area is not positive, fewer than three
            points are requested, or the centre is not a usable latitude.
    """
    if not math.isfinite(area_km2) or area_km2 <= 0:
        msg = f"Area must be a positive number of km², got {area_km2}"
        raise InvalidGeometryError(msg, site_id=site_id)
    if not (math.isfinite(center_lat) and math.isfinite(center_lng)) or abs(center_lat) >= 90:
        msg = f"Invalid centre ({center_lat}, {center_lng})"
        raise InvalidGeometryError(msg, site_id=site_id)
    if num_points is not None and num_points < 3:
        msg = f"Need at least 3 points for a polygon, got {num_points}"
        raise InvalidGeometryError(msg, site_id=site_id)

    seed = stable_seed(site_id)

    if area_km2 > multipart_threshold_km2 and max_parts > 1:
        parts = min(math.ceil(area_km2 / multipart_threshold_km2), max_parts)
        part_area = area_km2 / parts
        polygons = []
        for i in range(parts):
            offset = (i - parts / 2) * MULTIPART_OFFSET_DEG
            polygons.append(
                _approximate_ring_polygon(
                    center_lat + offset, center_lng + offset, part_area, num_points, seed + i
                )
            )
        logger.debug(
            "Approximate multipolygon | site=%s | area=%.1f km² | parts=%d",
            site_id,
            area_km2,
            parts,
        )
        return MultiPolygon(polygons=polygons)

    return _approximate_ring_polygon(center_lat, center_lng, area_km2, num_points, seed)


def _approximate_ring_polygon(
    center_lat: float,
    center_lng: float,
    area_km2: float,
    num_points: int | None,
    seed: int,
) -> Polygon:
    count = num_points if num_points is not None else default_point_count(area_km2)
    rng = random.Random(seed)

    radius_km = math.sqrt(area_km2 / math.pi)
    radius_lat = radius_km / KM_PER_DEGREE
    radius_lng = radius_km / (KM_PER_DEGREE * math.cos(math.radians(center_lat)))

    # Wobble never exceeds the angular step, so vertices stay in angular order
    # and the ring cannot self-intersect.
    step = 2 * math.pi / count
    wobble_span = min(ANGLE_WOBBLE_RAD, step * 0.9)

    offsets: list[tuple[float, float]] = []
    for i in range(count):
        angle = i * step
        variation = 1 - RADIUS_VARIATION / 2 + rng.random() * RADIUS_VARIATION
        wobble = (rng.random() - 0.5) * wobble_span
        offsets.append(
            (
                radius_lng * variation * math.cos(angle + wobble),
                radius_lat * variation * math.sin(angle + wobble),
            )
        )

    raw_ring = [(center_lng + dx, center_lat + dy) for dx, dy in offsets]
    raw_ring.append(raw_ring[0])
    raw_area = planar_ring_area_km2(raw_ring)

    scale = math.sqrt(area_km2 / raw_area) if raw_area > 0 else 1.0
    ring = [(center_lng + dx * scale, center_lat + dy * scale) for dx, dy in offsets]
    ring.append(ring[0])
    return Polygon(rings=[ring])
