"""Douglas-Peucker simplification of rings, polygons and multipolygons.

Reduces vertex count while keeping every original vertex within
``tolerance`` (geometry units, normally degrees) of the infinite line
through the anchor pair that discarded it.  The output is always a
subsequence of the input that keeps both endpoints.

The split search runs on an explicit stack of index ranges, so dense,
near-collinear rings that produce deep unbalanced splits cannot exhaust
the interpreter's recursion limit.

Closed rings never collapse below four points: when Douglas-Peucker would
leave fewer, the ring keeps its start, the vertex farthest from the start,
the vertex farthest from the line through those two, and its closing
point.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from conservation_boundaries.core.constants import DEFAULT_MAX_RING_POINTS, MIN_RING_POINTS
from conservation_boundaries.core.exceptions import SimplificationError
from conservation_boundaries.models.feature import SourceFeature, SourceFeatureCollection
from conservation_boundaries.models.geometry import (
    Geometry,
    MultiPolygon,
    Polygon,
    validate_ring,
    vertex_count,
)

if TYPE_CHECKING:
    from conservation_boundaries.models.geometry import Coordinate

logger = logging.getLogger("conservation_boundaries.activities.simplify_geometry")

P = TypeVar("P", bound=Sequence[float])


def perpendicular_distance(point: Coordinate, start: Coordinate, end: Coordinate) -> float:
    """Distance from ``point`` to the infinite line through ``start`` and ``end``.

    When ``start`` and ``end`` coincide (the anchor of a closed ring) the
    Euclidean distance to that single point is returned instead.
    """
    x, y = point[0], point[1]
    x1, y1 = start[0], start[1]
    x2, y2 = end[0], end[1]
    dx = x2 - x1
    dy = y2 - y1

    if dx == 0 and dy == 0:
        return math.hypot(x - x1, y - y1)

    return abs(dy * x - dx * y + x2 * y1 - y2 * x1) / math.hypot(dx, dy)


def simplify_ring(
    points: Sequence[P],
    tolerance: float,
    *,
    max_points: int = DEFAULT_MAX_RING_POINTS,
) -> list[P]:
    """Simplify a polyline or ring with Douglas-Peucker.

    Args:
        points: Ordered ``(x, y)`` pairs; at least one.
        tolerance: Maximum allowed deviation, ``>= 0``.
        max_points: Largest accepted input.

    Returns:
        A new list that is a subsequence of ``points`` containing both
        endpoints.  Inputs of one or two points are returned unchanged.

    Raises:
        SimplificationError: If ``points`` is empty, the tolerance is
            negative or not finite, or the input exceeds ``max_points``.
    """
    if not points:
        msg = "Cannot simplify an empty point sequence"
        raise SimplificationError(msg)
    if not math.isfinite(tolerance) or tolerance < 0:
        msg = f"Tolerance must be a finite number >= 0, got {tolerance}"
        raise SimplificationError(msg)
    if len(points) > max_points:
        msg = f"Ring has {len(points)} points, exceeding the limit of {max_points}"
        raise SimplificationError(msg)

    count = len(points)
    if count <= 2:
        return list(points)

    keep = [False] * count
    keep[0] = keep[-1] = True
    stack = [(0, count - 1)]

    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        start, end = points[first], points[last]
        max_distance = 0.0
        max_index = first
        for i in range(first + 1, last):
            distance = perpendicular_distance(points[i], start, end)
            if distance > max_distance:
                max_distance = distance
                max_index = i
        if max_distance > tolerance:
            keep[max_index] = True
            stack.append((max_index, last))
            stack.append((first, max_index))

    kept = [i for i in range(count) if keep[i]]
    if len(kept) < MIN_RING_POINTS and _is_closed_ring(points):
        kept = _minimal_ring_indices(points)

    return [points[i] for i in kept]


def _is_closed_ring(points: Sequence[Sequence[float]]) -> bool:
    return len(points) >= MIN_RING_POINTS and tuple(points[0]) == tuple(points[-1])


def _minimal_ring_indices(points: Sequence[Sequence[float]]) -> list[int]:
    """Indices of the smallest valid ring: start, two far vertices, close."""
    last = len(points) - 1
    start = points[0]

    far_index = 1
    far_distance = -1.0
    for i in range(1, last):
        distance = perpendicular_distance(points[i], start, start)
        if distance > far_distance:
            far_distance = distance
            far_index = i

    side_index = 1 if far_index != 1 else 2
    side_distance = -1.0
    far_point = points[far_index]
    for i in range(1, last):
        if i == far_index:
            continue
        distance = perpendicular_distance(points[i], start, far_point)
        if distance > side_distance:
            side_distance = distance
            side_index = i

    return sorted({0, far_index, side_index, last})


# ---------------------------------------------------------------------------
# Geometry-level simplification
# ---------------------------------------------------------------------------


def simplify_polygon(
    polygon: Polygon,
    tolerance: float,
    *,
    max_points: int = DEFAULT_MAX_RING_POINTS,
) -> Polygon:
    """Simplify every ring of a polygon.

    Raises:
        InvalidGeometryError: If any ring is malformed (validated before
            simplification, never silently dropped).
        SimplificationError: On an unusable tolerance or oversized ring.
    """
    rings = []
    for index, ring in enumerate(polygon.rings):
        validate_ring(ring, context=f"ring {index}")
        rings.append(simplify_ring(ring, tolerance, max_points=max_points))
    return Polygon(rings=rings)


def simplify_multipolygon(
    multipolygon: MultiPolygon,
    tolerance: float,
    *,
    max_points: int = DEFAULT_MAX_RING_POINTS,
) -> MultiPolygon:
    return MultiPolygon(
        polygons=[
            simplify_polygon(p, tolerance, max_points=max_points) for p in multipolygon.polygons
        ]
    )


def simplify_geometry(
    geometry: Geometry,
    tolerance: float,
    *,
    max_points: int = DEFAULT_MAX_RING_POINTS,
) -> Geometry:
    """Simplify a Polygon or MultiPolygon; any other geometry passes through."""
    if isinstance(geometry, Polygon):
        return simplify_polygon(geometry, tolerance, max_points=max_points)
    if isinstance(geometry, MultiPolygon):
        return simplify_multipolygon(geometry, tolerance, max_points=max_points)
    return geometry


# ---------------------------------------------------------------------------
# Whole-collection simplification
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SimplificationStats:
    """Vertex-count statistics for a simplified collection."""

    feature_count: int
    points_before: int
    points_after: int
    elapsed_s: float

    @property
    def reduction_pct(self) -> float:
        if self.points_before == 0:
            return 0.0
        return (1 - self.points_after / self.points_before) * 100


def simplify_feature_collection(
    collection: SourceFeatureCollection,
    tolerance: float,
    *,
    max_points: int = DEFAULT_MAX_RING_POINTS,
) -> tuple[SourceFeatureCollection, SimplificationStats]:
    """Simplify every feature geometry of a collection.

    Features without a geometry are carried over unchanged.

    Returns:
        The simplified collection and its vertex-count statistics.
    """
    started = time.perf_counter()
    points_before = 0
    points_after = 0
    features: list[SourceFeature] = []

    for feature in collection.features:
        geometry = feature.geometry
        if geometry is not None:
            points_before += vertex_count(geometry)
            geometry = simplify_geometry(geometry, tolerance, max_points=max_points)
            points_after += vertex_count(geometry)
        features.append(
            SourceFeature(properties=dict(feature.properties), geometry=geometry, index=feature.index)
        )

    stats = SimplificationStats(
        feature_count=len(features),
        points_before=points_before,
        points_after=points_after,
        elapsed_s=time.perf_counter() - started,
    )
    logger.info(
        "Collection simplified | source=%s | features=%d | tolerance=%g | "
        "points=%d->%d | reduction=%.1f%% | elapsed=%.2fs",
        collection.source,
        stats.feature_count,
        tolerance,
        stats.points_before,
        stats.points_after,
        stats.reduction_pct,
        stats.elapsed_s,
    )
    return SourceFeatureCollection(features=features, source=collection.source), stats
