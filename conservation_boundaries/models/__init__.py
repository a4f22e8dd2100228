"""Data models and schemas.

Defines the data structures used throughout the pipeline:
- Geometry: Point, Polygon, MultiPolygon and ring validation
- SourceFeature: One feature of a third-party boundary collection
- SiteRecord: The persisted per-site record
- RunSummary: Per-run outcome counters and failures
"""

from conservation_boundaries.models.geometry import (
    Geometry,
    MultiPolygon,
    Point,
    Polygon,
    geometry_from_geojson,
    validate_geometry,
    validate_ring,
)

__all__ = [
    "Geometry",
    "MultiPolygon",
    "Point",
    "Polygon",
    "geometry_from_geojson",
    "validate_geometry",
    "validate_ring",
]
