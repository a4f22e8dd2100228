"""Conservation boundary geometry core.

Simplifies, measures, matches and reconciles conservation-area boundary
geometries (GeoJSON, WGS 84) into per-site records consumed by a map
front end.
"""

__version__ = "0.1.0"
