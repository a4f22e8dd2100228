"""Pure processing steps.

Each activity performs a single unit of work for the reconciler:
- simplify_geometry: Douglas-Peucker ring simplification
- geometry_metrics: Centroid, area and approximate-polygon synthesis
- match_features: Name-based matching of source features to sites
"""
