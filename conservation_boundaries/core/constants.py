"""Shared constants: single source of truth.

Unit conversions, default tolerances and the closed vocabularies used by
configuration and site metadata.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Unit conversions
# ---------------------------------------------------------------------------

KM_PER_DEGREE: float = 111.32
"""Kilometres per degree of latitude (and of longitude at the equator)."""

KM2_PER_SQUARE_DEGREE: float = KM_PER_DEGREE * KM_PER_DEGREE
"""Flat-projection conversion from square degrees to square kilometres."""

KM2_PER_HECTARE: float = 0.01
KM2_PER_ACRE: float = 0.0040468564224

# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

MIN_RING_POINTS: int = 4
"""Smallest valid closed ring: three distinct vertices plus the closing point."""

DEFAULT_MAX_RING_POINTS: int = 2_000_000

# ---------------------------------------------------------------------------
# Reconciliation defaults
# ---------------------------------------------------------------------------

DEFAULT_SIMPLIFY_TOLERANCE_DEG: float = 0.001
DEFAULT_SYNTHETIC_AREA_TOLERANCE: float = 0.15
DEFAULT_REFERENCE_AREA_TOLERANCE: float = 0.5
DEFAULT_MULTIPART_THRESHOLD_KM2: float = 5_000.0
DEFAULT_MAX_MULTIPART_PARTS: int = 5

MIN_APPROXIMATION_POINTS: int = 24
MAX_APPROXIMATION_POINTS: int = 100
KM2_PER_APPROXIMATION_POINT: float = 100.0
MULTIPART_OFFSET_DEG: float = 0.5

MATCH_MODES: tuple[str, ...] = ("all", "strict")
MERGE_STRATEGIES: tuple[str, ...] = ("concatenate", "dissolve")

APPROXIMATION_SOURCE: str = "Generated approximation based on area and center point"
"""Provenance string written for synthesised geometries."""

# ---------------------------------------------------------------------------
# Conservation-area feature selection (PAD-US designation vocabulary)
# ---------------------------------------------------------------------------

CONSERVATION_DESIGNATION_TYPES: tuple[str, ...] = (
    "State Conservation Area",
    "Wilderness Area",
    "National Monument",
    "Research or Educational Area",
    "Wild and Scenic River",
    "Conservation Easement",
    "Wetlands Reserve Program",
    "Agricultural Easement",
    "Historic or Cultural Easement",
    "Approved or Proclamation Boundary",
    "National Forest",
    "Wildlife Refuge",
    "National Wildlife Refuge",
    "Scenic Riverway",
)

CONSERVATION_NAME_KEYWORDS: tuple[str, ...] = (
    "wildlife",
    "wilderness",
    "conservation",
    "national forest",
    "nature",
    "preserve",
    "sanctuary",
    "refuge",
    "scenic river",
    "easement",
    "wetlands reserve",
)

EXCLUDED_DESIGNATION_TYPES: tuple[str, ...] = (
    "State Recreation Area",
    "Recreation Management Area",
    "Local Recreation Area",
    "Local Park",
    "State Historic or Cultural Area",
    "Private Recreation or Education",
    "Military Land",
    "Other Easement",
    "Recreation or Education Easement",
)

EXCLUDED_NAME_KEYWORDS: tuple[str, ...] = (
    "lake",
    "recreation",
    "park",
    "military",
    "fort ",
    "experimental forest",
)

DEFAULT_MIN_FEATURE_ACRES: float = 100.0
ACRE_PROPERTY_KEYS: tuple[str, ...] = ("GIS_Acres", "GIS_ACRES", "acres")
