"""Reconciler configuration loaded from environment variables.

All values have defaults matching the historical boundary scripts, so a
bare ``ReconcilerConfig()`` is usable in tests and notebooks.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any value is out of
    its valid range, before a single site is touched.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from conservation_boundaries.core.constants import (
    DEFAULT_MAX_MULTIPART_PARTS,
    DEFAULT_MAX_RING_POINTS,
    DEFAULT_MULTIPART_THRESHOLD_KM2,
    DEFAULT_REFERENCE_AREA_TOLERANCE,
    DEFAULT_SIMPLIFY_TOLERANCE_DEG,
    DEFAULT_SYNTHETIC_AREA_TOLERANCE,
    MATCH_MODES,
    MERGE_STRATEGIES,
)
from conservation_boundaries.core.exceptions import PipelineError


class ConfigValidationError(PipelineError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class ReconcilerConfig:
    """Immutable reconciliation configuration.

    Attributes:
        simplify_tolerance_deg: Douglas-Peucker tolerance in degrees applied
            before a reconciled geometry is persisted.
        synthetic_area_tolerance: Maximum relative error between a
            synthesised polygon's planar area and the requested area.
        reference_area_tolerance: Maximum relative error between an
            authoritative boundary's geodesic area and the record's
            reference area before a warning is reported.
        strict_area_validation: Treat the reference-area check as a
            failure instead of a warning.
        multipart_threshold_km2: Area above which approximations are split
            into several parts.
        max_multipart_parts: Upper bound on the number of parts.
        max_ring_points: Largest ring the simplifier accepts.
        match_mode: ``"all"`` merges every matching feature, ``"strict"``
            fails a site whose best candidates tie.
        merge_strategy: ``"concatenate"`` (flat MultiPolygon) or
            ``"dissolve"`` (true polygon union).
    """

    simplify_tolerance_deg: float = DEFAULT_SIMPLIFY_TOLERANCE_DEG
    synthetic_area_tolerance: float = DEFAULT_SYNTHETIC_AREA_TOLERANCE
    reference_area_tolerance: float = DEFAULT_REFERENCE_AREA_TOLERANCE
    strict_area_validation: bool = False
    multipart_threshold_km2: float = DEFAULT_MULTIPART_THRESHOLD_KM2
    max_multipart_parts: int = DEFAULT_MAX_MULTIPART_PARTS
    max_ring_points: int = DEFAULT_MAX_RING_POINTS
    match_mode: str = "all"
    merge_strategy: str = "concatenate"

    def __post_init__(self) -> None:
        _validate(self)

    @classmethod
    def from_env(cls) -> ReconcilerConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range or unknown.
            ValueError: If a numeric environment variable cannot be parsed
                (e.g. ``SIMPLIFY_TOLERANCE_DEG=abc``).
        """
        return cls(
            simplify_tolerance_deg=float(
                os.getenv("SIMPLIFY_TOLERANCE_DEG", str(DEFAULT_SIMPLIFY_TOLERANCE_DEG))
            ),
            synthetic_area_tolerance=float(
                os.getenv("SYNTHETIC_AREA_TOLERANCE", str(DEFAULT_SYNTHETIC_AREA_TOLERANCE))
            ),
            reference_area_tolerance=float(
                os.getenv("REFERENCE_AREA_TOLERANCE", str(DEFAULT_REFERENCE_AREA_TOLERANCE))
            ),
            strict_area_validation=_env_bool("STRICT_AREA_VALIDATION", default=False),
            multipart_threshold_km2=float(
                os.getenv("MULTIPART_THRESHOLD_KM2", str(DEFAULT_MULTIPART_THRESHOLD_KM2))
            ),
            max_multipart_parts=int(
                os.getenv("MAX_MULTIPART_PARTS", str(DEFAULT_MAX_MULTIPART_PARTS))
            ),
            max_ring_points=int(os.getenv("MAX_RING_POINTS", str(DEFAULT_MAX_RING_POINTS))),
            match_mode=os.getenv("MATCH_MODE", "all").strip().lower(),
            merge_strategy=os.getenv("MERGE_STRATEGY", "concatenate").strip().lower(),
        )


def _env_bool(key: str, *, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ConfigValidationError(key, raw, "must be a boolean (true/false)")


def _validate(config: ReconcilerConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not math.isfinite(config.simplify_tolerance_deg) or config.simplify_tolerance_deg < 0:
        raise ConfigValidationError(
            "SIMPLIFY_TOLERANCE_DEG",
            config.simplify_tolerance_deg,
            "must be >= 0 (degrees)",
        )

    if not 0.0 < config.synthetic_area_tolerance < 1.0:
        raise ConfigValidationError(
            "SYNTHETIC_AREA_TOLERANCE",
            config.synthetic_area_tolerance,
            "must be between 0 and 1 (relative error)",
        )

    if config.reference_area_tolerance <= 0:
        raise ConfigValidationError(
            "REFERENCE_AREA_TOLERANCE",
            config.reference_area_tolerance,
            "must be > 0 (relative error)",
        )

    if config.multipart_threshold_km2 <= 0:
        raise ConfigValidationError(
            "MULTIPART_THRESHOLD_KM2",
            config.multipart_threshold_km2,
            "must be > 0 (square kilometres)",
        )

    if config.max_multipart_parts < 1:
        raise ConfigValidationError(
            "MAX_MULTIPART_PARTS",
            config.max_multipart_parts,
            "must be >= 1",
        )

    if config.max_ring_points < 4:
        raise ConfigValidationError(
            "MAX_RING_POINTS",
            config.max_ring_points,
            "must be >= 4 (smallest closed ring)",
        )

    if config.match_mode not in MATCH_MODES:
        raise ConfigValidationError(
            "MATCH_MODE",
            config.match_mode,
            f"must be one of {', '.join(MATCH_MODES)}",
        )

    if config.merge_strategy not in MERGE_STRATEGIES:
        raise ConfigValidationError(
            "MERGE_STRATEGY",
            config.merge_strategy,
            f"must be one of {', '.join(MERGE_STRATEGIES)}",
        )
