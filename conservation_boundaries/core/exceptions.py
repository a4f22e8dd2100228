"""Unified exception taxonomy for the boundary pipeline.

Every domain exception inherits from ``PipelineError`` and carries
structured context fields so the reconciler can turn any per-site fault
into a stable entry of the run summary.

Taxonomy categories
-------------------
- ``ValidationError``: malformed input (geometry, tolerance, registry), never retryable.
- ``TransientError``: temporary failures of an external lookup, retryable by the caller.
- ``PermanentError``: unrecoverable failures (unreadable record store), not retryable.
- ``ContractError``: a source collection that does not honour the GeoJSON envelope.

There is no ``NoMatchFound``: a matcher that finds nothing
returns an empty list.
"""

from __future__ import annotations

from collections.abc import Sequence


class PipelineError(Exception):
    """Base exception for all boundary-pipeline errors.

    Attributes:
        message: Human-readable error description.
        stage: Pipeline stage where the error occurred
            (e.g. ``"simplify"``, ``"reconcile"``).
        code: Machine-readable error code (e.g. ``"INVALID_GEOMETRY"``).
        retryable: Whether a caller could reasonably retry the operation.
        site_id: Site identifier the error relates to, if any.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        site_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.site_id = site_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "site_id": self.site_id,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(PipelineError):
    """Malformed geometry, tolerance or registry input. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(PipelineError):
    """Feature lookup failure that may succeed when the caller retries."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(PipelineError):
    """Record store failure that a retry cannot fix."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(PipelineError):
    """Input collection drifted from the expected schema. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------


class InvalidGeometryError(ValidationError):
    """Malformed ring or geometry, such as an unclosed or undersized ring."""

    default_stage = "geometry"
    default_code = "INVALID_GEOMETRY"


class SimplificationError(ValidationError):
    """Raised when simplification parameters or input size are unusable."""

    default_stage = "simplify"
    default_code = "SIMPLIFICATION_FAILED"


class AmbiguousMatchError(ValidationError):
    """Strict matching found several equally ranked candidates.

    Attributes:
        candidates: Feature names of the tied candidates.
    """

    default_stage = "match"
    default_code = "AMBIGUOUS_MATCH"

    def __init__(
        self,
        message: str = "",
        *,
        candidates: Sequence[str] = (),
        **kwargs: object,
    ) -> None:
        self.candidates = tuple(candidates)
        super().__init__(message, **kwargs)


class AreaValidationError(ValidationError):
    """Computed geometry area deviates from the reference area.

    Attributes:
        actual_km2: Area computed from the geometry.
        expected_km2: Known reference area.
    """

    default_stage = "validate_area"
    default_code = "AREA_VALIDATION_FAILED"

    def __init__(
        self,
        message: str = "",
        *,
        actual_km2: float = 0.0,
        expected_km2: float = 0.0,
        **kwargs: object,
    ) -> None:
        self.actual_km2 = actual_km2
        self.expected_km2 = expected_km2
        super().__init__(message, **kwargs)


class RegistryError(ValidationError):
    """Site identity reference data is malformed."""

    default_stage = "registry"
    default_code = "REGISTRY_INVALID"


class SourceCollectionError(ContractError):
    """A source feature collection cannot be read or is not a FeatureCollection.

    This is the one structural fault that is fatal to a whole run.
    """

    default_stage = "load_source"
    default_code = "SOURCE_COLLECTION_INVALID"


class SourceUnavailableError(TransientError):
    """A feature lookup for a single site failed (network or service error)."""

    default_stage = "load_source"
    default_code = "SOURCE_UNAVAILABLE"


class SiteStoreError(PermanentError):
    """A site record cannot be read from or written to the store."""

    default_stage = "site_store"
    default_code = "SITE_STORE_FAILED"
