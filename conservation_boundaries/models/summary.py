"""Per-site outcomes and the per-run summary returned by batch reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class OutcomeStatus(StrEnum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"
    NO_MATCH = "no_match"


@dataclass(frozen=True, slots=True)
class SiteFailure:
    """A ``{siteId, reason}`` entry of the run report."""

    site_id: str
    reason: str
    code: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"site_id": self.site_id, "reason": self.reason, "code": self.code}


@dataclass(frozen=True, slots=True)
class SiteOutcome:
    """Result of processing one site in one run.

    Attributes:
        site_id: Site identifier.
        status: What happened to the record.
        reason: Failure / skip reason (empty on success).
        code: Machine-readable error code for failures.
        geometry_type: GeoJSON type written on success.
        match_count: Number of source features merged.
        points_before: Vertex count before simplification.
        points_after: Vertex count after simplification.
        area_km2: Area of the written geometry.
        warnings: Non-fatal findings (e.g. reference-area mismatch).
    """

    site_id: str
    status: OutcomeStatus
    reason: str = ""
    code: str = ""
    geometry_type: str = ""
    match_count: int = 0
    points_before: int = 0
    points_after: int = 0
    area_km2: float = 0.0
    warnings: tuple[str, ...] = ()

    @property
    def updated(self) -> bool:
        return self.status == OutcomeStatus.UPDATED

    def to_dict(self) -> dict[str, object]:
        return {
            "site_id": self.site_id,
            "status": str(self.status),
            "reason": self.reason,
            "code": self.code,
            "geometry_type": self.geometry_type,
            "match_count": self.match_count,
            "points_before": self.points_before,
            "points_after": self.points_after,
            "area_km2": self.area_km2,
            "warnings": list(self.warnings),
        }


@dataclass(slots=True)
class RunSummary:
    """Counts and failure list for one pipeline run.

    Enough for an external CLI or report layer to render; the core never
    prints.
    """

    source: str = ""
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    no_match: int = 0
    failures: list[SiteFailure] = field(default_factory=list)
    warnings: list[SiteFailure] = field(default_factory=list)
    outcomes: list[SiteOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.updated + self.skipped + self.failed + self.no_match

    def record(self, outcome: SiteOutcome) -> None:
        """Add an outcome and bump the matching counter."""
        self.outcomes.append(outcome)
        if outcome.status == OutcomeStatus.UPDATED:
            self.updated += 1
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.skipped += 1
        elif outcome.status == OutcomeStatus.NO_MATCH:
            self.no_match += 1
            self.failures.append(
                SiteFailure(outcome.site_id, outcome.reason or "no matching feature", "NO_MATCH")
            )
        else:
            self.failed += 1
            self.failures.append(SiteFailure(outcome.site_id, outcome.reason, outcome.code))
        for warning in outcome.warnings:
            self.warnings.append(SiteFailure(outcome.site_id, warning))

    def to_dict(self) -> dict[str, object]:
        return {
            "source": self.source,
            "total": self.total,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "no_match": self.no_match,
            "failures": [f.to_dict() for f in self.failures],
            "warnings": [w.to_dict() for w in self.warnings],
        }
