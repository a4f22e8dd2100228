"""Site reconciliation: match, merge, simplify, validate, update.

Per site and per run the record moves through a two-state machine:

``PENDING`` (``dataQuality`` below ``high``)
    The configured source is searched for the site's names.  No match
    leaves the record untouched and reports ``no_match``.  One match
    supplies the geometry; several are merged.  The result is simplified,
    validated and written with ``dataQuality=high``.
``DONE`` (``dataQuality == high``)
    Terminal.  Every later run skips the record, whatever new matches
    exist: high-quality data is never overwritten.

The approximation fallback (no live source) synthesises a polygon from
the record's reference area and centre and writes ``dataQuality=medium``
with ``approximateArea=true``.  It never touches ``DONE`` records or
records that already carry a polygon.

Merging is a flat concatenation of polygon coordinate arrays by default:
overlapping source polygons stay overlapping (their shared area is
counted twice by ``planar_area_km2``).  ``merge_strategy="dissolve"``
performs a true union with shapely instead.

Failure semantics: any ``PipelineError`` raised while processing one site
becomes a failed outcome for that site only, and the batch continues.
Nothing is retried here; retry and backoff belong to whoever fetches the
source features.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, TypeAlias

from conservation_boundaries.activities.geometry_metrics import (
    generate_approximate_polygon,
    geodesic_area_km2,
    planar_area_km2,
    validate_area,
)
from conservation_boundaries.activities.match_features import (
    FeatureMatcher,
    MatchCandidate,
    check_unambiguous,
)
from conservation_boundaries.activities.simplify_geometry import simplify_geometry
from conservation_boundaries.core.config import ReconcilerConfig
from conservation_boundaries.core.constants import APPROXIMATION_SOURCE
from conservation_boundaries.core.exceptions import (
    AreaValidationError,
    InvalidGeometryError,
    PipelineError,
    SiteStoreError,
)
from conservation_boundaries.models.geometry import (
    Geometry,
    MultiPolygon,
    Polygon,
    is_areal,
    polygons_of,
    validate_geometry,
    vertex_count,
)
from conservation_boundaries.models.site import DataQuality, SiteRecord
from conservation_boundaries.models.summary import OutcomeStatus, RunSummary, SiteOutcome
from conservation_boundaries.utils.helpers import today_utc

if TYPE_CHECKING:
    from conservation_boundaries.core.registry import SiteIdentity, SiteRegistry
    from conservation_boundaries.models.feature import SourceFeature
    from conservation_boundaries.utils.site_store import SiteStore

logger = logging.getLogger("conservation_boundaries.orchestrators.site_reconciler")

FeatureLookup: TypeAlias = "Callable[[SiteIdentity], Iterable[SourceFeature]]"
FeatureSource: TypeAlias = "Iterable[SourceFeature] | FeatureLookup"


class SiteState(StrEnum):
    PENDING = "pending"
    DONE = "done"


def site_state(record: SiteRecord) -> SiteState:
    """``DONE`` once a record holds high-quality data, else ``PENDING``."""
    return SiteState.DONE if record.is_frozen else SiteState.PENDING


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def merge_geometries(
    geometries: Sequence[Geometry],
    *,
    strategy: str = "concatenate",
) -> Geometry:
    """Combine areal geometries into one.

    A single geometry is returned as is.  Several are combined into a
    MultiPolygon, either by concatenating their polygons (``concatenate``)
    or by a polygon union (``dissolve``).

    Raises:
        InvalidGeometryError: If no geometry is given, one is not areal,
            or a dissolve leaves no polygonal area.
    """
    if not geometries:
        msg = "Nothing to merge"
        raise InvalidGeometryError(msg)
    for geometry in geometries:
        if not is_areal(geometry):
            msg = f"Cannot merge non-areal geometry of type {geometry.type}"
            raise InvalidGeometryError(msg)
    if len(geometries) == 1:
        return geometries[0]

    if strategy == "dissolve":
        return _dissolve(geometries)
    return MultiPolygon(polygons=[p for g in geometries for p in polygons_of(g)])


def _dissolve(geometries: Sequence[Geometry]) -> MultiPolygon:
    from shapely.geometry import shape
    from shapely.ops import unary_union
    from shapely.validation import make_valid

    merged = unary_union([make_valid(shape(g.to_geojson())) for g in geometries])

    polygons: list[Polygon] = []
    for part in getattr(merged, "geoms", [merged]):
        if part.geom_type == "Polygon":
            polygons.append(_from_shapely_polygon(part))
        elif part.geom_type == "MultiPolygon":
            polygons.extend(_from_shapely_polygon(p) for p in part.geoms)

    if not polygons:
        msg = f"Union produced no polygonal area (got {merged.geom_type})"
        raise InvalidGeometryError(msg)
    return MultiPolygon(polygons=polygons)


def _from_shapely_polygon(polygon: object) -> Polygon:
    exterior = [(c[0], c[1]) for c in polygon.exterior.coords]  # type: ignore[attr-defined]
    holes = [
        [(c[0], c[1]) for c in interior.coords]
        for interior in polygon.interiors  # type: ignore[attr-defined]
    ]
    return Polygon(rings=[exterior, *holes])


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------


class SiteReconciler:
    """Drives matching, merging, simplification and validation per site.

    Args:
        config: Tolerances and strategies; defaults to ``ReconcilerConfig()``.
        matcher: Feature matcher; defaults to the standard name extractors.
        clock: Returns the date stamped into ``lastUpdated``.
    """

    def __init__(
        self,
        config: ReconcilerConfig | None = None,
        matcher: FeatureMatcher | None = None,
        *,
        clock: Callable[[], date] = today_utc,
    ) -> None:
        self.config = config or ReconcilerConfig()
        self.matcher = matcher or FeatureMatcher()
        self.clock = clock

    # -- single site ------------------------------------------------------

    def reconcile_site(
        self,
        record: SiteRecord,
        identity: SiteIdentity,
        features: Iterable[SourceFeature],
        *,
        source: str,
    ) -> SiteOutcome:
        """Reconcile one record against candidate features.

        The record is mutated only when the outcome is ``updated``.
        """
        if record.is_frozen:
            logger.info("Site skipped | site=%s | reason=already high quality", record.id)
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.SKIPPED,
                reason="already high quality",
            )
        try:
            return self._reconcile(record, identity, features, source=source)
        except PipelineError as exc:
            return _failed(record.id, exc)

    def _reconcile(
        self,
        record: SiteRecord,
        identity: SiteIdentity,
        features: Iterable[SourceFeature],
        *,
        source: str,
    ) -> SiteOutcome:
        candidates = self.matcher.match(identity, features)
        if not candidates:
            logger.info(
                "No match | site=%s | names=%s | source=%s",
                record.id,
                list(identity.names),
                source,
            )
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.NO_MATCH,
                reason=f"no feature matched {identity.primary_name!r}",
            )

        if self.config.match_mode == "strict":
            check_unambiguous(identity, candidates)
            candidates = candidates[:1]

        warnings: list[str] = []
        geometries = _areal_geometries(record.id, candidates, warnings)
        if not geometries:
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.FAILED,
                reason="matched features have no polygon geometry",
                code="NO_AREAL_GEOMETRY",
                match_count=len(candidates),
                warnings=tuple(warnings),
            )
        for geometry in geometries:
            validate_geometry(geometry)

        merged = merge_geometries(geometries, strategy=self.config.merge_strategy)
        simplified = simplify_geometry(
            merged,
            self.config.simplify_tolerance_deg,
            max_points=self.config.max_ring_points,
        )
        validate_geometry(simplified)
        if vertex_count(simplified) == 0:
            msg = "Reconciled geometry has no vertices"
            raise InvalidGeometryError(msg, site_id=record.id)

        area_km2 = geodesic_area_km2(simplified)
        reference_km2 = record.area.reference_km2()
        if reference_km2 is not None:
            try:
                validate_area(
                    area_km2,
                    reference_km2,
                    self.config.reference_area_tolerance,
                    site_id=record.id,
                )
            except AreaValidationError as exc:
                if self.config.strict_area_validation:
                    raise
                warnings.append(exc.message)
                logger.warning("Area mismatch | site=%s | %s", record.id, exc.message)

        points_before = vertex_count(merged)
        points_after = vertex_count(simplified)

        record.set_geometry(simplified)
        record.metadata.data_quality = DataQuality.HIGH
        record.metadata.geometry_source = source
        record.metadata.last_updated = self.clock()
        record.metadata.approximate_area = None

        logger.info(
            "Site reconciled | site=%s | matches=%d | type=%s | points=%d->%d | "
            "area=%.1f km² | source=%s",
            record.id,
            len(geometries),
            simplified.type,
            points_before,
            points_after,
            area_km2,
            source,
        )
        return SiteOutcome(
            site_id=record.id,
            status=OutcomeStatus.UPDATED,
            geometry_type=simplified.type,
            match_count=len(geometries),
            points_before=points_before,
            points_after=points_after,
            area_km2=area_km2,
            warnings=tuple(warnings),
        )

    def approximate_site(self, record: SiteRecord) -> SiteOutcome:
        """Synthesise an approximate boundary for a record without one.

        Only records whose geometry is still a placeholder (absent or a
        Point) are touched.  The record is mutated only on ``updated``.
        """
        if record.is_frozen:
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.SKIPPED,
                reason="already high quality",
            )
        try:
            return self._approximate(record)
        except PipelineError as exc:
            return _failed(record.id, exc)

    def _approximate(self, record: SiteRecord) -> SiteOutcome:
        current = record.parsed_geometry()
        if current is not None and is_areal(current):
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.SKIPPED,
                reason="not a point geometry",
            )

        area_km2 = record.area.reference_km2()
        if area_km2 is None:
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.FAILED,
                reason="no reference area to approximate from",
                code="MISSING_REFERENCE_AREA",
            )
        center = record.center()
        if center is None:
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.FAILED,
                reason="no centre point to approximate around",
                code="MISSING_CENTER",
            )

        lat, lng = center
        geometry = generate_approximate_polygon(
            lat,
            lng,
            area_km2,
            site_id=record.id,
            multipart_threshold_km2=self.config.multipart_threshold_km2,
            max_parts=self.config.max_multipart_parts,
        )
        validate_geometry(geometry)
        actual_km2 = planar_area_km2(geometry)
        error = validate_area(
            actual_km2,
            area_km2,
            self.config.synthetic_area_tolerance,
            site_id=record.id,
        )

        record.set_geometry(geometry)
        if record.metadata.data_quality.rank < DataQuality.MEDIUM.rank:
            record.metadata.data_quality = DataQuality.MEDIUM
        record.metadata.geometry_source = APPROXIMATION_SOURCE
        record.metadata.last_updated = self.clock()
        record.metadata.approximate_area = True

        logger.info(
            "Site approximated | site=%s | type=%s | area=%.1f km² | error=%.1f%%",
            record.id,
            geometry.type,
            actual_km2,
            error * 100,
        )
        return SiteOutcome(
            site_id=record.id,
            status=OutcomeStatus.UPDATED,
            geometry_type=geometry.type,
            points_after=vertex_count(geometry),
            area_km2=actual_km2,
        )

    # -- batches ----------------------------------------------------------

    def reconcile_batch(
        self,
        records: Iterable[SiteRecord],
        registry: SiteRegistry,
        features: FeatureSource,
        *,
        source: str,
    ) -> RunSummary:
        """Reconcile many records against one source.

        Args:
            records: Records to process; each is mutated in place when
                updated.
            registry: Site identities, looked up by record id.
            features: Either the candidate features (a parsed collection
                or any iterable) or a callable returning candidates for a
                given identity.
            source: Provenance string written to ``geometrySource``.
        """
        summary = RunSummary(source=source)
        lookup = _as_lookup(features)
        for record in records:
            summary.record(self._reconcile_one(record, registry, lookup, source=source))
        _log_summary("reconcile", summary)
        return summary

    def approximate_batch(self, records: Iterable[SiteRecord]) -> RunSummary:
        summary = RunSummary(source=APPROXIMATION_SOURCE)
        for record in records:
            summary.record(self.approximate_site(record))
        _log_summary("approximate", summary)
        return summary

    def reconcile_store(
        self,
        store: SiteStore,
        registry: SiteRegistry,
        features: FeatureSource,
        *,
        source: str,
        site_ids: Iterable[str] | None = None,
    ) -> RunSummary:
        """Read-modify-write reconciliation over a record store.

        Sites default to every stored record that has a registry identity.
        Explicit ``site_ids`` are processed as given, so a missing record
        file is reported as a failure.  A record is written back only when
        it was updated.
        """
        summary = RunSummary(source=source)
        lookup = _as_lookup(features)
        if site_ids is None:
            site_ids = [s for s in store.site_ids() if s in registry]
        for site_id in site_ids:
            summary.record(
                self._through_store(
                    store,
                    site_id,
                    lambda record: self._reconcile_one(record, registry, lookup, source=source),
                )
            )
        _log_summary("reconcile", summary)
        return summary

    def approximate_store(
        self,
        store: SiteStore,
        *,
        site_ids: Iterable[str] | None = None,
    ) -> RunSummary:
        summary = RunSummary(source=APPROXIMATION_SOURCE)
        for site_id in site_ids if site_ids is not None else store.site_ids():
            summary.record(self._through_store(store, site_id, self.approximate_site))
        _log_summary("approximate", summary)
        return summary

    def _reconcile_one(
        self,
        record: SiteRecord,
        registry: SiteRegistry,
        lookup: FeatureLookup,
        *,
        source: str,
    ) -> SiteOutcome:
        identity = registry.get(record.id)
        if identity is None:
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.FAILED,
                reason="site is not in the identity registry",
                code="IDENTITY_NOT_FOUND",
            )
        if record.is_frozen:
            return self.reconcile_site(record, identity, (), source=source)
        try:
            candidates = list(lookup(identity))
        except PipelineError as exc:
            return _failed(record.id, exc)
        except (OSError, ValueError) as exc:
            logger.exception("Feature lookup failed | site=%s", record.id)
            return SiteOutcome(
                site_id=record.id,
                status=OutcomeStatus.FAILED,
                reason=f"feature lookup failed: {exc}",
                code="SOURCE_UNAVAILABLE",
            )
        return self.reconcile_site(record, identity, candidates, source=source)

    def _through_store(
        self,
        store: SiteStore,
        site_id: str,
        process: Callable[[SiteRecord], SiteOutcome],
    ) -> SiteOutcome:
        try:
            record = store.load(site_id)
        except SiteStoreError as exc:
            logger.warning("Site record unavailable | site=%s | error=%s", site_id, exc)
            return _failed(site_id, exc)

        outcome = process(record)
        if outcome.updated:
            try:
                store.save(record)
            except SiteStoreError as exc:
                logger.error("Site record not saved | site=%s | error=%s", site_id, exc)
                return _failed(site_id, exc)
        return outcome


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _as_lookup(features: FeatureSource) -> FeatureLookup:
    if callable(features):
        return features  # type: ignore[return-value]
    materialised = list(features)
    return lambda _identity: materialised


def _areal_geometries(
    site_id: str,
    candidates: Sequence[MatchCandidate],
    warnings: list[str],
) -> list[Geometry]:
    selected: list[Geometry] = []
    for candidate in candidates:
        geometry = candidate.feature.geometry
        if geometry is not None and is_areal(geometry):
            selected.append(geometry)
            continue
        kind = geometry.type if geometry is not None else "missing"
        message = f"discarded match {candidate.feature_name!r}: {kind} geometry"
        warnings.append(message)
        logger.warning("Match discarded | site=%s | %s", site_id, message)
    return selected


def _failed(site_id: str, exc: PipelineError) -> SiteOutcome:
    logger.warning(
        "Site failed | site=%s | code=%s | error=%s",
        site_id,
        exc.code,
        exc.message,
    )
    return SiteOutcome(
        site_id=site_id,
        status=OutcomeStatus.FAILED,
        reason=exc.message or str(exc),
        code=exc.code,
    )


def _log_summary(run: str, summary: RunSummary) -> None:
    logger.info(
        "Run complete | run=%s | source=%s | total=%d | updated=%d | skipped=%d | "
        "no_match=%d | failed=%d",
        run,
        summary.source,
        summary.total,
        summary.updated,
        summary.skipped,
        summary.no_match,
        summary.failed,
    )
