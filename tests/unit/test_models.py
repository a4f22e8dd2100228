"""Tests for the geometry, source feature, site record and summary models."""

from __future__ import annotations

import json
import math
from datetime import date
from pathlib import Path

import pytest

from conservation_boundaries.core.constants import KM2_PER_ACRE
from conservation_boundaries.core.exceptions import InvalidGeometryError, SourceCollectionError
from conservation_boundaries.models.feature import (
    load_feature_collection,
    parse_feature_collection,
)
from conservation_boundaries.models.geometry import (
    MultiPolygon,
    Point,
    Polygon,
    geometry_from_geojson,
    is_areal,
    outer_rings,
    polygons_of,
    validate_geometry,
    validate_ring,
    vertex_count,
)
from conservation_boundaries.models.site import (
    DataQuality,
    SiteArea,
    SiteLocation,
    SiteMetadata,
    SiteRecord,
)
from conservation_boundaries.models.summary import (
    OutcomeStatus,
    RunSummary,
    SiteOutcome,
)
from tests.builders import square_ring

# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class TestGeometryFromGeojson:
    """GeoJSON structure parsing."""

    def test_point(self) -> None:
        geometry = geometry_from_geojson({"type": "Point", "coordinates": [-91.5, 37.5]})
        assert geometry == Point(lng=-91.5, lat=37.5)

    def test_polygon(self) -> None:
        ring = [[0, 0], [1, 0], [1, 1], [0, 0]]
        geometry = geometry_from_geojson({"type": "Polygon", "coordinates": [ring]})
        assert isinstance(geometry, Polygon)
        assert geometry.exterior == [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 0.0)]
        assert geometry.holes == []

    def test_multipolygon(self) -> None:
        ring = [[0, 0], [1, 0], [1, 1], [0, 0]]
        geometry = geometry_from_geojson({"type": "MultiPolygon", "coordinates": [[ring], [ring]]})
        assert isinstance(geometry, MultiPolygon)
        assert len(geometry.polygons) == 2

    def test_extra_coordinate_dimension_ignored(self) -> None:
        geometry = geometry_from_geojson({"type": "Point", "coordinates": [1, 2, 300]})
        assert geometry == Point(lng=1.0, lat=2.0)

    def test_round_trip_to_geojson(self, unit_square: Polygon) -> None:
        assert geometry_from_geojson(unit_square.to_geojson()) == unit_square

    def test_unsupported_type(self) -> None:
        with pytest.raises(InvalidGeometryError, match="Unsupported geometry type"):
            geometry_from_geojson({"type": "LineString", "coordinates": [[0, 0], [1, 1]]})

    def test_not_a_mapping(self) -> None:
        with pytest.raises(InvalidGeometryError, match="must be a mapping"):
            geometry_from_geojson([0, 0])  # type: ignore[arg-type]

    def test_bad_coordinate(self) -> None:
        with pytest.raises(InvalidGeometryError, match="pair"):
            geometry_from_geojson({"type": "Point", "coordinates": [1]})

    def test_non_numeric_coordinate(self) -> None:
        with pytest.raises(InvalidGeometryError, match="numeric"):
            geometry_from_geojson({"type": "Point", "coordinates": ["east", "north"]})

    def test_polygon_not_a_list(self) -> None:
        with pytest.raises(InvalidGeometryError, match="list of rings"):
            geometry_from_geojson({"type": "Polygon", "coordinates": "nope"})


class TestValidateRing:
    """Ring invariants are checked, never repaired."""

    def test_valid_ring(self) -> None:
        validate_ring(square_ring())

    def test_insufficient_points(self) -> None:
        with pytest.raises(InvalidGeometryError, match="Insufficient points"):
            validate_ring([(0.0, 0.0), (1.0, 0.0), (0.0, 0.0)])

    def test_unclosed(self) -> None:
        with pytest.raises(InvalidGeometryError, match="Unclosed"):
            validate_ring([(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)])

    def test_non_finite(self) -> None:
        ring = square_ring()
        ring[2] = (math.nan, 1.0)
        with pytest.raises(InvalidGeometryError, match="Non-finite"):
            validate_ring(ring)

    def test_context_in_message(self) -> None:
        with pytest.raises(InvalidGeometryError, match="polygon 1 ring 0"):
            validate_geometry(
                MultiPolygon(
                    polygons=[
                        Polygon(rings=[square_ring()]),
                        Polygon(rings=[[(0.0, 0.0), (1.0, 0.0), (0.0, 0.0)]]),
                    ]
                )
            )

    def test_empty_multipolygon_rejected(self) -> None:
        geometry = geometry_from_geojson({"type": "MultiPolygon", "coordinates": []})
        with pytest.raises(InvalidGeometryError, match="no polygons"):
            validate_geometry(geometry)

    def test_empty_polygon_rejected(self) -> None:
        with pytest.raises(InvalidGeometryError, match="no rings"):
            validate_geometry(Polygon(rings=[]))

    def test_non_finite_point_rejected(self) -> None:
        with pytest.raises(InvalidGeometryError, match="Non-finite"):
            validate_geometry(Point(lng=math.inf, lat=0.0))


class TestTraversalHelpers:
    """is_areal / polygons_of / outer_rings / vertex_count."""

    def test_is_areal(self, unit_square: Polygon) -> None:
        assert is_areal(unit_square)
        assert is_areal(MultiPolygon(polygons=[unit_square]))
        assert not is_areal(Point(lng=0.0, lat=0.0))
        assert not is_areal(None)

    def test_polygons_of(self, unit_square: Polygon) -> None:
        assert polygons_of(unit_square) == [unit_square]
        assert polygons_of(MultiPolygon(polygons=[unit_square, unit_square])) == [
            unit_square,
            unit_square,
        ]
        assert polygons_of(Point(lng=0.0, lat=0.0)) == []

    def test_outer_rings_skip_holes(self) -> None:
        polygon = Polygon(rings=[square_ring(size=4), square_ring(1, 1, 1)])
        assert outer_rings(polygon) == [square_ring(size=4)]

    def test_vertex_count(self, unit_square: Polygon) -> None:
        with_hole = Polygon(rings=[square_ring(size=4), square_ring(1, 1, 1)])
        assert vertex_count(Point(lng=0.0, lat=0.0)) == 1
        assert vertex_count(unit_square) == 5
        assert vertex_count(with_hole) == 10
        assert vertex_count(MultiPolygon(polygons=[unit_square, with_hole])) == 15


# ---------------------------------------------------------------------------
# Source features
# ---------------------------------------------------------------------------


def _collection(*features: object) -> dict[str, object]:
    return {"type": "FeatureCollection", "features": list(features)}


class TestParseFeatureCollection:
    """FeatureCollection envelope parsing."""

    def test_features_parsed_in_order(self, unit_square: Polygon) -> None:
        collection = parse_feature_collection(
            _collection(
                {"type": "Feature", "properties": {"NAME": "A"}, "geometry": unit_square.to_geojson()},
                {"type": "Feature", "properties": {"NAME": "B"}, "geometry": None},
            ),
            source="PAD-US",
        )
        assert len(collection) == 2
        assert collection.source == "PAD-US"
        first, second = collection
        assert first.properties == {"NAME": "A"}
        assert first.geometry == unit_square
        assert first.index == 0
        assert second.geometry is None
        assert second.index == 1

    def test_non_object_features_skipped(self) -> None:
        collection = parse_feature_collection(
            _collection("junk", {"type": "Feature", "properties": {"NAME": "A"}, "geometry": None})
        )
        assert len(collection) == 1
        assert collection.features[0].index == 1

    def test_bad_geometry_kept_as_none(self) -> None:
        collection = parse_feature_collection(
            _collection(
                {
                    "type": "Feature",
                    "properties": {"NAME": "A"},
                    "geometry": {"type": "LineString", "coordinates": [[0, 0], [1, 1]]},
                }
            )
        )
        assert collection.features[0].geometry is None
        assert collection.features[0].properties == {"NAME": "A"}

    def test_missing_properties_defaults_to_empty(self) -> None:
        collection = parse_feature_collection(_collection({"type": "Feature", "geometry": None}))
        assert collection.features[0].properties == {}

    def test_not_a_mapping(self) -> None:
        with pytest.raises(SourceCollectionError, match="JSON object"):
            parse_feature_collection([])

    def test_wrong_type(self) -> None:
        with pytest.raises(SourceCollectionError, match="FeatureCollection"):
            parse_feature_collection({"type": "Feature", "features": []})

    def test_features_not_a_list(self) -> None:
        with pytest.raises(SourceCollectionError, match="must be a list"):
            parse_feature_collection({"type": "FeatureCollection", "features": {}})


class TestLoadFeatureCollection:
    """Reading FeatureCollections from disk."""

    def test_load_from_file(self, tmp_path: Path, unit_square: Polygon) -> None:
        path = tmp_path / "forests.geojson"
        path.write_text(
            json.dumps(
                _collection(
                    {"type": "Feature", "properties": {"NAME": "A"}, "geometry": unit_square.to_geojson()}
                )
            ),
            encoding="utf-8",
        )
        collection = load_feature_collection(path)
        assert collection.source == "forests.geojson"
        assert collection.features[0].geometry == unit_square

    def test_explicit_source_label(self, tmp_path: Path) -> None:
        path = tmp_path / "forests.geojson"
        path.write_text(json.dumps(_collection()), encoding="utf-8")
        assert load_feature_collection(path, source="USFS").source == "USFS"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SourceCollectionError, match="Cannot read"):
            load_feature_collection(tmp_path / "missing.geojson")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.geojson"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(SourceCollectionError, match="not valid JSON"):
            load_feature_collection(path)


# ---------------------------------------------------------------------------
# Site records
# ---------------------------------------------------------------------------


class TestDataQuality:
    """Quality ordering."""

    def test_rank_order(self) -> None:
        assert DataQuality.LOW.rank < DataQuality.MEDIUM.rank < DataQuality.HIGH.rank

    def test_values(self) -> None:
        assert DataQuality("medium") is DataQuality.MEDIUM


class TestSiteArea:
    """Reference area from whichever unit is populated."""

    def test_km2_preferred(self) -> None:
        assert SiteArea(km2=12.0, acres=1.0, hectares=1.0).reference_km2() == 12.0

    def test_hectares(self) -> None:
        assert SiteArea(hectares=250.0).reference_km2() == pytest.approx(2.5)

    def test_acres(self) -> None:
        assert SiteArea(acres=1000.0).reference_km2() == pytest.approx(1000.0 * KM2_PER_ACRE)

    def test_zero_is_unknown(self) -> None:
        assert SiteArea(km2=0.0).reference_km2() is None
        assert SiteArea().reference_km2() is None


class TestSiteRecord:
    """Record construction and serialisation."""

    def test_create_builds_point_placeholder(self, mingo_record: SiteRecord) -> None:
        assert mingo_record.geometry == {"type": "Point", "coordinates": [-90.15, 36.97]}
        assert mingo_record.location == SiteLocation(lat=36.97, lng=-90.15)
        assert mingo_record.metadata.data_quality == DataQuality.LOW
        assert mingo_record.metadata.approximate_area is True
        assert mingo_record.metadata.geometry_source == "Inventory description"
        assert isinstance(mingo_record.metadata.last_updated, date)
        assert not mingo_record.is_frozen

    def test_to_dict_uses_camel_case(self, mingo_record: SiteRecord) -> None:
        payload = mingo_record.to_dict()
        assert set(payload["metadata"]) == {
            "dataQuality",
            "geometrySource",
            "lastUpdated",
            "approximateArea",
        }
        assert payload["metadata"]["lastUpdated"] == mingo_record.metadata.last_updated.isoformat()

    def test_to_dict_excludes_unset_owned_fields(self, mingo_record: SiteRecord) -> None:
        mingo_record.metadata.approximate_area = None
        payload = mingo_record.to_dict()
        assert "km2" not in payload["area"]
        assert "approximateArea" not in payload["metadata"]

    def test_to_dict_keeps_null_inventory_keys(self) -> None:
        record = SiteRecord.model_validate(
            {"id": "ozark-nsr", "website": None, "metadata": {"dataQuality": "low", "source": None}}
        )
        payload = record.to_dict()
        assert payload["website"] is None
        assert "source" in payload["metadata"]

    def test_field_names_when_not_by_alias(self, mingo_record: SiteRecord) -> None:
        mingo_record.metadata.last_updated = None
        payload = mingo_record.model_dump(mode="json")
        assert "last_updated" not in payload["metadata"]
        assert payload["metadata"]["approximate_area"] is True

    def test_parse_by_alias(self) -> None:
        record = SiteRecord.model_validate(
            {
                "id": "ozark-nsr",
                "metadata": {"dataQuality": "high", "geometrySource": "NPS", "lastUpdated": "2024-01-02"},
            }
        )
        assert record.is_frozen
        assert record.metadata.last_updated == date(2024, 1, 2)
        assert record.metadata.approximate_area is None

    def test_populate_by_name(self) -> None:
        metadata = SiteMetadata(data_quality=DataQuality.MEDIUM, geometry_source="x")
        assert metadata.data_quality == DataQuality.MEDIUM

    def test_parsed_geometry(self, unit_square: Polygon) -> None:
        record = SiteRecord(id="x", geometry=unit_square.to_geojson())
        assert record.parsed_geometry() == unit_square
        assert SiteRecord(id="x").parsed_geometry() is None

    def test_set_geometry(self, unit_square: Polygon) -> None:
        record = SiteRecord(id="x")
        record.set_geometry(unit_square)
        assert record.geometry == unit_square.to_geojson()

    def test_center_from_location(self, mingo_record: SiteRecord) -> None:
        assert mingo_record.center() == (36.97, -90.15)

    def test_center_from_geometry(self, unit_square: Polygon) -> None:
        record = SiteRecord(id="x", geometry=unit_square.to_geojson())
        assert record.center() == pytest.approx((0.5, 0.5))

    def test_center_unknown(self) -> None:
        assert SiteRecord(id="x").center() is None


# ---------------------------------------------------------------------------
# Run summary
# ---------------------------------------------------------------------------


class TestRunSummary:
    """Counters and failure list."""

    def test_record_counts(self) -> None:
        summary = RunSummary(source="USFS")
        summary.record(SiteOutcome("a", OutcomeStatus.UPDATED, warnings=("area off by 40%",)))
        summary.record(SiteOutcome("b", OutcomeStatus.SKIPPED, reason="already high quality"))
        summary.record(SiteOutcome("c", OutcomeStatus.NO_MATCH))
        summary.record(
            SiteOutcome("d", OutcomeStatus.FAILED, reason="bad ring", code="INVALID_GEOMETRY")
        )

        assert (summary.updated, summary.skipped, summary.no_match, summary.failed) == (1, 1, 1, 1)
        assert summary.total == 4
        assert [(f.site_id, f.code) for f in summary.failures] == [
            ("c", "NO_MATCH"),
            ("d", "INVALID_GEOMETRY"),
        ]
        assert summary.failures[0].reason == "no matching feature"
        assert [(w.site_id, w.reason) for w in summary.warnings] == [("a", "area off by 40%")]
        assert len(summary.outcomes) == 4

    def test_to_dict(self) -> None:
        summary = RunSummary(source="USFS")
        summary.record(
            SiteOutcome("d", OutcomeStatus.FAILED, reason="bad ring", code="INVALID_GEOMETRY")
        )
        payload = summary.to_dict()
        assert payload["source"] == "USFS"
        assert payload["total"] == 1
        assert payload["failed"] == 1
        assert payload["failures"] == [
            {"site_id": "d", "reason": "bad ring", "code": "INVALID_GEOMETRY"}
        ]
        assert payload["warnings"] == []

    def test_outcome_to_dict(self) -> None:
        outcome = SiteOutcome(
            "a",
            OutcomeStatus.UPDATED,
            geometry_type="MultiPolygon",
            match_count=2,
            warnings=("w",),
        )
        payload = outcome.to_dict()
        assert payload["status"] == "updated"
        assert payload["geometry_type"] == "MultiPolygon"
        assert payload["warnings"] == ["w"]
        assert outcome.updated
