"""Shared pytest fixtures for the conservation boundaries test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from pathlib import Path

import pytest

from conservation_boundaries.core.registry import SiteIdentity, SiteRegistry
from conservation_boundaries.models.feature import SourceFeature, SourceFeatureCollection
from conservation_boundaries.models.geometry import MultiPolygon, Polygon
from conservation_boundaries.models.site import SiteRecord
from conservation_boundaries.utils.site_store import JsonSiteStore
from tests.builders import square_ring

FIXED_DATE = date(2025, 6, 1)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def unit_square() -> Polygon:
    """Unit square polygon at the origin."""
    return Polygon(rings=[square_ring()])


@pytest.fixture()
def mark_twain_identity() -> SiteIdentity:
    return SiteIdentity(
        id="mark-twain-nf",
        names=("Mark Twain National Forest", "Mark Twain NF"),
        designation="National Forest",
    )


@pytest.fixture()
def registry(mark_twain_identity: SiteIdentity) -> SiteRegistry:
    """Registry with Mark Twain NF and a refuge that never matches."""
    return SiteRegistry(
        {
            mark_twain_identity.id: mark_twain_identity,
            "mingo-nwr": SiteIdentity(
                id="mingo-nwr",
                names=("Mingo National Wildlife Refuge", "Mingo NWR"),
                designation="National Wildlife Refuge",
            ),
        }
    )


@pytest.fixture()
def mark_twain_record() -> SiteRecord:
    """Inventory record for Mark Twain NF with a Point placeholder.

    The reference area (1.5 M acres, ~6,070 km²) is within the default
    reference-area tolerance of the two 0.5° forest units (~4,900 km²).
    """
    return SiteRecord.create(
        "mark-twain-nf",
        name="Mark Twain National Forest",
        lat=37.5,
        lng=-91.5,
        acres=1_500_000,
    )


@pytest.fixture()
def mingo_record() -> SiteRecord:
    return SiteRecord.create(
        "mingo-nwr",
        name="Mingo National Wildlife Refuge",
        lat=36.97,
        lng=-90.15,
        acres=21_592,
    )


@pytest.fixture()
def mark_twain_collection() -> SourceFeatureCollection:
    """Two Mark Twain NF units plus an unrelated lake."""
    return SourceFeatureCollection(
        features=[
            SourceFeature(
                properties={"FORESTNAME": "Mark Twain National Forest"},
                geometry=Polygon(rings=[square_ring(-92.0, 37.0, 0.5)]),
                index=0,
            ),
            SourceFeature(
                properties={"FORESTNAME": "Mark Twain National Forest"},
                geometry=MultiPolygon(polygons=[Polygon(rings=[square_ring(-91.0, 36.5, 0.5)])]),
                index=1,
            ),
            SourceFeature(
                properties={"NAME": "Twain Lake"},
                geometry=Polygon(rings=[square_ring(-91.8, 39.4, 0.1)]),
                index=2,
            ),
        ],
        source="USFS Administrative Forest Boundaries",
    )


@pytest.fixture()
def site_store(tmp_path: Path) -> JsonSiteStore:
    """Empty JSON site store in a temporary directory."""
    return JsonSiteStore(tmp_path / "sites")


@pytest.fixture()
def fixed_clock() -> Callable[[], date]:
    """Clock returning ``FIXED_DATE``."""
    return lambda: FIXED_DATE
