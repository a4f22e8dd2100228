"""Pydantic model of the persisted per-site record.

One ``SiteRecord`` is stored per conservation site and consumed by the
map front end.  The JSON keys are camelCase (``dataQuality``,
``geometrySource``, ``lastUpdated``, ``approximateArea``); inventory keys
this library does not own (description, links, state...) are preserved
untouched through read-modify-write.

Lifecycle:
- created once from an inventory entry with a ``Point`` placeholder and an
  approximate area (``dataQuality=low``, ``approximateArea=true``);
- upgraded in place when a better geometry is reconciled in;
- frozen once ``dataQuality`` is ``high``.
"""

from __future__ import annotations

from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import (
    BaseModel,
    Field,
    SerializationInfo,
    SerializerFunctionWrapHandler,
    model_serializer,
)

from conservation_boundaries.core.constants import KM2_PER_ACRE, KM2_PER_HECTARE
from conservation_boundaries.utils.helpers import today_utc

if TYPE_CHECKING:
    from conservation_boundaries.models.geometry import Geometry


class DataQuality(StrEnum):
    """Confidence in a record's geometry, ordered ``low < medium < high``."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _QUALITY_RANK[self]


_QUALITY_RANK = {DataQuality.LOW: 0, DataQuality.MEDIUM: 1, DataQuality.HIGH: 2}


class _RecordModel(BaseModel):
    """Base for record blocks: unset owned fields are omitted on output.

    Only the fields named in ``omit_when_none`` are dropped when ``None``;
    inventory keys kept through ``extra="allow"`` are written back as read,
    ``null`` values included.
    """

    omit_when_none: ClassVar[tuple[str, ...]] = ()

    @model_serializer(mode="wrap")
    def _omit_unset_fields(
        self,
        handler: SerializerFunctionWrapHandler,
        info: SerializationInfo,
    ) -> dict[str, Any]:
        data = handler(self)
        for name in self.omit_when_none:
            field_info = type(self).model_fields[name]
            key = field_info.alias if info.by_alias and field_info.alias else name
            if data.get(key, ...) is None:
                del data[key]
        return data


class SiteLocation(BaseModel):
    """Representative point of the site (decimal degrees)."""

    lat: float
    lng: float

    model_config = {"extra": "allow"}


class SiteArea(_RecordModel):
    """Known reference area, possibly only partially populated.

    Attributes:
        km2: Area in square kilometres.
        acres: Area in acres.
        hectares: Area in hectares.
    """

    km2: float | None = None
    acres: float | None = None
    hectares: float | None = None

    model_config = {"extra": "allow"}
    omit_when_none: ClassVar[tuple[str, ...]] = ("km2", "acres", "hectares")

    def reference_km2(self) -> float | None:
        """Reference area in km², from whichever unit is populated."""
        if self.km2 is not None and self.km2 > 0:
            return self.km2
        if self.hectares is not None and self.hectares > 0:
            return self.hectares * KM2_PER_HECTARE
        if self.acres is not None and self.acres > 0:
            return self.acres * KM2_PER_ACRE
        return None


class SiteMetadata(_RecordModel):
    """Provenance and quality block of a site record.

    Attributes:
        data_quality: ``low``, ``medium`` or ``high``.
        geometry_source: Human-readable origin of the current geometry.
        last_updated: Date of the last geometry update.
        approximate_area: ``True`` while the geometry is synthetic or the
            area came from an inventory description; absent once
            authoritative data has landed.
    """

    data_quality: DataQuality = Field(default=DataQuality.LOW, alias="dataQuality")
    geometry_source: str = Field(default="", alias="geometrySource")
    last_updated: date | None = Field(default=None, alias="lastUpdated")
    approximate_area: bool | None = Field(default=None, alias="approximateArea")

    model_config = {"populate_by_name": True, "extra": "allow"}
    omit_when_none: ClassVar[tuple[str, ...]] = ("last_updated", "approximate_area")


class SiteRecord(_RecordModel):
    """The persisted unit: identity, geometry, reference area, metadata.

    ``geometry`` is kept as a GeoJSON mapping so the stored document is
    byte-for-byte what the front end reads; use ``parsed_geometry()`` for
    the typed form.
    """

    id: str
    name: str = ""
    geometry: dict[str, Any] | None = None
    location: SiteLocation | None = None
    area: SiteArea = Field(default_factory=SiteArea)
    metadata: SiteMetadata = Field(default_factory=SiteMetadata)

    model_config = {"populate_by_name": True, "extra": "allow"}
    omit_when_none: ClassVar[tuple[str, ...]] = ("geometry", "location")

    @classmethod
    def create(
        cls,
        site_id: str,
        *,
        name: str = "",
        lat: float,
        lng: float,
        area_km2: float | None = None,
        acres: float | None = None,
        hectares: float | None = None,
        source: str = "Inventory description",
    ) -> SiteRecord:
        """Build the initial inventory record with a Point placeholder."""
        return cls(
            id=site_id,
            name=name,
            geometry={"type": "Point", "coordinates": [lng, lat]},
            location=SiteLocation(lat=lat, lng=lng),
            area=SiteArea(km2=area_km2, acres=acres, hectares=hectares),
            metadata=SiteMetadata(
                data_quality=DataQuality.LOW,
                geometry_source=source,
                last_updated=today_utc(),
                approximate_area=True,
            ),
        )

    @property
    def is_frozen(self) -> bool:
        """High-quality records are never overwritten."""
        return self.metadata.data_quality == DataQuality.HIGH

    def parsed_geometry(self) -> Geometry | None:
        """The geometry as a typed ``Geometry`` (``None`` if absent).

        Raises:
            InvalidGeometryError: If the stored GeoJSON is malformed.
        """
        from conservation_boundaries.models.geometry import geometry_from_geojson

        if self.geometry is None:
            return None
        return geometry_from_geojson(self.geometry)

    def center(self) -> tuple[float, float] | None:
        """Centre as ``(lat, lng)``: location, else point, else centroid."""
        if self.location is not None:
            return (self.location.lat, self.location.lng)
        geometry = self.parsed_geometry()
        if geometry is None:
            return None
        from conservation_boundaries.activities.geometry_metrics import centroid

        return centroid(geometry)

    def set_geometry(self, geometry: Geometry) -> None:
        self.geometry = geometry.to_geojson()

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dict with camelCase keys.

        Unset owned fields are omitted; inventory keys are kept as read.
        """
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self, *, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent, by_alias=True)

    @classmethod
    def from_json(cls, content: str | bytes) -> SiteRecord:
        return cls.model_validate_json(content)
