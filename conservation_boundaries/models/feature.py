"""Source features: candidate boundary records from an external dataset.

A ``SourceFeature`` is one entry of a GeoJSON FeatureCollection: a
free-form property bag (name fields differ per publisher) and a parsed
``Geometry``.  Features are read-only and ingested once per run.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from conservation_boundaries.core.exceptions import (
    InvalidGeometryError,
    SourceCollectionError,
)
from conservation_boundaries.models.geometry import Geometry, geometry_from_geojson

logger = logging.getLogger("conservation_boundaries.models.feature")


@dataclass(frozen=True, slots=True)
class SourceFeature:
    """A single candidate feature.

    Attributes:
        properties: Publisher-specific attribute bag.
        geometry: Parsed geometry, or ``None`` when the feature's geometry
            was missing or malformed.
        index: Zero-based position in the source collection.
    """

    properties: dict[str, Any] = field(default_factory=dict)
    geometry: Geometry | None = None
    index: int = 0


@dataclass(frozen=True, slots=True)
class SourceFeatureCollection:
    """A parsed FeatureCollection plus the label of where it came from."""

    features: list[SourceFeature] = field(default_factory=list)
    source: str = ""

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[SourceFeature]:
        return iter(self.features)


def parse_feature_collection(
    data: object,
    *,
    source: str = "",
) -> SourceFeatureCollection:
    """Parse a GeoJSON FeatureCollection mapping.

    Individual features with an unusable geometry are kept with
    ``geometry=None`` so they can still be reported, but never merged.

    Raises:
        SourceCollectionError: If the envelope is not a FeatureCollection.
    """
    if not isinstance(data, Mapping):
        msg = f"Source collection must be a JSON object, got {type(data).__name__}"
        raise SourceCollectionError(msg)
    if data.get("type") != "FeatureCollection":
        msg = f"Expected type 'FeatureCollection', got {data.get('type')!r}"
        raise SourceCollectionError(msg)
    raw_features = data.get("features")
    if not isinstance(raw_features, list):
        msg = "FeatureCollection 'features' must be a list"
        raise SourceCollectionError(msg)

    features: list[SourceFeature] = []
    skipped = 0
    for index, raw in enumerate(raw_features):
        if not isinstance(raw, Mapping):
            skipped += 1
            logger.warning("Skipping non-object feature | source=%s | index=%d", source, index)
            continue
        properties = raw.get("properties") or {}
        if not isinstance(properties, Mapping):
            properties = {}
        geometry: Geometry | None = None
        raw_geometry = raw.get("geometry")
        if raw_geometry is not None:
            try:
                geometry = geometry_from_geojson(raw_geometry)
            except InvalidGeometryError as exc:
                logger.warning(
                    "Unparseable feature geometry | source=%s | index=%d | error=%s",
                    source,
                    index,
                    exc,
                )
        features.append(SourceFeature(properties=dict(properties), geometry=geometry, index=index))

    logger.info(
        "Source collection parsed | source=%s | features=%d | skipped=%d",
        source,
        len(features),
        skipped,
    )
    return SourceFeatureCollection(features=features, source=source)


def load_feature_collection(path: Path | str, *, source: str = "") -> SourceFeatureCollection:
    """Read and parse a GeoJSON FeatureCollection file.

    Args:
        path: Path to a ``.geojson`` / ``.json`` file.
        source: Provenance label; defaults to the file name.

    Raises:
        SourceCollectionError: If the file cannot be read, is not valid
            JSON, or is not a FeatureCollection.
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read source collection {file_path}: {exc}"
        raise SourceCollectionError(msg) from exc
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        msg = f"Source collection {file_path} is not valid JSON: {exc}"
        raise SourceCollectionError(msg) from exc
    return parse_feature_collection(data, source=source or file_path.name)
