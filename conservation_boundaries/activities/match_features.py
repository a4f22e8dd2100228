"""Match a site identity against candidate source features by name.

Publishers store a feature's name under different property keys
(``FORESTNAME`` for USFS, ``ORGNAME`` for USFWS, ``UNIT_NAME`` for NPS,
``Unit_Nm`` for PAD-US...).  Names are pulled through an ordered list of
extractor callables, so a new schema is supported by adding an extractor
rather than editing the matcher.

Two names match when, after normalisation (lowercase, punctuation
stripped, designation abbreviations expanded, whitespace collapsed), one
occurs in the other on word boundaries.  ``"Mark Twain NF"`` therefore
matches ``"Mark Twain National Forest"`` while ``"Twain Lake"`` does not.

Ranking of multiple matches:
1. exact normalised name match,
2. feature designation equals the identity's designation,
3. longer matched text,
4. source order (largest first when a ``FeatureFilter`` is set).

An optional ``FeatureFilter`` narrows the collection before matching to
features that look like conservation areas: designation type and name
keyword allow and deny lists plus a minimum size in acres.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from conservation_boundaries.core.constants import (
    ACRE_PROPERTY_KEYS,
    CONSERVATION_DESIGNATION_TYPES,
    CONSERVATION_NAME_KEYWORDS,
    DEFAULT_MIN_FEATURE_ACRES,
    EXCLUDED_DESIGNATION_TYPES,
    EXCLUDED_NAME_KEYWORDS,
)
from conservation_boundaries.core.exceptions import AmbiguousMatchError

if TYPE_CHECKING:
    from conservation_boundaries.core.registry import SiteIdentity
    from conservation_boundaries.models.feature import SourceFeature

logger = logging.getLogger("conservation_boundaries.activities.match_features")


class NameExtractor(Protocol):
    """Pull a name (or designation) out of a feature's property bag."""

    def __call__(self, properties: Mapping[str, Any]) -> str | None: ...


DEFAULT_NAME_KEYS: tuple[str, ...] = (
    "name",
    "FORESTNAME",
    "UNIT_NAME",
    "Unit_Nm",
    "ORGNAME",
    "NAME",
    "Loc_Nm",
)

DEFAULT_DESIGNATION_KEYS: tuple[str, ...] = (
    "designation",
    "d_Des_Tp",
    "Des_Tp",
    "FeatClass",
)

DEFAULT_ABBREVIATIONS: Mapping[str, str] = {
    "nf": "national forest",
    "nfs": "national forests",
    "nwr": "national wildlife refuge",
    "np": "national park",
    "npres": "national preserve",
    "nra": "national recreation area",
    "ns": "national seashore",
    "nsr": "national scenic riverways",
    "nm": "national monument",
    "wsr": "wild and scenic river",
    "wma": "wildlife management area",
    "sp": "state park",
}

_NON_WORD = re.compile(r"[^\w\s]+")
_WHITESPACE = re.compile(r"\s+")


def property_extractor(key: str) -> NameExtractor:
    """Extractor returning the stripped string value of one property key."""

    def extract(properties: Mapping[str, Any]) -> str | None:
        value = properties.get(key)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    extract.__name__ = f"property_extractor_{key}"
    return extract


DEFAULT_NAME_EXTRACTORS: tuple[NameExtractor, ...] = tuple(
    property_extractor(k) for k in DEFAULT_NAME_KEYS
)
DEFAULT_DESIGNATION_EXTRACTORS: tuple[NameExtractor, ...] = tuple(
    property_extractor(k) for k in DEFAULT_DESIGNATION_KEYS
)


def first_value(
    properties: Mapping[str, Any],
    extractors: Iterable[Callable[[Mapping[str, Any]], str | None]],
) -> str:
    """First non-empty value produced by ``extractors`` (``""`` if none)."""
    for extractor in extractors:
        value = extractor(properties)
        if value:
            return value
    return ""


# ---------------------------------------------------------------------------
# Candidate selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FeatureFilter:
    """Keep only features that look like conservation areas.

    Applied to a source collection before name matching, to cut the false
    positives a permissive containment match lets through (a lake or a
    recreation area that shares a forest's name).  A feature is rejected if
    its designation type or name hits an exclusion list, or if it is
    smaller than ``min_acres``.  Otherwise it is kept if it hits an
    inclusion list; with both inclusion lists empty every remaining feature
    is kept.

    Attributes:
        include_types: Designation types that qualify a feature.
        exclude_types: Designation types that disqualify a feature.
        include_keywords: Lowercase name fragments that qualify a feature.
        exclude_keywords: Lowercase name fragments that disqualify a feature.
        min_acres: Minimum size; features without a size count as 0 acres.
        acre_keys: Property keys holding the feature size in acres.
        name_extractors: Where to read the feature name.
        designation_extractors: Where to read the designation type.
    """

    include_types: tuple[str, ...] = ()
    exclude_types: tuple[str, ...] = ()
    include_keywords: tuple[str, ...] = ()
    exclude_keywords: tuple[str, ...] = ()
    min_acres: float = 0.0
    acre_keys: tuple[str, ...] = ACRE_PROPERTY_KEYS
    name_extractors: tuple[NameExtractor, ...] = DEFAULT_NAME_EXTRACTORS
    designation_extractors: tuple[NameExtractor, ...] = DEFAULT_DESIGNATION_EXTRACTORS

    @classmethod
    def conservation(cls, *, min_acres: float = DEFAULT_MIN_FEATURE_ACRES) -> FeatureFilter:
        """The PAD-US conservation vocabulary with a minimum size."""
        return cls(
            include_types=CONSERVATION_DESIGNATION_TYPES,
            exclude_types=EXCLUDED_DESIGNATION_TYPES,
            include_keywords=CONSERVATION_NAME_KEYWORDS,
            exclude_keywords=EXCLUDED_NAME_KEYWORDS,
            min_acres=min_acres,
        )

    def acres(self, feature: SourceFeature) -> float:
        """Feature size from the first numeric acre property, else 0."""
        for key in self.acre_keys:
            value = feature.properties.get(key)
            if isinstance(value, bool) or value is None:
                continue
            try:
                return float(value)
            except (TypeError, ValueError):
                continue
        return 0.0

    def accepts(self, feature: SourceFeature) -> bool:
        designation = first_value(feature.properties, self.designation_extractors).casefold()
        name = first_value(feature.properties, self.name_extractors).lower()

        if designation and designation in {t.casefold() for t in self.exclude_types}:
            return False
        if any(keyword in name for keyword in self.exclude_keywords):
            return False
        if self.acres(feature) < self.min_acres:
            return False
        if not self.include_types and not self.include_keywords:
            return True
        if designation and designation in {t.casefold() for t in self.include_types}:
            return True
        return any(keyword in name for keyword in self.include_keywords)

    def select(self, features: Iterable[SourceFeature]) -> list[SourceFeature]:
        """Accepted features, largest first (equal sizes keep source order)."""
        pool = list(features)
        kept = [f for f in pool if self.accepts(f)]
        kept.sort(key=self.acres, reverse=True)
        logger.debug("Features filtered | kept=%d | dropped=%d", len(kept), len(pool) - len(kept))
        return kept


def normalize_name(text: str, abbreviations: Mapping[str, str] = DEFAULT_ABBREVIATIONS) -> str:
    """Lowercase, strip punctuation, expand abbreviations, collapse spaces."""
    cleaned = _NON_WORD.sub(" ", text.lower().replace("_", " "))
    tokens = [abbreviations.get(token, token) for token in cleaned.split()]
    return _WHITESPACE.sub(" ", " ".join(tokens)).strip()


def _contains(haystack: str, needle: str) -> bool:
    return f" {needle} " in f" {haystack} "


def names_match(a: str, b: str) -> bool:
    """Whether two already-normalised names contain one another."""
    if not a or not b:
        return False
    return _contains(a, b) or _contains(b, a)


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """One feature that matched a site identity.

    Attributes:
        feature: The matching source feature.
        feature_name: Name extracted from the feature's properties.
        matched_name: The identity name variant that matched.
        exact: Normalised names are identical.
        designation_match: Feature designation equals the identity's.
        score: Length of the shorter normalised name (the matched text).
    """

    feature: SourceFeature
    feature_name: str
    matched_name: str
    exact: bool = False
    designation_match: bool = False
    score: int = 0

    @property
    def rank(self) -> tuple[bool, bool, int]:
        return (self.exact, self.designation_match, self.score)


class FeatureMatcher:
    """Name-based matcher over heterogeneous source features."""

    def __init__(
        self,
        name_extractors: Sequence[NameExtractor] = DEFAULT_NAME_EXTRACTORS,
        designation_extractors: Sequence[NameExtractor] = DEFAULT_DESIGNATION_EXTRACTORS,
        abbreviations: Mapping[str, str] = DEFAULT_ABBREVIATIONS,
        feature_filter: FeatureFilter | None = None,
    ) -> None:
        self.name_extractors = tuple(name_extractors)
        self.designation_extractors = tuple(designation_extractors)
        self.abbreviations = dict(abbreviations)
        self.feature_filter = feature_filter

    def feature_name(self, feature: SourceFeature) -> str:
        return first_value(feature.properties, self.name_extractors)

    def match(
        self,
        identity: SiteIdentity,
        features: Iterable[SourceFeature],
    ) -> list[MatchCandidate]:
        """Every feature matching any of the identity's names, best first.

        Returns an empty list when nothing matches; absence of a match is
        never an error.  With a ``feature_filter`` set, rejected features are
        never candidates.
        """
        if self.feature_filter is not None:
            features = self.feature_filter.select(features)

        variants = [
            (name, normalized)
            for name in identity.names
            if (normalized := normalize_name(name, self.abbreviations))
        ]
        designation = normalize_name(identity.designation, self.abbreviations)

        candidates: list[MatchCandidate] = []
        for feature in features:
            raw_name = self.feature_name(feature)
            normalized_feature = normalize_name(raw_name, self.abbreviations)
            if not normalized_feature:
                continue
            best: MatchCandidate | None = None
            for name, normalized in variants:
                if not names_match(normalized_feature, normalized):
                    continue
                raw_designation = first_value(feature.properties, self.designation_extractors)
                candidate = MatchCandidate(
                    feature=feature,
                    feature_name=raw_name,
                    matched_name=name,
                    exact=normalized_feature == normalized,
                    designation_match=bool(designation)
                    and normalize_name(raw_designation, self.abbreviations) == designation,
                    score=min(len(normalized_feature), len(normalized)),
                )
                if best is None or candidate.rank > best.rank:
                    best = candidate
            if best is not None:
                candidates.append(best)

        # sorted() is stable, so equal ranks keep source order.
        candidates.sort(key=lambda c: c.rank, reverse=True)

        logger.debug(
            "Features matched | site=%s | candidates=%d | names=%s",
            identity.id,
            len(candidates),
            [c.feature_name for c in candidates],
        )
        return candidates

    def best_match(
        self,
        identity: SiteIdentity,
        features: Iterable[SourceFeature],
        *,
        strict: bool = False,
    ) -> MatchCandidate | None:
        """The top-ranked candidate, or ``None``.

        Raises:
            AmbiguousMatchError: With ``strict=True``, if the two best
                candidates have the same rank.
        """
        candidates = self.match(identity, features)
        if not candidates:
            return None
        if strict:
            check_unambiguous(identity, candidates)
        return candidates[0]


def check_unambiguous(identity: SiteIdentity, candidates: Sequence[MatchCandidate]) -> None:
    """Raise ``AmbiguousMatchError`` if the best candidates tie on rank."""
    if len(candidates) < 2 or candidates[0].rank != candidates[1].rank:
        return
    tied = [c.feature_name for c in candidates if c.rank == candidates[0].rank]
    msg = f"{len(tied)} equally ranked candidates for '{identity.primary_name}': {tied}"
    raise AmbiguousMatchError(msg, candidates=tied, site_id=identity.id)


_DEFAULT_MATCHER = FeatureMatcher()


def match_features(
    identity: SiteIdentity,
    features: Iterable[SourceFeature],
) -> list[MatchCandidate]:
    """Match with the default extractors and abbreviations."""
    return _DEFAULT_MATCHER.match(identity, features)
