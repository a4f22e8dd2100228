"""Site identity registry.

A single immutable mapping ``site_id -> SiteIdentity`` loaded once per
process.  Each identity lists every name variant a publisher may use for
the site (official name, abbreviation, former name) plus its designation
category, which the matcher uses to rank candidates.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

from conservation_boundaries.core.exceptions import RegistryError

logger = logging.getLogger("conservation_boundaries.core.registry")

DEFAULT_REGISTRY_RESOURCE = "site_identities.json"


@dataclass(frozen=True, slots=True)
class SiteIdentity:
    """Canonical identity of a conservation site.

    Attributes:
        id: Stable site key (e.g. ``"mark-twain-nf"``).
        names: Non-empty tuple of name variants used for matching.
        designation: Designation category (e.g. ``"National Forest"``).
    """

    id: str
    names: tuple[str, ...]
    designation: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            msg = "Site identity requires a non-empty id"
            raise RegistryError(msg)
        cleaned = tuple(n.strip() for n in self.names if isinstance(n, str) and n.strip())
        if not cleaned:
            msg = f"Site identity '{self.id}' has no usable name variants"
            raise RegistryError(msg, site_id=self.id)
        object.__setattr__(self, "names", cleaned)

    @property
    def primary_name(self) -> str:
        return self.names[0]


class SiteRegistry(Mapping[str, SiteIdentity]):
    """Read-only registry of site identities, iterated in load order."""

    __slots__ = ("_identities",)

    def __init__(self, identities: Mapping[str, SiteIdentity] | None = None) -> None:
        self._identities: Mapping[str, SiteIdentity] = MappingProxyType(dict(identities or {}))

    def __getitem__(self, site_id: str) -> SiteIdentity:
        return self._identities[site_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._identities)

    def __len__(self) -> int:
        return len(self._identities)

    def __repr__(self) -> str:
        return f"SiteRegistry({len(self)} sites)"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SiteRegistry:
        """Build a registry from ``{site_id: {"names": [...], "designation": ...}}``.

        A bare list of names is accepted in place of the entry object.

        Raises:
            RegistryError: If an entry is malformed.
        """
        if not isinstance(data, Mapping):
            msg = f"Registry data must be a mapping, got {type(data).__name__}"
            raise RegistryError(msg)

        identities: dict[str, SiteIdentity] = {}
        for site_id, entry in data.items():
            if isinstance(entry, list):
                names, designation = entry, ""
            elif isinstance(entry, Mapping):
                names = entry.get("names", entry.get("name", []))
                designation = str(entry.get("designation", ""))
            else:
                msg = f"Registry entry for '{site_id}' must be an object or a list of names"
                raise RegistryError(msg, site_id=str(site_id))
            if isinstance(names, str):
                names = [names]
            if not isinstance(names, list):
                msg = f"Registry entry for '{site_id}' has invalid names: {names!r}"
                raise RegistryError(msg, site_id=str(site_id))
            identities[str(site_id)] = SiteIdentity(
                id=str(site_id), names=tuple(names), designation=designation
            )
        return cls(identities)

    @classmethod
    def from_json_file(cls, path: Path | str) -> SiteRegistry:
        """Load a registry from a JSON file.

        Raises:
            RegistryError: If the file is unreadable or malformed.
        """
        file_path = Path(path)
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Cannot load site registry {file_path}: {exc}"
            raise RegistryError(msg) from exc
        registry = cls.from_mapping(data)
        logger.info("Site registry loaded | path=%s | sites=%d", file_path, len(registry))
        return registry

    @classmethod
    def default(cls) -> SiteRegistry:
        """The bundled reference table of US conservation sites."""
        resource = resources.files("conservation_boundaries.data").joinpath(
            DEFAULT_REGISTRY_RESOURCE
        )
        return cls.from_mapping(json.loads(resource.read_text(encoding="utf-8")))
