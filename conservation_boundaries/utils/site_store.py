"""File-backed site record store.

One ``<site_id>.json`` document per site in a single directory, written
with two-space indentation and a trailing newline (the layout the map
front end serves statically).  Records are read and written whole; there
are no partial updates.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from conservation_boundaries.core.exceptions import SiteStoreError
from conservation_boundaries.models.site import SiteRecord

logger = logging.getLogger("conservation_boundaries.utils.site_store")

RECORD_SUFFIX = ".json"

_SITE_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]*$")


class SiteStore(Protocol):
    """Whole-record read/write access addressed by site id."""

    def site_ids(self) -> list[str]: ...

    def exists(self, site_id: str) -> bool: ...

    def load(self, site_id: str) -> SiteRecord: ...

    def save(self, record: SiteRecord) -> None: ...


def validate_site_id(site_id: str) -> str:
    """Return ``site_id`` if it is a safe lowercase slug.

    Raises:
        SiteStoreError: If the id could address a path outside the store.
    """
    if not _SITE_ID_PATTERN.match(site_id) or ".." in site_id:
        msg = f"Invalid site id {site_id!r}: expected a lowercase slug"
        raise SiteStoreError(msg, site_id=site_id)
    return site_id


class JsonSiteStore:
    """Directory of JSON site records."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def __repr__(self) -> str:
        return f"JsonSiteStore({str(self.directory)!r})"

    def path_for(self, site_id: str) -> Path:
        return self.directory / f"{validate_site_id(site_id)}{RECORD_SUFFIX}"

    def site_ids(self) -> list[str]:
        """Ids of every stored record, sorted."""
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob(f"*{RECORD_SUFFIX}") if p.is_file())

    def exists(self, site_id: str) -> bool:
        return self.path_for(site_id).is_file()

    def load(self, site_id: str) -> SiteRecord:
        """Read one record.

        Raises:
            SiteStoreError: If the file is missing, unreadable or does not
                hold a valid site record.
        """
        path = self.path_for(site_id)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            msg = f"Site record not found: {path}"
            raise SiteStoreError(msg, site_id=site_id, code="SITE_NOT_FOUND") from exc
        except OSError as exc:
            msg = f"Cannot read site record {path}: {exc}"
            raise SiteStoreError(msg, site_id=site_id) from exc

        try:
            record = SiteRecord.from_json(content)
        except PydanticValidationError as exc:
            msg = f"Malformed site record {path}: {exc.error_count()} validation error(s)"
            raise SiteStoreError(msg, site_id=site_id, code="SITE_RECORD_MALFORMED") from exc

        if record.id != site_id:
            msg = f"Site record {path} has id {record.id!r}, expected {site_id!r}"
            raise SiteStoreError(msg, site_id=site_id, code="SITE_RECORD_MALFORMED")
        return record

    def save(self, record: SiteRecord) -> None:
        """Write one record, replacing any previous version.

        Raises:
            SiteStoreError: If the file cannot be written.
        """
        path = self.path_for(record.id)
        tmp_path = path.with_suffix(f"{RECORD_SUFFIX}.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(record.to_json(indent=2) + "\n", encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            msg = f"Cannot write site record {path}: {exc}"
            raise SiteStoreError(msg, site_id=record.id) from exc
        logger.debug("Site record saved | site=%s | path=%s", record.id, path)
