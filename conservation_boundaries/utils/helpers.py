"""Small shared helpers."""

from __future__ import annotations

from datetime import UTC, date, datetime


def today_utc() -> date:
    """Current UTC calendar date, used for ``lastUpdated`` stamps."""
    return datetime.now(UTC).date()
