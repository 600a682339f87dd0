# Overview: UTC clock and ISO-8601 helpers shared by models, services and routes.

"""
All timestamps are stored as UTC-naive datetimes. Expiry and manufacturing
dates are plain calendar dates; "today" for near-expiry windows is the UTC
calendar day.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utctoday() -> date:
    return utcnow().date()


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into a UTC-naive datetime.

    Offsets (including a trailing "Z") are converted to UTC; a timestamp
    without an offset is taken to be UTC already. Blank input gives None,
    malformed input raises ValueError.
    """
    text = _blank_to_none(value)
    if text is None:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    text = _blank_to_none(value)
    return date.fromisoformat(text) if text is not None else None


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp as "YYYY-MM-DDTHH:MM:SSZ" (naive values are UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
