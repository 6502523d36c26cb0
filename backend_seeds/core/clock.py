"""
Clock injection: services take a zero-arg callable returning an aware UTC datetime.

Tests pass a fixed or mutable clock instead of relying on wall-clock midnight boundaries.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]

DAY = timedelta(days=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_midnight(moment: datetime) -> datetime:
    """Start of the UTC day containing moment."""
    moment = moment.astimezone(timezone.utc)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def to_iso(moment: datetime) -> str:
    """ISO 8601 with a Z suffix, millisecond precision (2025-01-01T00:00:00.000Z)."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def from_iso(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_unix(moment: datetime) -> int:
    return int(moment.timestamp())
