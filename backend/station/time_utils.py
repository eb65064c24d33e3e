# Overview: UTC clock and datetime helpers shared by services, routes and CLI.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC, naive. Every stored timestamp uses this clock."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def elapsed_hours(start: datetime, end: Optional[datetime] = None) -> float:
    """Hours from start to end (default now), e.g. the length of a shift."""
    return ((end or utcnow()) - start).total_seconds() / 3600


def elapsed_minutes(start: datetime, end: Optional[datetime] = None) -> int:
    """Whole minutes from start to end (default now), never negative."""
    return max(int(((end or utcnow()) - start).total_seconds() // 60), 0)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 query/body value into a UTC-naive datetime.

    - None / "" -> None
    - naive values are taken as UTC
    - "...Z" or "...+HH:MM" is converted to UTC
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing 'Z', to the second. Naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
