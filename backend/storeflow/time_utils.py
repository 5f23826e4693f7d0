from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD" (a full datetime string is accepted and truncated)."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) > 10:
        parsed = parse_iso_datetime(s)
        return parsed.date() if parsed else None
    return date.fromisoformat(s)


def parse_time_of_day(value: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse "HH:MM" into (hour, minute). Returns None for blank input."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    parts = s.split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time of day: {value}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day: {value}")
    return hour, minute


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time(0, 0, 0, 0))


def end_of_day(day: date) -> datetime:
    """Last millisecond of the day (23:59:59.999)."""
    return datetime.combine(day, time(23, 59, 59, 999000))


def day_window(
    day: date,
    start_hm: Optional[tuple[int, int]] = None,
    end_hm: Optional[tuple[int, int]] = None,
) -> tuple[datetime, datetime]:
    """
    Inclusive [start, end] window inside a calendar day.

    A start time opens at HH:MM:00.000, an end time closes at HH:MM:59.999.
    An end earlier than the start falls back to the full day.
    """
    window_start = start_of_day(day)
    window_end = end_of_day(day)
    if start_hm:
        window_start = datetime.combine(day, time(start_hm[0], start_hm[1], 0, 0))
    if end_hm:
        window_end = datetime.combine(day, time(end_hm[0], end_hm[1], 59, 999000))
    if window_end < window_start:
        return start_of_day(day), end_of_day(day)
    return window_start, window_end


def to_utc_z(dt: Optional[datetime], *, millis: bool = False) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    if millis:
        return dt_utc.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"
    return dt_utc.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def to_iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None
