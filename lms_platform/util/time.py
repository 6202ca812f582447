from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return to_iso(datetime.now(timezone.utc))


def utc_in_minutes_iso(minutes: int) -> str:
    return to_iso(datetime.now(timezone.utc) + timedelta(minutes=int(minutes)))


def to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def ts_to_month_index(ts: int | float | None) -> int | None:
    """0-based month (Jan=0) of a unix timestamp, in UTC."""
    if ts is None:
        return None
    try:
        return datetime.fromtimestamp(float(ts), tz=timezone.utc).month - 1
    except Exception:
        return None
