"""Datetime helpers. All stored and compared times are UTC; venue-local times are converted on the way in."""
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite returns them naive); convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (trailing Z allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return as_utc(value)
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(s))


def zone_or_default(name: str | None, default: tzinfo) -> tzinfo:
    """IANA zone by name; unknown or missing names fall back to default."""
    if not name or not isinstance(name, str):
        return default
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return default


def local_to_utc(value: datetime, tz: tzinfo) -> datetime:
    """A naive wall-clock time at a venue in zone tz, as aware UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)


def local_days(start: datetime, end: datetime | None, tz: tzinfo, limit: int = 3) -> list[date]:
    """Calendar days (in zone tz) touched by [start, end], at most limit of them."""
    first = as_utc(start).astimezone(tz).date()
    last = as_utc(end).astimezone(tz).date() if end is not None else first
    days: list[date] = []
    day = first
    while day <= last and len(days) < limit:
        days.append(day)
        day += timedelta(days=1)
    return days
