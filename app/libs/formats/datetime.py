import re
from datetime import datetime, timedelta, timezone


def now() -> datetime:
    """Current UTC time without tzinfo (naive).
    All persisted timestamps in the project use this form.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_tzinfo() -> datetime:
    return datetime.now(timezone.utc)


def strip_tz(dt: datetime | None):
    if dt and dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


_TTL_RE = re.compile(r"^(\d+)([smhd])$")
_TTL_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
DEFAULT_TTL_SECONDS = 15 * 60


def parse_ttl(value: str | int | None) -> int:
    """Parse a TTL like ``"15m"``, ``"14d"`` or ``"900"`` into seconds.

    - a bare number is taken as seconds
    - ``<int><s|m|h|d>`` is scaled by its unit
    - anything else falls back to 15 minutes
    """
    if value is None:
        return DEFAULT_TTL_SECONDS
    if isinstance(value, int):
        return value
    raw = value.strip()
    if raw.isdigit():
        return int(raw)
    match = _TTL_RE.match(raw)
    if not match:
        return DEFAULT_TTL_SECONDS
    return int(match.group(1)) * _TTL_UNITS[match.group(2)]


def ttl_delta(value: str | int | None) -> timedelta:
    return timedelta(seconds=parse_ttl(value))
