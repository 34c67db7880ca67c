# promo_engine/utils/dates.py
from datetime import datetime, timezone

def utcnow() -> datetime:
    # stored datetimes are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)

def as_naive_utc(dt: datetime | None) -> datetime | None:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)

def parse_iso8601(s):
    if not s:
        return None
    s = s.strip()
    # support trailing 'Z' (UTC)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return as_naive_utc(datetime.fromisoformat(s))
    except ValueError:
        return None
