"""Timezone helpers shared by models and the window resolver."""

from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo


@lru_cache(maxsize=32)
def get_timezone(name: str) -> tzinfo:
    """Resolve a timezone name, using the fixed UTC object for 'UTC'."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def ensure_aware(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach ``tz`` (UTC by default) to a naive datetime."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=tz or timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
