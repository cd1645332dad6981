from __future__ import annotations

import math
import re
from datetime import datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

HH_MM_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_daily_schedule(value: str) -> time:
    """
    Parse a daily trigger time from either ``"HH:MM"`` or a daily cron expression
    (``"M H * * *"``). Any other cron shape is rejected with ValueError.
    """
    raw = (value or "").strip()
    match = HH_MM_PATTERN.fullmatch(raw)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
    else:
        parts = raw.split()
        if len(parts) != 5 or any(part != "*" for part in parts[2:]):
            raise ValueError(f"Unsupported schedule {value!r}; use 'HH:MM' or 'M H * * *'.")
        if not (parts[0].isdigit() and parts[1].isdigit()):
            raise ValueError(f"Unsupported schedule {value!r}; minute and hour must be numbers.")
        minute, hour = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Schedule {value!r} is out of range.")
    return time(hour=hour, minute=minute)


def resolve_timezone(name: str | None) -> tzinfo | None:
    """
    Return the IANA zone for ``name``; None means host local time.
    """
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone {name!r}.") from None


def seconds_until(at: time, *, now: datetime | None = None, tz: tzinfo | None = None) -> float:
    """
    Seconds from ``now`` until the next wall-clock occurrence of ``at`` in ``tz``.
    """
    current = (now or datetime.now(timezone.utc)).astimezone(tz)
    target = current.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if target <= current:
        target += timedelta(days=1)
    # Same-zone subtraction ignores the UTC offsets, which differ across a DST change.
    return (target.astimezone(timezone.utc) - current.astimezone(timezone.utc)).total_seconds()


def days_remaining(ends_at: datetime, *, now: datetime) -> int:
    """
    Whole days left until ``ends_at``, rounded up and floored at zero.
    """
    delta = (ends_at - now).total_seconds()
    return max(0, math.ceil(delta / SECONDS_PER_DAY))


def parse_iso_datetime(value: object) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def discord_timestamp(dt: datetime, style: str = "F") -> str:
    return f"<t:{int(dt.timestamp())}:{style}>"
