"""Human-readable dates for timeline event prose.

``format_short_date`` renders "Oct 3"; ``format_relative`` renders
"3 days ago" / "in about 2 hours" using the same buckets the web client
shows next to live results.
"""
from datetime import datetime, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo

MINUTES_IN_DAY = 1440
MINUTES_IN_MONTH = 43200


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=dt_timezone.utc)


def format_short_date(value: datetime, tz: Optional[ZoneInfo] = None) -> str:
    """Month abbreviation and day without padding, e.g. ``Oct 3``."""
    local = _as_aware(value).astimezone(tz)
    return f"{local.strftime('%b')} {local.day}"


def format_distance(value: datetime, now: datetime) -> str:
    """Approximate distance between two instants, without direction."""
    seconds = abs((_as_aware(now) - _as_aware(value)).total_seconds())
    minutes = round(seconds / 60)

    if minutes < 1:
        return "less than a minute"
    if minutes < 2:
        return "1 minute"
    if minutes < 45:
        return f"{minutes} minutes"
    if minutes < 90:
        return "about 1 hour"
    if minutes < MINUTES_IN_DAY:
        return f"about {round(minutes / 60)} hours"
    if minutes < 2520:
        return "1 day"
    if minutes < MINUTES_IN_MONTH:
        return f"{round(minutes / MINUTES_IN_DAY)} days"
    if minutes < 64800:
        return "about 1 month"
    if minutes < 86400:
        return "about 2 months"

    months = round(minutes / MINUTES_IN_MONTH)
    if months < 12:
        return f"{months} months"

    years, remainder = divmod(months, 12)
    if remainder < 3:
        prefix = "about"
    elif remainder < 9:
        prefix = "over"
    else:
        prefix = "almost"
        years += 1
    unit = "year" if years == 1 else "years"
    return f"{prefix} {years} {unit}"


def format_relative(value: datetime, now: datetime) -> str:
    distance = format_distance(value, now)
    if _as_aware(value) <= _as_aware(now):
        return f"{distance} ago"
    return f"in {distance}"
