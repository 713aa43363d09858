"""Relative date buckets for message timestamps."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

WEEK = timedelta(days=7)


class DateBucket(Enum):
    """How far back a message was received, relative to now."""

    TODAY = "today"
    THIS_WEEK = "this_week"
    OLDER = "older"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def classify_date(timestamp: datetime, now: datetime) -> DateBucket:
    """Bucket a timestamp relative to ``now``.

    Calendar days are taken in ``now``'s timezone. Naive datetimes are
    read as UTC.
    """
    now = _aware(now)
    local = _aware(timestamp).astimezone(now.tzinfo)

    if local.date() == now.date():
        return DateBucket.TODAY
    if now - WEEK <= local < now:
        return DateBucket.THIS_WEEK
    return DateBucket.OLDER


def format_date(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Render a timestamp for the message list.

    Today: ``"08:00"``; this week: ``"Jun 10"``; older: ``"2024-01-01"``.
    """
    now = _aware(now) if now is not None else datetime.now().astimezone()
    local = _aware(timestamp).astimezone(now.tzinfo)
    bucket = classify_date(local, now)

    if bucket is DateBucket.TODAY:
        return local.strftime("%H:%M")
    if bucket is DateBucket.THIS_WEEK:
        return f"{local.strftime('%b')} {local.day}"
    return local.date().isoformat()
