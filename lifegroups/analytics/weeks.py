# lifegroups/analytics/weeks.py
from __future__ import annotations
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Union
from zoneinfo import ZoneInfo

from lifegroups.analytics.constants import DEFAULT_TIMEZONE, MEETING_WEEKDAYS
from lifegroups.analytics.records import EARLIEST_INSTANT, EventAttendanceRecord

DEFAULT_TZ = ZoneInfo(DEFAULT_TIMEZONE)

DateLike = Union[date, datetime]


def _as_utc(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def week_key_of(value: DateLike) -> datetime:
    """
    Wednesday (UTC midnight) anchoring the reporting week that contains `value`.

    Sun..Tue belong to the previous Wednesday, Wed..Sat to this week's Wednesday.
    Naive datetimes and plain dates are read as UTC. The first days of year 1
    have no earlier Wednesday and clamp to the first one.
    """
    try:
        utc = _as_utc(value)
        days_since_wednesday = (utc.weekday() - 2) % 7  # Monday=0, Wednesday=2
        anchor = utc - timedelta(days=days_since_wednesday)
    except OverflowError:
        return EARLIEST_INSTANT
    return anchor.replace(hour=0, minute=0, second=0, microsecond=0)


def week_label(week_key: datetime) -> str:
    return week_key.date().isoformat()


def local_date(value: datetime, tz: tzinfo = DEFAULT_TZ) -> date:
    return _as_utc(value).astimezone(tz).date()


def is_meeting_day(
    event: EventAttendanceRecord,
    tz: tzinfo = DEFAULT_TZ,
    weekdays: Iterable[int] = MEETING_WEEKDAYS,
) -> bool:
    """Only local Wednesday/Thursday meetings feed the cross-group weeks."""
    if event.date is None:
        return False
    return event.date.astimezone(tz).weekday() in set(weekdays)


def yesterday_for(as_of: datetime, tz: tzinfo = DEFAULT_TZ) -> date:
    return local_date(as_of, tz) - timedelta(days=1)


def is_reported(event: EventAttendanceRecord, as_of: datetime, tz: tzinfo = DEFAULT_TZ) -> bool:
    """
    Zero-attendance policy.

    A cancelled event never counts. A positive head count always counts.
    A zero count is only a submitted zero once the meeting day is over,
    i.e. the event is dated yesterday (relative to `as_of`) or earlier.
    """
    if event.canceled or event.date is None:
        return False
    if event.present_count > 0:
        return True
    return local_date(event.date, tz) <= yesterday_for(as_of, tz)


def is_pending(event: EventAttendanceRecord, as_of: datetime, tz: tzinfo = DEFAULT_TZ) -> bool:
    """Not cancelled, no head count, and still today or in the future."""
    if event.canceled or event.date is None:
        return False
    return not is_reported(event, as_of, tz)
