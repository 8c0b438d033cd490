# lifegroups/analytics/attention.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Iterable

from lifegroups.analytics.constants import (
    ASSUMED_EVENT_DURATION_HOURS,
    ATTENTION_BUFFER_HOURS,
    ATTENTION_LOOKBACK_DAYS,
)
from lifegroups.analytics.records import EventAttendanceRecord
from lifegroups.analytics.weeks import DEFAULT_TZ, local_date


@dataclass(frozen=True)
class AttentionConfig:
    lookback_days: int = ATTENTION_LOOKBACK_DAYS
    buffer_hours: int = ATTENTION_BUFFER_HOURS
    assumed_duration_hours: int = ASSUMED_EVENT_DURATION_HOURS


def lacks_attendance(event: EventAttendanceRecord) -> bool:
    # A zero head count with a roster is a deliberately submitted zero.
    return event.present_count == 0 and event.total_count == 0


def is_overdue(
    event: EventAttendanceRecord,
    now: datetime,
    config: AttentionConfig = AttentionConfig(),
    tz: tzinfo = DEFAULT_TZ,
) -> bool:
    if event.date is None or event.canceled or event.date > now:
        return False
    if local_date(event.date, tz) < local_date(now, tz) - timedelta(days=config.lookback_days):
        return False
    assumed_end = event.date + timedelta(hours=config.assumed_duration_hours)
    if assumed_end > now - timedelta(hours=config.buffer_hours):
        return False
    return lacks_attendance(event)


def needs_attention(
    events: Iterable[EventAttendanceRecord],
    now: datetime,
    config: AttentionConfig = AttentionConfig(),
    tz: tzinfo = DEFAULT_TZ,
) -> bool:
    """True when a meeting from the last few days is past due for attendance."""
    return any(is_overdue(e, now, config, tz) for e in events)
