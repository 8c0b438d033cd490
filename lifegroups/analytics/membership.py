# lifegroups/analytics/membership.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from itertools import chain
from typing import Iterable, Optional, Sequence

from dateutil.relativedelta import relativedelta

from lifegroups.analytics.constants import MEMBERSHIP_FALLBACK_MONTHS
from lifegroups.analytics.records import EventAttendanceRecord
from lifegroups.analytics.weeks import DEFAULT_TZ, is_reported, week_key_of


@dataclass(frozen=True)
class MembershipResolution:
    group_id: str
    total_members: int
    source: str  # week | fallback
    event_id: str
    event_date: datetime


def _has_membership_figure(event: EventAttendanceRecord, as_of: datetime, tz: tzinfo) -> bool:
    return (
        event.date is not None
        and not event.canceled
        and event.total_count > 0
        and is_reported(event, as_of, tz)
    )


def fallback_floor(week_key: datetime, months: int = MEMBERSHIP_FALLBACK_MONTHS) -> date:
    """Oldest event date a borrowed member count may come from."""
    try:
        return week_key.date() - relativedelta(months=months)
    except (ValueError, OverflowError):
        return date.min


def resolve_membership(
    week_key: datetime,
    group_id: str,
    events: Sequence[EventAttendanceRecord],
    as_of: datetime,
    supplemental_historical_events: Optional[Iterable[EventAttendanceRecord]] = None,
    *,
    fallback_months: int = MEMBERSHIP_FALLBACK_MONTHS,
    tz: tzinfo = DEFAULT_TZ,
) -> Optional[MembershipResolution]:
    """
    Authoritative registered-member count for one group in one week.

    1. This week's own events: the largest total_count among reliable ones.
    2. Otherwise the most recent reliable event on/before the week key and no
       older than `fallback_months`, searched across `events` plus any
       supplemental prior-year events.
    3. Otherwise None.
    """
    target = week_key_of(week_key)

    this_week = [
        e for e in events
        if _has_membership_figure(e, as_of, tz) and week_key_of(e.date) == target
    ]
    if this_week:
        best = max(this_week, key=lambda e: (e.total_count, e.date))
        return MembershipResolution(group_id, best.total_count, "week", best.event_id, best.date)

    floor = fallback_floor(target, fallback_months)
    ceiling = target.date()
    seen = set()
    latest: Optional[EventAttendanceRecord] = None
    for e in chain(events, supplemental_historical_events or ()):
        if e.event_id in seen:
            continue
        seen.add(e.event_id)
        if not _has_membership_figure(e, as_of, tz):
            continue
        d = e.date.date()
        if d > ceiling or d < floor:
            continue
        if latest is None or e.date > latest.date:
            latest = e

    if latest is None:
        return None
    return MembershipResolution(group_id, latest.total_count, "fallback", latest.event_id, latest.date)


def resolve_total_members(
    week_key: datetime,
    group_id: str,
    events: Sequence[EventAttendanceRecord],
    as_of: datetime,
    supplemental_historical_events: Optional[Iterable[EventAttendanceRecord]] = None,
    *,
    fallback_months: int = MEMBERSHIP_FALLBACK_MONTHS,
    tz: tzinfo = DEFAULT_TZ,
) -> int:
    """Member count for the week, 0 when nothing recent enough exists."""
    found = resolve_membership(
        week_key,
        group_id,
        events,
        as_of,
        supplemental_historical_events,
        fallback_months=fallback_months,
        tz=tz,
    )
    return found.total_members if found else 0
