from datetime import date, datetime, timezone

import pytest

from lifegroups.analytics.records import EventAttendanceRecord, GroupRecord


def at(day: str, hour: int = 18, minute: int = 0) -> datetime:
    """UTC instant on `day`; 18:00 UTC is midday in Chicago, so local and UTC dates agree."""
    d = date.fromisoformat(day)
    return datetime(d.year, d.month, d.day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def make_event():
    counter = {"n": 0}

    def _make(when, *, members=0, visitors=0, total=0, canceled=False, rate=None, present=None, event_id=None):
        counter["n"] += 1
        if isinstance(when, str):
            when = at(when)
        return EventAttendanceRecord(
            event_id=event_id or f"evt-{counter['n']}",
            date=when,
            canceled=canceled,
            present_count=members + visitors if present is None else present,
            present_members=members,
            present_visitors=visitors,
            total_count=total,
            attendance_rate=(round(members / total * 100) if total else 0) if rate is None else rate,
        )

    return _make


@pytest.fixture
def make_group():
    def _make(gid, *, name=None, family=False, group_type="Stage of Life", meeting_day="Wednesday"):
        return GroupRecord(
            id=gid,
            name=name or f"Group {gid}",
            group_type=group_type,
            meeting_day=meeting_day,
            is_family_group=family,
        )

    return _make
