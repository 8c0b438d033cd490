# lifegroups/analytics/stats.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Sequence, Union

from lifegroups.analytics.attention import AttentionConfig, needs_attention
from lifegroups.analytics.family import FamilyGroupMetrics, family_group_metrics
from lifegroups.analytics.records import EventAttendanceRecord, GroupRecord
from lifegroups.analytics.weeks import DEFAULT_TZ


@dataclass(frozen=True)
class RegularGroupStats:
    group_id: str
    total_events: int
    events_with_attendance: int
    average_attendance: int
    average_members: int
    average_visitors: int
    overall_attendance_rate: int
    needs_attention: bool

    def as_dict(self) -> dict:
        return {
            "total_events": self.total_events,
            "events_with_attendance": self.events_with_attendance,
            "average_attendance": self.average_attendance,
            "average_members": self.average_members,
            "average_visitors": self.average_visitors,
            "overall_attendance_rate": self.overall_attendance_rate,
            "needsAttention": self.needs_attention,
        }


@dataclass(frozen=True)
class FamilyGroupStats(RegularGroupStats):
    family: FamilyGroupMetrics

    def as_dict(self) -> dict:
        out = super().as_dict()
        out["familyGroup"] = self.family.as_dict()
        return out


GroupStats = Union[RegularGroupStats, FamilyGroupStats]


def _avg(total: int, n: int) -> int:
    return round(total / n) if n else 0


def build_group_stats(
    group: GroupRecord,
    events: Sequence[EventAttendanceRecord],
    now: datetime,
    tz: tzinfo = DEFAULT_TZ,
    attention: AttentionConfig = AttentionConfig(),
) -> GroupStats:
    """
    Headline numbers for one group. Averages only use past, non-cancelled
    meetings where somebody was marked present.
    """
    past = [e for e in events if e.date is not None and e.date <= now]
    attended = [e for e in past if not e.canceled and e.present_count > 0]

    n = len(attended)
    present = sum(e.present_count for e in attended)
    possible = sum(e.total_count for e in attended)
    visitors = sum(e.present_visitors for e in attended)

    base = dict(
        group_id=group.id,
        total_events=n,
        events_with_attendance=n,
        average_attendance=_avg(present, n),
        average_members=_avg(possible, n),
        average_visitors=_avg(visitors, n),
        overall_attendance_rate=round(present / possible * 100) if possible else 0,
        needs_attention=needs_attention(events, now, attention, tz),
    )
    if group.is_family_group:
        return FamilyGroupStats(**base, family=family_group_metrics(events, now, tz))
    return RegularGroupStats(**base)
