# lifegroups/analytics/rollup.py
"""
Cross-group weekly rollup.

Events from every selected group are folded into one WeekBucket per week key,
then each bucket is finalized into an immutable WeeklySeries row. Weeks
without enough reporting groups (quorum) or without any signal are dropped.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from lifegroups.analytics.constants import (
    MEETING_WEEKDAYS,
    MEMBERSHIP_FALLBACK_MONTHS,
    QUORUM_FILTERED,
    QUORUM_UNFILTERED,
)
from lifegroups.analytics.membership import resolve_membership
from lifegroups.analytics.records import EventAttendanceRecord, GroupRecord
from lifegroups.analytics.weeks import DEFAULT_TZ, is_meeting_day, is_pending, week_key_of, week_label

EventsByGroup = Mapping[str, Sequence[EventAttendanceRecord]]


@dataclass(frozen=True)
class RollupFilters:
    """
    Group selection for the rollup. Explicit `group_ids` override the type/day
    subsets. `filtered` says whether the caller is showing anything other than
    the default view; it decides the quorum.
    """
    group_types: Optional[FrozenSet[str]] = None
    meeting_days: Optional[FrozenSet[str]] = None
    group_ids: Optional[FrozenSet[str]] = None
    filtered: bool = False

    def selects(self, group: GroupRecord) -> bool:
        if self.group_ids:
            return group.id in self.group_ids
        if self.group_types is not None and group.group_type not in self.group_types:
            return False
        if self.meeting_days is not None and group.meeting_day not in self.meeting_days:
            return False
        return True


@dataclass(frozen=True)
class RollupConfig:
    quorum_unfiltered: int = QUORUM_UNFILTERED
    quorum_filtered: int = QUORUM_FILTERED
    fallback_months: int = MEMBERSHIP_FALLBACK_MONTHS
    meeting_weekdays: FrozenSet[int] = MEETING_WEEKDAYS
    tz: tzinfo = DEFAULT_TZ

    def quorum_for(self, filters: RollupFilters) -> int:
        return self.quorum_filtered if filters.filtered else self.quorum_unfiltered


@dataclass
class WeekBucket:
    week_key: datetime
    total_present: int = 0
    total_visitors: int = 0
    family_present: int = 0
    non_family_present: int = 0
    family_visitors: int = 0
    non_family_visitors: int = 0
    total_members: int = 0
    groups_with_attendance: Set[str] = field(default_factory=set)
    groups_with_actual_attendance: Set[str] = field(default_factory=set)
    groups_with_scheduled_events: Set[str] = field(default_factory=set)
    groups_with_cancelled_events: Set[str] = field(default_factory=set)
    groups_with_membership_data: Set[str] = field(default_factory=set)
    days_with_attendance: Set[int] = field(default_factory=set)
    counted_event_ids: Set[str] = field(default_factory=set)

    def add_cancelled(self, group: GroupRecord) -> None:
        self.groups_with_scheduled_events.add(group.id)
        self.groups_with_cancelled_events.add(group.id)

    def add_attendance(self, group: GroupRecord, event: EventAttendanceRecord, weekday: int) -> None:
        self.groups_with_scheduled_events.add(group.id)
        if event.event_id in self.counted_event_ids:
            return
        self.counted_event_ids.add(event.event_id)

        self.total_present += event.present_members
        self.total_visitors += event.present_visitors
        if group.is_family_group:
            self.family_present += event.present_members
            self.family_visitors += event.present_visitors
        else:
            self.non_family_present += event.present_members
            self.non_family_visitors += event.present_visitors

        self.groups_with_attendance.add(group.id)
        self.days_with_attendance.add(weekday)
        if event.present_count > 0:
            self.groups_with_actual_attendance.add(group.id)

    def add_members(self, group_id: str, count: int) -> None:
        if count > 0:
            self.total_members += count
            self.groups_with_membership_data.add(group_id)

    @property
    def groups_missing_data(self) -> Set[str]:
        return self.groups_with_scheduled_events - self.groups_with_cancelled_events - self.groups_with_actual_attendance


@dataclass(frozen=True)
class WeeklySeries:
    week_key: datetime
    total_present: int
    total_visitors: int
    total_with_visitors: int
    family_present: int
    non_family_present: int
    family_visitors: int
    non_family_visitors: int
    total_members: int
    attendance_rate: int
    groups_with_attendance: int
    groups_with_membership_data: int
    groups_with_scheduled_events: Tuple[str, ...]
    groups_with_cancelled_events: Tuple[str, ...]
    groups_with_actual_attendance: Tuple[str, ...]
    groups_missing_data: Tuple[str, ...]
    is_perfect_week: bool
    days_included: int

    def as_dict(self) -> dict:
        return {
            "date": week_label(self.week_key),
            "totalPresent": self.total_present,
            "totalVisitors": self.total_visitors,
            "totalWithVisitors": self.total_with_visitors,
            "familyPresent": self.family_present,
            "nonFamilyPresent": self.non_family_present,
            "familyVisitors": self.family_visitors,
            "nonFamilyVisitors": self.non_family_visitors,
            "totalMembers": self.total_members,
            "attendanceRate": self.attendance_rate,
            "groupsWithAttendance": self.groups_with_attendance,
            "groupsWithMembershipData": self.groups_with_membership_data,
            "groupsWithScheduledEvents": list(self.groups_with_scheduled_events),
            "groupsWithCancelledEvents": list(self.groups_with_cancelled_events),
            "groupsWithActualAttendance": list(self.groups_with_actual_attendance),
            "groupsMissingData": list(self.groups_missing_data),
            "isPerfectWeek": self.is_perfect_week,
            "daysIncluded": self.days_included,
        }


def _names(ids: Iterable[str], names: Mapping[str, str]) -> Tuple[str, ...]:
    return tuple(sorted(names.get(i, i) for i in ids))


def bucket_events(
    groups: Iterable[GroupRecord],
    per_group_events: EventsByGroup,
    as_of: datetime,
    config: RollupConfig = RollupConfig(),
) -> Dict[datetime, WeekBucket]:
    """Fold every meeting-day event of `groups` into week buckets (no membership yet)."""
    buckets: Dict[datetime, WeekBucket] = {}
    for group in groups:
        events = [e for e in per_group_events.get(group.id) or () if e.date is not None]
        for event in sorted(events, key=lambda e: e.date):
            if not is_meeting_day(event, config.tz, config.meeting_weekdays):
                continue
            key = week_key_of(event.date)
            if event.canceled:
                buckets.setdefault(key, WeekBucket(key)).add_cancelled(group)
            elif is_pending(event, as_of, config.tz):
                continue  # not reported yet: no bucket, not scheduled
            else:
                weekday = event.date.astimezone(config.tz).weekday()
                buckets.setdefault(key, WeekBucket(key)).add_attendance(group, event, weekday)
    return buckets


def finalize(bucket: WeekBucket, names: Mapping[str, str]) -> WeeklySeries:
    present = bucket.total_present
    members = bucket.total_members
    scheduled = _names(bucket.groups_with_scheduled_events, names)
    missing = _names(bucket.groups_missing_data, names)
    return WeeklySeries(
        week_key=bucket.week_key,
        total_present=present,
        total_visitors=bucket.total_visitors,
        total_with_visitors=present + bucket.total_visitors,
        family_present=bucket.family_present,
        non_family_present=bucket.non_family_present,
        family_visitors=bucket.family_visitors,
        non_family_visitors=bucket.non_family_visitors,
        total_members=members,
        attendance_rate=round(present / members * 100) if members > 0 else 0,
        groups_with_attendance=len(bucket.groups_with_attendance),
        groups_with_membership_data=len(bucket.groups_with_membership_data),
        groups_with_scheduled_events=scheduled,
        groups_with_cancelled_events=_names(bucket.groups_with_cancelled_events, names),
        groups_with_actual_attendance=_names(bucket.groups_with_actual_attendance, names),
        groups_missing_data=missing,
        is_perfect_week=not missing and bool(scheduled),
        days_included=len(bucket.days_with_attendance),
    )


def rollup(
    groups: Iterable[GroupRecord],
    per_group_events: EventsByGroup,
    filters: RollupFilters,
    as_of: datetime,
    supplemental_events: Optional[EventsByGroup] = None,
    config: RollupConfig = RollupConfig(),
) -> List[WeeklySeries]:
    """
    Weekly cross-group attendance series, oldest week first.

    `per_group_events` may be sparse: a group with no entry simply adds nothing.
    `supplemental_events` are prior-period events used only for the member-count
    fallback (pass them when the events themselves are limited to this year).
    """
    selected = [g for g in groups if filters.selects(g)]
    names = {g.id: g.name for g in selected}
    buckets = bucket_events(selected, per_group_events, as_of, config)

    supplemental_events = supplemental_events or {}
    quorum = config.quorum_for(filters)

    series: List[WeeklySeries] = []
    for key in sorted(buckets):
        bucket = buckets[key]
        if len(bucket.groups_with_attendance) < quorum:
            continue
        for gid in sorted(bucket.groups_with_attendance):
            found = resolve_membership(
                key,
                gid,
                per_group_events.get(gid) or (),
                as_of,
                supplemental_events.get(gid),
                fallback_months=config.fallback_months,
                tz=config.tz,
            )
            if found:
                bucket.add_members(gid, found.total_members)
        if bucket.total_members == 0 and bucket.total_present == 0:
            continue
        series.append(finalize(bucket, names))
    return series
