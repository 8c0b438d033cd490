# lifegroups/analytics/family.py
"""
Family groups meet three times a month: the first meeting is Mothers Night,
the second Fathers Night, the third Family Night. Parents nights draw from
half of each family unit, so their rate is measured against half the roster.
"""
from __future__ import annotations
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import Enum
from statistics import mean
from typing import Dict, List, Optional, Sequence

from lifegroups.analytics.constants import FAMILY_ROLE_LABELS, ordinal_label
from lifegroups.analytics.records import EventAttendanceRecord
from lifegroups.analytics.weeks import DEFAULT_TZ


class MeetingRole(str, Enum):
    MOMS = "moms"
    DADS = "dads"
    FAMILY = "family"
    OTHER = "other"


_ROLES_BY_POSITION = (MeetingRole.MOMS, MeetingRole.DADS, MeetingRole.FAMILY)


@dataclass(frozen=True)
class MeetingClassification:
    event: EventAttendanceRecord
    ordinal_position: int
    role: MeetingRole
    label: str
    usable: bool
    calculated_rate: Optional[int]  # None when unusable or OTHER

    @property
    def is_parents_night(self) -> bool:
        return self.role in (MeetingRole.MOMS, MeetingRole.DADS)


@dataclass
class MonthClassification:
    month: str  # YYYY-MM
    mothers_night: Optional[MeetingClassification] = None
    fathers_night: Optional[MeetingClassification] = None
    family_night: Optional[MeetingClassification] = None
    others: List[MeetingClassification] = field(default_factory=list)

    def meetings(self) -> List[MeetingClassification]:
        found = [self.mothers_night, self.fathers_night, self.family_night]
        return [m for m in found if m is not None] + list(self.others)


@dataclass(frozen=True)
class FamilyGroupMetrics:
    parents_nights_attendance: int
    parents_nights_rate: int
    family_nights_attendance: int
    family_nights_rate: int
    total_months: int = 0
    months_with_parents_data: int = 0
    months_with_family_data: int = 0
    mothers_nights_count: int = 0
    fathers_nights_count: int = 0
    family_nights_count: int = 0

    def as_dict(self) -> dict:
        return {
            "parentsNightsAttendance": self.parents_nights_attendance,
            "parentsNightsRate": self.parents_nights_rate,
            "familyNightsAttendance": self.family_nights_attendance,
            "familyNightsRate": self.family_nights_rate,
            "eventsBreakdown": {
                "totalMonths": self.total_months,
                "monthsWithParentsData": self.months_with_parents_data,
                "monthsWithFamilyData": self.months_with_family_data,
                "mothersNightsCount": self.mothers_nights_count,
                "fathersNightsCount": self.fathers_nights_count,
                "familyNightsCount": self.family_nights_count,
            },
        }


def is_usable(event: EventAttendanceRecord) -> bool:
    return not event.canceled and event.present_count > 0


def _raw_rate(event: EventAttendanceRecord, role: MeetingRole) -> float:
    if role is MeetingRole.FAMILY:
        return float(event.attendance_rate)
    half_roster = math.ceil(event.total_count / 2)
    if half_roster <= 0:
        return 0.0
    return event.present_members / half_roster * 100


def classify_meeting(event: EventAttendanceRecord, position: int) -> MeetingClassification:
    if position < len(_ROLES_BY_POSITION):
        role = _ROLES_BY_POSITION[position]
        label = FAMILY_ROLE_LABELS[position]
    else:
        role = MeetingRole.OTHER
        label = ordinal_label(position)

    usable = is_usable(event)
    rate = None
    if usable and role is not MeetingRole.OTHER:
        rate = round(_raw_rate(event, role))
    return MeetingClassification(event, position, role, label, usable, rate)


def classify_month(month: str, ordered_events: Sequence[EventAttendanceRecord]) -> MonthClassification:
    """`ordered_events` must already be one month's events, oldest first."""
    out = MonthClassification(month=month)
    for position, event in enumerate(ordered_events):
        meeting = classify_meeting(event, position)
        if meeting.role is MeetingRole.MOMS:
            out.mothers_night = meeting
        elif meeting.role is MeetingRole.DADS:
            out.fathers_night = meeting
        elif meeting.role is MeetingRole.FAMILY:
            out.family_night = meeting
        else:
            out.others.append(meeting)
    return out


def classify(
    events: Sequence[EventAttendanceRecord],
    now: datetime,
    tz: tzinfo = DEFAULT_TZ,
) -> "OrderedDict[str, MonthClassification]":
    """
    Classify every past meeting by its position within its calendar month.
    Cancelled and zero-attendance meetings still hold their position.
    """
    past = sorted(
        (e for e in events if e.date is not None and e.date <= now),
        key=lambda e: e.date,
    )
    by_month: Dict[str, List[EventAttendanceRecord]] = OrderedDict()
    for e in past:
        key = e.date.astimezone(tz).strftime("%Y-%m")
        by_month.setdefault(key, []).append(e)

    return OrderedDict((month, classify_month(month, evts)) for month, evts in by_month.items())


def family_group_metrics(
    events: Sequence[EventAttendanceRecord],
    now: datetime,
    tz: tzinfo = DEFAULT_TZ,
) -> FamilyGroupMetrics:
    months = classify(events, now, tz)

    month_parent_rates: List[float] = []
    month_family_rates: List[float] = []
    parents_present: List[int] = []
    family_present: List[int] = []
    counts = {MeetingRole.MOMS: 0, MeetingRole.DADS: 0, MeetingRole.FAMILY: 0}

    for month in months.values():
        parent_rates: List[float] = []
        for meeting in month.meetings():
            if not meeting.is_parents_night:
                continue
            counts[meeting.role] += 1
            if meeting.usable:
                parent_rates.append(_raw_rate(meeting.event, meeting.role))
                parents_present.append(meeting.event.present_members)
        if parent_rates:
            month_parent_rates.append(mean(parent_rates))

        fam = month.family_night
        if fam is not None:
            counts[MeetingRole.FAMILY] += 1
            if fam.usable:
                month_family_rates.append(_raw_rate(fam.event, fam.role))
                family_present.append(fam.event.present_members)

    def _avg(values) -> int:
        return round(mean(values)) if values else 0

    return FamilyGroupMetrics(
        parents_nights_attendance=_avg(parents_present),
        parents_nights_rate=_avg(month_parent_rates),
        family_nights_attendance=_avg(family_present),
        family_nights_rate=_avg(month_family_rates),
        total_months=len(months),
        months_with_parents_data=len(month_parent_rates),
        months_with_family_data=len(month_family_rates),
        mothers_nights_count=counts[MeetingRole.MOMS],
        fathers_nights_count=counts[MeetingRole.DADS],
        family_nights_count=counts[MeetingRole.FAMILY],
    )
