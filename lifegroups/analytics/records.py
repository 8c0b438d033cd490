# lifegroups/analytics/records.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional


# Instants the week and local-day arithmetic can represent: the first
# Wednesday of year 1 through the day before the last representable day.
EARLIEST_INSTANT = datetime(1, 1, 3, tzinfo=timezone.utc)
LATEST_INSTANT = datetime(9999, 12, 30, tzinfo=timezone.utc)


def parse_instant(raw: Any) -> Optional[datetime]:
    """
    Parse an ISO8601 string (PCO style, trailing Z) or datetime into an aware UTC datetime.
    Naive values are read as UTC. Returns None for anything unparseable or out of range.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, date):
        dt = datetime(raw.year, raw.month, raw.day)
    else:
        try:
            dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            return None
    try:
        dt = dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)
    except OverflowError:
        return None
    if not EARLIEST_INSTANT <= dt <= LATEST_INSTANT:
        return None
    return dt


def _count(raw: Any) -> int:
    """Non-negative int from whatever upstream sent; junk counts as 0."""
    try:
        n = int(raw or 0)
    except (TypeError, ValueError):
        return 0
    return max(n, 0)


@dataclass(frozen=True)
class EventAttendanceRecord:
    event_id: str
    date: Optional[datetime]
    canceled: bool = False
    present_count: int = 0
    present_members: int = 0
    present_visitors: int = 0
    total_count: int = 0
    attendance_rate: int = 0
    name: str = ""

    def __post_init__(self):
        # records built directly get the same normalization as parsed ones
        object.__setattr__(self, "date", parse_instant(self.date))
        for attr in ("present_count", "present_members", "present_visitors", "total_count", "attendance_rate"):
            object.__setattr__(self, attr, _count(getattr(self, attr)))

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "EventAttendanceRecord":
        """
        Build from the `{event: {...}, attendance_summary: {...}}` shape.
        Negative counts are clamped to 0 and a cancelled event carries no attendance.
        """
        event = payload.get("event") or {}
        summary = payload.get("attendance_summary") or {}
        canceled = bool(event.get("canceled"))

        members = _count(summary.get("present_members"))
        visitors = _count(summary.get("present_visitors"))
        present = _count(summary.get("present_count")) if "present_count" in summary else members + visitors
        total = _count(summary.get("total_count"))
        if "attendance_rate" in summary:
            rate = _count(summary.get("attendance_rate"))
        else:
            rate = round(members / total * 100) if total else 0

        if canceled:
            members = visitors = present = rate = 0

        return cls(
            event_id=str(event.get("id") or ""),
            name=event.get("name") or "",
            date=parse_instant(event.get("date")),
            canceled=canceled,
            present_count=present,
            present_members=members,
            present_visitors=visitors,
            total_count=total,
            attendance_rate=rate,
        )

    def as_payload(self) -> Dict[str, Any]:
        return {
            "event": {
                "id": self.event_id,
                "name": self.name,
                "date": self.date.isoformat() if self.date else None,
                "canceled": self.canceled,
            },
            "attendance_summary": {
                "total_count": self.total_count,
                "present_count": self.present_count,
                "present_members": self.present_members,
                "present_visitors": self.present_visitors,
                "absent_count": max(self.total_count - self.present_members, 0),
                "attendance_rate": self.attendance_rate,
            },
        }


@dataclass(frozen=True)
class GroupRecord:
    id: str
    name: str
    group_type: str = "Unknown"
    meeting_day: str = "Unknown"
    is_family_group: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "isFamilyGroup": self.is_family_group,
            "metadata": {"groupType": self.group_type, "meetingDay": self.meeting_day},
        }


@dataclass(frozen=True)
class MembershipSnapshotRow:
    date: date
    group_id: str
    person_id: str
    group_name: str = ""
    first_name: str = ""
    last_name: str = ""
    role: str = "member"
