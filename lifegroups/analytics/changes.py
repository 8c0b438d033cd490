# lifegroups/analytics/changes.py
from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from lifegroups.analytics.records import MembershipSnapshotRow


@dataclass(frozen=True)
class MembershipChange:
    person_id: str
    first_name: str
    last_name: str
    group_id: str
    group_name: str
    date: date

    def as_dict(self) -> dict:
        return {
            "personId": self.person_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "groupId": self.group_id,
            "groupName": self.group_name,
            "date": self.date.isoformat(),
        }


@dataclass
class MembershipChangeResult:
    joins: List[MembershipChange] = field(default_factory=list)
    leaves: List[MembershipChange] = field(default_factory=list)

    @property
    def total_joins(self) -> int:
        return len(self.joins)

    @property
    def total_leaves(self) -> int:
        return len(self.leaves)

    def as_dict(self) -> dict:
        return {
            "joins": [c.as_dict() for c in self.joins],
            "leaves": [c.as_dict() for c in self.leaves],
            "totalJoins": self.total_joins,
            "totalLeaves": self.total_leaves,
        }


def _sort_key(c: MembershipChange) -> Tuple[str, str, str, str]:
    return (c.group_name.lower(), c.last_name.lower(), c.first_name.lower(), c.person_id)


def latest_snapshot_date(rows: Iterable[MembershipSnapshotRow]) -> Optional[date]:
    return max((r.date for r in rows), default=None)


def diff(rows: Iterable[MembershipSnapshotRow], days_back: int, today: date) -> MembershipChangeResult:
    """
    Compare each group's earliest and latest snapshot inside the window.

    People only in the latest snapshot joined; people only in the earliest left.
    A group with a single snapshot date in the window reports nothing.
    """
    cutoff = today - timedelta(days=days_back)

    # group_id -> snapshot date -> person_id -> row
    by_group: Dict[str, Dict[date, Dict[str, MembershipSnapshotRow]]] = defaultdict(lambda: defaultdict(dict))
    for r in rows:
        if r.date < cutoff:
            continue
        by_group[r.group_id][r.date][r.person_id] = r

    result = MembershipChangeResult()
    for group_id, snapshots in by_group.items():
        if len(snapshots) < 2:
            continue
        first_date, last_date = min(snapshots), max(snapshots)
        first, last = snapshots[first_date], snapshots[last_date]

        for pid in last.keys() - first.keys():
            r = last[pid]
            result.joins.append(MembershipChange(pid, r.first_name, r.last_name, group_id, r.group_name, last_date))
        for pid in first.keys() - last.keys():
            r = first[pid]
            result.leaves.append(MembershipChange(pid, r.first_name, r.last_name, group_id, r.group_name, last_date))

    result.joins.sort(key=_sort_key)
    result.leaves.sort(key=_sort_key)
    return result
