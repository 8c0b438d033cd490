# lifegroups/planning_center/client.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from lifegroups.analytics.records import EventAttendanceRecord, GroupRecord, MembershipSnapshotRow
from lifegroups.config import GROUP_TYPE_TAGS, MEETING_DAY_TAGS, settings
from lifegroups.utils.common import iso_z, paginate_next_links, pco_auth, request_json

log = logging.getLogger(__name__)

PCO_BASE = f"{settings.PLANNING_CENTER_BASE_URL}"
MAX_PER_PAGE = 100  # PCO max per_page


def _auth():
    return pco_auth(settings.PLANNING_CENTER_APP_ID, settings.PLANNING_CENTER_SECRET)


# ─────────────────────────────────────────────────────────────────────────────
# Payload → record helpers (pure)
# ─────────────────────────────────────────────────────────────────────────────

def _tag_names(tags: Iterable[dict]) -> List[str]:
    return [((t.get("attributes") or {}).get("name") or "") for t in tags or []]


def group_record_from(group: dict, tags: List[dict], family_tag_id: str = settings.FAMILY_GROUP_TAG_ID) -> GroupRecord:
    """
    Group type and meeting day come from tags; the family flag is a specific tag id.
    """
    names = _tag_names(tags)
    group_type = next((n for n in names if n in GROUP_TYPE_TAGS), "Unknown")
    meeting_day = next((n for n in names if n in MEETING_DAY_TAGS), "Unknown")
    is_family = any(str(t.get("id")) == str(family_tag_id) for t in tags or [])
    return GroupRecord(
        id=str(group.get("id")),
        name=(group.get("attributes") or {}).get("name") or "",
        group_type=group_type,
        meeting_day=meeting_day,
        is_family_group=is_family,
    )


def summarize_event(event: dict, attendances: List[dict], total_count: int) -> EventAttendanceRecord:
    """
    Collapse one PCO event + its attendance rows into a record.
    Members present are attendances marked attended; visitors come from the event.
    """
    attrs = event.get("attributes") or {}
    members = sum(1 for a in attendances if (a.get("attributes") or {}).get("attended"))
    visitors = attrs.get("visitors_count") or 0
    return EventAttendanceRecord.from_payload({
        "event": {
            "id": event.get("id"),
            "name": attrs.get("name"),
            "date": attrs.get("starts_at"),
            "canceled": attrs.get("canceled"),
        },
        "attendance_summary": {
            "total_count": total_count,
            "present_count": members + visitors,
            "present_members": members,
            "present_visitors": visitors,
            "attendance_rate": round(members / total_count * 100) if total_count > 0 else 0,
        },
    })


def membership_rows_from(pages: Iterable[dict], group: GroupRecord, snapshot_date: date) -> List[MembershipSnapshotRow]:
    rows: List[MembershipSnapshotRow] = []
    people: Dict[str, dict] = {}
    memberships: List[dict] = []
    for page in pages:
        memberships.extend(page.get("data") or [])
        for inc in page.get("included") or []:
            if inc.get("type") == "Person":
                people[str(inc.get("id"))] = inc.get("attributes") or {}

    for m in memberships:
        pid = (((m.get("relationships") or {}).get("person") or {}).get("data") or {}).get("id")
        if not pid:
            continue
        person = people.get(str(pid), {})
        rows.append(MembershipSnapshotRow(
            date=snapshot_date,
            group_id=group.id,
            group_name=group.name,
            person_id=str(pid),
            first_name=person.get("first_name") or "",
            last_name=person.get("last_name") or "",
            role=((m.get("attributes") or {}).get("role") or "member").lower(),
        ))
    return rows


# ─────────────────────────────────────────────────────────────────────────────
# Fetch layer (uses shared paginator)
# ─────────────────────────────────────────────────────────────────────────────

def fetch_groups_by_type(group_type_id: int) -> List[dict]:
    """All active groups of the given GroupType id."""
    url = f"{PCO_BASE}/groups/v2/groups"
    params: Dict[str, str | int] = {"include": "group_type", "per_page": MAX_PER_PAGE}

    results: List[dict] = []
    for page in paginate_next_links(url, params=params, auth=_auth()):
        for g in page.get("data", []) or []:
            attrs = g.get("attributes") or {}
            rel = (g.get("relationships") or {}).get("group_type", {}).get("data") or {}
            if attrs.get("archived_at") is None and str(rel.get("id")) == str(group_type_id):
                results.append(g)
    return results


def fetch_group_tags(group_id: str) -> List[dict]:
    url = f"{PCO_BASE}/groups/v2/groups/{group_id}/tags"
    tags: List[dict] = []
    for page in paginate_next_links(url, params={"per_page": MAX_PER_PAGE}, auth=_auth()):
        tags.extend(page.get("data") or [])
    return tags


def fetch_groups(group_type_id: int) -> List[GroupRecord]:
    """
    Groups with tag metadata. A group whose tags can't be fetched is kept
    with unknown metadata rather than dropped.
    """
    out: List[GroupRecord] = []
    for g in fetch_groups_by_type(group_type_id):
        try:
            tags = fetch_group_tags(g.get("id"))
        except requests.RequestException as e:
            log.warning("[groups] tags fetch failed for group=%s: %s", g.get("id"), e)
            tags = []
        out.append(group_record_from(g, tags))
    log.info("[groups] loaded %s groups for type=%s", len(out), group_type_id)
    return out


def fetch_group_events(group_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[dict]:
    url = f"{PCO_BASE}/groups/v2/groups/{group_id}/events"
    params: Dict[str, str | int] = {"order": "-starts_at", "per_page": MAX_PER_PAGE}
    if start:
        params["where[starts_at][gte]"] = iso_z(start)
    if end:
        params["where[starts_at][lte]"] = iso_z(end)

    events: List[dict] = []
    for page in paginate_next_links(url, params=params, auth=_auth()):
        events.extend(page.get("data") or [])
    return events


def fetch_event_attendance(event_id: str) -> Tuple[List[dict], int]:
    """(attendance rows, meta.total_count) for one event."""
    url = f"{PCO_BASE}/groups/v2/events/{event_id}/attendances"
    first = request_json("GET", url, params={"per_page": MAX_PER_PAGE}, auth=_auth())
    total = int(((first.get("meta") or {}).get("total_count")) or 0)
    rows = list(first.get("data") or [])
    next_url = (first.get("links") or {}).get("next")
    if next_url:
        for page in paginate_next_links(next_url, auth=_auth()):
            rows.extend(page.get("data") or [])
    return rows, total


def fetch_group_attendance(group_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[EventAttendanceRecord]:
    records: List[EventAttendanceRecord] = []
    for event in fetch_group_events(group_id, start, end):
        attendances, total = fetch_event_attendance(event.get("id"))
        records.append(summarize_event(event, attendances, total))
    return records


def fetch_group_memberships(group: GroupRecord, snapshot_date: date) -> List[MembershipSnapshotRow]:
    url = f"{PCO_BASE}/groups/v2/groups/{group.id}/memberships"
    params = {"include": "person", "per_page": MAX_PER_PAGE}
    return membership_rows_from(paginate_next_links(url, params=params, auth=_auth()), group, snapshot_date)
