# lifegroups/routes.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import FrozenSet, Optional

import requests
from fastapi import APIRouter, HTTPException, Query

from lifegroups import service
from lifegroups.analytics.rollup import RollupFilters
from lifegroups.config import settings

router = APIRouter(prefix="/api", tags=["Life Groups"])
log = logging.getLogger(__name__)


def _csv(raw: Optional[str]) -> Optional[FrozenSet[str]]:
    if raw is None:
        return None
    return frozenset(p.strip() for p in raw.split(",") if p.strip())


def build_filters(
    group_types: Optional[str],
    meeting_days: Optional[str],
    group_ids: Optional[str],
) -> RollupFilters:
    """Any filter parameter on the request means a filtered (non-default) view."""
    ids = _csv(group_ids)
    return RollupFilters(
        group_types=_csv(group_types),
        meeting_days=_csv(meeting_days),
        group_ids=ids or None,
        filtered=any(p is not None for p in (group_types, meeting_days, group_ids)),
    )


@router.get("/load-groups", response_model=dict)
def load_groups(force_refresh: bool = Query(False, alias="forceRefresh")):
    try:
        groups = service.load_groups(force_refresh)
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"PCO fetch failed: {e}")
    return {"data": [g.as_dict() for g in groups], "total_count": len(groups)}


@router.get("/group-stats/{group_id}", response_model=dict)
def group_stats(
    group_id: str,
    force_refresh: bool = Query(False, alias="forceRefresh"),
    show_all_events: bool = Query(False, alias="showAllEvents"),
):
    try:
        return service.group_stats(group_id, show_all_events, force_refresh)
    except service.GroupNotFound:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch group statistics: {e}")


@router.get("/groups/{group_id}/events", response_model=dict)
def group_events(group_id: str, show_all_events: bool = Query(False, alias="showAllEvents")):
    try:
        return service.group_events(group_id, show_all_events)
    except service.GroupNotFound:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch group events: {e}")


@router.get("/aggregate-attendance", response_model=list)
def aggregate_attendance(
    group_types: Optional[str] = Query(None, alias="groupTypes", description="Comma-separated group type tags"),
    meeting_days: Optional[str] = Query(None, alias="meetingDays", description="Comma-separated meeting day tags"),
    group_ids: Optional[str] = Query(None, alias="groupIds", description="Comma-separated group ids (overrides type/day)"),
    show_all_years: bool = Query(False, alias="showAllYears"),
    force_refresh: bool = Query(False, alias="forceRefresh"),
):
    filters = build_filters(group_types, meeting_days, group_ids)
    if filters.group_ids is None and group_ids is not None:
        raise HTTPException(status_code=400, detail="groupIds must list at least one group id")
    try:
        return service.aggregate_attendance(filters, show_all_years, force_refresh)
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch aggregate attendance data: {e}")


@router.get("/membership-changes", response_model=dict)
def membership_changes(
    days_back: int = Query(settings.MEMBERSHIP_CHANGES_DAYS_BACK, alias="daysBack", ge=1, le=366),
):
    return service.membership_changes(days_back)


@router.post("/refresh", response_model=dict)
def refresh():
    try:
        return service.refresh()
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Refresh failed: {e}")


# ─────────────────────────────────────────────────────────────────────────────
# Cache introspection
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/check-cache", response_model=dict)
def check_cache():
    return {"hasCachedData": service.cache.get(service.GROUPS_CACHE_KEY) is not None}


@router.get("/cache-info", response_model=dict)
def cache_info():
    ts = service.cache.get_timestamp(service.GROUPS_CACHE_KEY)
    return {
        "timestamp": datetime.fromtimestamp(ts, tz=timezone.utc).isoformat() if ts else None,
        "cache": service.cache.stats(),
    }


@router.get("/clear-cache", response_model=dict)
def clear_cache():
    service.cache.clear()
    log.info("[cache] cleared")
    return {"message": "Cache cleared successfully. Next data refresh will fetch fresh data."}
