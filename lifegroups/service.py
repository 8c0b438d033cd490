# lifegroups/service.py
"""
Orchestration between Planning Center, the cache, the snapshot store and the
analytics engine. This is the only layer that reads the clock; the engine
always receives `now` / `as_of` explicitly.
"""
from __future__ import annotations

import logging
import time
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

import requests
from dateutil.relativedelta import relativedelta

from lifegroups import snapshots
from lifegroups.analytics import changes
from lifegroups.analytics.attention import AttentionConfig
from lifegroups.analytics.records import EventAttendanceRecord, GroupRecord
from lifegroups.analytics.rollup import RollupConfig, RollupFilters, rollup
from lifegroups.analytics.stats import build_group_stats
from lifegroups.config import LOCAL_TZ, settings
from lifegroups.planning_center import client
from lifegroups.utils.cache import TTLCache
from lifegroups.utils.common import end_of_day_utc, now_utc, start_of_year_utc

log = logging.getLogger(__name__)

cache = TTLCache(ttl_minutes=settings.CACHE_TTL_MINUTES)
GROUPS_CACHE_KEY = "all_groups"

ROLLUP_CONFIG = RollupConfig(
    quorum_unfiltered=settings.QUORUM_UNFILTERED,
    quorum_filtered=settings.QUORUM_FILTERED,
    fallback_months=settings.MEMBERSHIP_FALLBACK_MONTHS,
    tz=LOCAL_TZ,
)
ATTENTION_CONFIG = AttentionConfig(
    lookback_days=settings.ATTENTION_LOOKBACK_DAYS,
    buffer_hours=settings.ATTENTION_BUFFER_HOURS,
    assumed_duration_hours=settings.ASSUMED_EVENT_DURATION_HOURS,
)


class GroupNotFound(LookupError):
    pass


# ─────────────────────────────────────────────────────────────────────────────
# Cached loaders
# ─────────────────────────────────────────────────────────────────────────────

def load_groups(force_refresh: bool = False) -> List[GroupRecord]:
    cached = cache.get(GROUPS_CACHE_KEY)
    if cached is not None and not force_refresh:
        return cached
    groups = client.fetch_groups(settings.PCO_GROUP_TYPE_ID)
    cache.set(GROUPS_CACHE_KEY, groups)
    return groups


def find_group(group_id: str, force_refresh: bool = False) -> GroupRecord:
    for g in load_groups(force_refresh):
        if g.id == str(group_id):
            return g
    raise GroupNotFound(group_id)


def load_group_events(
    group_id: str,
    show_all_events: bool,
    now: datetime,
    force_refresh: bool = False,
) -> List[EventAttendanceRecord]:
    """Current-year events through end of today, or every event when `show_all_events`."""
    key = f"events_{group_id}_{show_all_events}"
    cached = cache.get(key)
    if cached is not None and not force_refresh:
        return cached
    if show_all_events:
        events = client.fetch_group_attendance(group_id)
    else:
        events = client.fetch_group_attendance(group_id, start_of_year_utc(now), end_of_day_utc(now))
    cache.set(key, events)
    return events


def load_historical_events(group_id: str, now: datetime, force_refresh: bool = False) -> List[EventAttendanceRecord]:
    """Prior-year tail that the member-count fallback can reach from January weeks."""
    key = f"history_{group_id}_{now.year}"
    cached = cache.get(key)
    if cached is not None and not force_refresh:
        return cached
    year_start = start_of_year_utc(now)
    start = year_start - relativedelta(months=settings.MEMBERSHIP_FALLBACK_MONTHS)
    events = client.fetch_group_attendance(group_id, start, year_start - timedelta(microseconds=1))
    cache.set(key, events)
    return events


def load_events_for_groups(
    groups: List[GroupRecord],
    show_all_events: bool,
    now: datetime,
    force_refresh: bool = False,
) -> Tuple[Dict[str, List[EventAttendanceRecord]], Dict[str, List[EventAttendanceRecord]]]:
    """
    (events, supplemental history) per group id. A group whose events fail is
    logged and left out; a group whose history fails keeps its events but gets
    no history entry. The other groups still report.
    """
    events: Dict[str, List[EventAttendanceRecord]] = {}
    history: Dict[str, List[EventAttendanceRecord]] = {}
    t0 = time.perf_counter()
    for g in groups:
        try:
            events[g.id] = load_group_events(g.id, show_all_events, now, force_refresh)
        except requests.RequestException as e:
            log.warning("[groups] events fetch failed for group=%s (%s): %s", g.id, g.name, e)
            continue
        if show_all_events:
            continue
        try:
            history[g.id] = load_historical_events(g.id, now, force_refresh)
        except requests.RequestException as e:
            # current-year events still report; only the member-count fallback loses reach
            log.warning("[groups] history fetch failed for group=%s (%s): %s", g.id, g.name, e)
    log.info("[groups] events loaded for %s/%s groups in %.2fs",
             len(events), len(groups), time.perf_counter() - t0)
    return events, history


# ─────────────────────────────────────────────────────────────────────────────
# Reports
# ─────────────────────────────────────────────────────────────────────────────

def group_stats(
    group_id: str,
    show_all_events: bool = False,
    force_refresh: bool = False,
    now: Optional[datetime] = None,
) -> dict:
    now = now or now_utc()
    group = find_group(group_id)
    events = load_group_events(group.id, show_all_events, now, force_refresh)
    stats = build_group_stats(group, events, now, LOCAL_TZ, ATTENTION_CONFIG)
    return stats.as_dict()


def group_events(group_id: str, show_all_events: bool = False, now: Optional[datetime] = None) -> dict:
    now = now or now_utc()
    group = find_group(group_id)
    events = load_group_events(group.id, show_all_events, now)
    ordered = sorted((e for e in events if e.date is not None), key=lambda e: e.date, reverse=True)
    return {"group": group.as_dict(), "events": [e.as_payload() for e in ordered]}


def aggregate_attendance(
    filters: RollupFilters,
    show_all_years: bool = False,
    force_refresh: bool = False,
    now: Optional[datetime] = None,
) -> List[dict]:
    now = now or now_utc()
    groups = [g for g in load_groups(force_refresh) if filters.selects(g)]
    events, history = load_events_for_groups(groups, show_all_years, now, force_refresh)
    series = rollup(groups, events, filters, now, history or None, ROLLUP_CONFIG)
    log.info("[aggregate] weeks=%s groups=%s filtered=%s", len(series), len(groups), filters.filtered)
    return [w.as_dict() for w in series]


def membership_changes(days_back: int, today: Optional[date] = None) -> dict:
    today = today or now_utc().astimezone(LOCAL_TZ).date()
    rows = snapshots.fetch_snapshot_rows_since(today - timedelta(days=days_back))
    result = changes.diff(rows, days_back, today)
    latest = changes.latest_snapshot_date(rows) or snapshots.latest_snapshot_date()
    payload = result.as_dict()
    payload["latestSnapshotDate"] = latest.isoformat() if latest else None
    payload["daysBack"] = days_back
    return payload


def refresh(now: Optional[datetime] = None) -> dict:
    """
    Nightly job: reload groups from Planning Center and append today's
    membership snapshot. Per-group failures are logged and skipped.
    """
    now = now or now_utc()
    snapshot_date = now.astimezone(LOCAL_TZ).date()
    cache.clear()
    groups = load_groups(force_refresh=True)

    inserted = 0
    failed: List[str] = []
    for g in groups:
        try:
            rows = client.fetch_group_memberships(g, snapshot_date)
        except requests.RequestException as e:
            log.warning("[snapshot] memberships fetch failed for group=%s (%s): %s", g.id, g.name, e)
            failed.append(g.id)
            continue
        inserted += snapshots.insert_snapshot_rows(rows)

    log.info("[snapshot] date=%s groups=%s rows_inserted=%s failed=%s",
             snapshot_date, len(groups), inserted, len(failed))
    return {
        "status": "ok",
        "date": snapshot_date.isoformat(),
        "groups": len(groups),
        "rows_inserted": inserted,
        "failed_groups": failed,
    }
