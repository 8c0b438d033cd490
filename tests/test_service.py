from datetime import date

import pytest
import requests

from lifegroups import service, snapshots
from lifegroups.analytics.records import MembershipSnapshotRow
from lifegroups.analytics.rollup import RollupFilters
from lifegroups.planning_center import client

from conftest import at

NOW = at("2025-02-20")


@pytest.fixture(autouse=True)
def fresh_cache():
    service.cache.clear()
    yield
    service.cache.clear()


@pytest.fixture
def fake_pco(monkeypatch, make_event, make_group):
    groups = [make_group("a", name="Alpha"), make_group("b", name="Bravo", family=True), make_group("c", name="Charlie")]
    events = {
        "a": [make_event("2025-02-05", members=8, visitors=2, total=12)],
        "b": [make_event("2025-02-05", members=4, total=10)],
        "c": [],
    }
    history = {"c": [make_event("2024-12-11", members=5, total=9)]}
    calls = {"groups": 0, "attendance": []}

    def fetch_groups(type_id):
        calls["groups"] += 1
        return groups

    def fetch_group_attendance(group_id, start=None, end=None):
        calls["attendance"].append((group_id, start, end))
        if group_id == "c" and start is not None and start.year == 2024:
            return history["c"]
        return events[group_id]

    monkeypatch.setattr(client, "fetch_groups", fetch_groups)
    monkeypatch.setattr(client, "fetch_group_attendance", fetch_group_attendance)
    return calls


def test_groups_are_cached_until_forced(fake_pco):
    service.load_groups()
    service.load_groups()
    assert fake_pco["groups"] == 1
    service.load_groups(force_refresh=True)
    assert fake_pco["groups"] == 2


def test_group_stats_picks_family_shape(fake_pco):
    assert "familyGroup" in service.group_stats("b", now=NOW)
    assert "familyGroup" not in service.group_stats("a", now=NOW)
    with pytest.raises(service.GroupNotFound):
        service.group_stats("zzz", now=NOW)


def test_group_events_newest_first(fake_pco):
    out = service.group_events("a", now=NOW)
    assert out["group"]["name"] == "Alpha"
    assert out["events"][0]["attendance_summary"]["present_members"] == 8


def test_year_view_fetches_current_year_and_history(fake_pco):
    weeks = service.aggregate_attendance(RollupFilters(group_ids=frozenset({"a", "b"}), filtered=True), now=NOW)
    assert [w["date"] for w in weeks] == ["2025-02-05"]
    assert weeks[0]["totalPresent"] == 12
    assert weeks[0]["familyPresent"] == 4
    assert weeks[0]["totalMembers"] == 22

    ranges = {(gid, start.year if start else None) for gid, start, _ in fake_pco["attendance"]}
    assert ranges == {("a", 2025), ("a", 2024), ("b", 2025), ("b", 2024)}


def test_all_years_view_skips_history(fake_pco):
    service.aggregate_attendance(RollupFilters(), show_all_years=True, now=NOW)
    assert {start for _, start, _ in fake_pco["attendance"]} == {None}


def test_failing_group_is_left_out(fake_pco, monkeypatch):
    real_fetch = client.fetch_group_attendance

    def flaky(group_id, start=None, end=None):
        if group_id == "b":
            raise requests.ConnectionError("timeout")
        return real_fetch(group_id, start, end)

    monkeypatch.setattr(client, "fetch_group_attendance", flaky)
    weeks = service.aggregate_attendance(RollupFilters(group_ids=frozenset({"a", "b"}), filtered=True), now=NOW)
    assert weeks[0]["totalPresent"] == 8
    assert weeks[0]["familyPresent"] == 0


def test_failing_history_keeps_current_year_events(fake_pco, monkeypatch):
    real_fetch = client.fetch_group_attendance

    def history_down(group_id, start=None, end=None):
        if start is not None and start.year == 2024:
            raise requests.ConnectionError("timeout")
        return real_fetch(group_id, start, end)

    monkeypatch.setattr(client, "fetch_group_attendance", history_down)
    groups = service.load_groups()
    events, history = service.load_events_for_groups(groups, False, NOW)
    assert set(events) == {"a", "b", "c"}
    assert history == {}

    weeks = service.aggregate_attendance(RollupFilters(group_ids=frozenset({"a", "b"}), filtered=True), now=NOW)
    assert [w["date"] for w in weeks] == ["2025-02-05"]
    assert weeks[0]["totalPresent"] == 12
    assert weeks[0]["totalMembers"] == 22


def test_refresh_snapshots_each_group(fake_pco, monkeypatch):
    inserted = []

    def memberships(group, snapshot_date):
        if group.id == "c":
            raise requests.HTTPError("500")
        return [MembershipSnapshotRow(snapshot_date, group.id, "p1", group.name)]

    monkeypatch.setattr(client, "fetch_group_memberships", memberships)
    monkeypatch.setattr(snapshots, "insert_snapshot_rows", lambda rows: inserted.extend(rows) or len(rows))

    out = service.refresh(now=NOW)
    assert out["date"] == "2025-02-20"
    assert out["rows_inserted"] == 2
    assert out["failed_groups"] == ["c"]
    assert {r.group_id for r in inserted} == {"a", "b"}


def test_membership_changes_adds_window_metadata(monkeypatch):
    rows = [
        MembershipSnapshotRow(date(2025, 1, 1), "X", "P", "Group X"),
        MembershipSnapshotRow(date(2025, 1, 20), "X", "Q", "Group X"),
    ]
    monkeypatch.setattr(snapshots, "fetch_snapshot_rows_since", lambda cutoff: rows)
    out = service.membership_changes(30, today=date(2025, 1, 21))
    assert out["totalJoins"] == 1 and out["totalLeaves"] == 1
    assert out["latestSnapshotDate"] == "2025-01-20"
    assert out["daysBack"] == 30
