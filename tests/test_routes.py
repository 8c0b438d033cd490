import pytest
import requests
from fastapi import FastAPI
from fastapi.testclient import TestClient

from lifegroups import routes, service
from lifegroups.analytics.records import GroupRecord
from lifegroups.routes import build_filters


@pytest.fixture
def api(monkeypatch):
    service.cache.clear()
    app = FastAPI()
    app.include_router(routes.router)
    yield TestClient(app)
    service.cache.clear()


def test_no_filter_params_is_the_default_view():
    f = build_filters(None, None, None)
    assert f.filtered is False
    assert f.group_types is None and f.group_ids is None


def test_any_filter_param_marks_view_filtered():
    f = build_filters("Family, Stage of Life", None, None)
    assert f.filtered is True
    assert f.group_types == frozenset({"Family", "Stage of Life"})
    assert build_filters(None, None, "1,2").group_ids == frozenset({"1", "2"})


def test_load_groups(api, monkeypatch):
    groups = [GroupRecord("1", "A", "Family", "Wednesday", True)]
    monkeypatch.setattr(service, "load_groups", lambda force_refresh=False: groups)
    resp = api.get("/api/load-groups")
    assert resp.status_code == 200
    assert resp.json() == {"data": [groups[0].as_dict()], "total_count": 1}


def test_upstream_failure_is_bad_gateway(api, monkeypatch):
    def boom(force_refresh=False):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(service, "load_groups", boom)
    assert api.get("/api/load-groups").status_code == 502


def test_group_stats_unknown_group_is_404(api, monkeypatch):
    def missing(*args, **kwargs):
        raise service.GroupNotFound("nope")

    monkeypatch.setattr(service, "group_stats", missing)
    assert api.get("/api/group-stats/nope").status_code == 404


def test_aggregate_passes_filters_through(api, monkeypatch):
    seen = {}

    def fake(filters, show_all_years=False, force_refresh=False):
        seen.update(filters=filters, show_all_years=show_all_years)
        return [{"date": "2025-02-05", "totalPresent": 8}]

    monkeypatch.setattr(service, "aggregate_attendance", fake)
    resp = api.get("/api/aggregate-attendance", params={"meetingDays": "Thursday", "showAllYears": "true"})
    assert resp.status_code == 200
    assert resp.json()[0]["totalPresent"] == 8
    assert seen["filters"].filtered is True
    assert seen["filters"].meeting_days == frozenset({"Thursday"})
    assert seen["show_all_years"] is True


def test_empty_group_ids_rejected(api):
    assert api.get("/api/aggregate-attendance", params={"groupIds": " , "}).status_code == 400


def test_membership_changes_days_back_is_bounded(api, monkeypatch):
    monkeypatch.setattr(service, "membership_changes", lambda days_back: {"daysBack": days_back})
    assert api.get("/api/membership-changes").json() == {"daysBack": 30}
    assert api.get("/api/membership-changes", params={"daysBack": 7}).json() == {"daysBack": 7}
    assert api.get("/api/membership-changes", params={"daysBack": 0}).status_code == 422


def test_cache_endpoints(api):
    assert api.get("/api/check-cache").json() == {"hasCachedData": False}
    assert api.get("/api/cache-info").json()["timestamp"] is None

    service.cache.set(service.GROUPS_CACHE_KEY, [])
    assert api.get("/api/check-cache").json() == {"hasCachedData": True}
    info = api.get("/api/cache-info").json()
    assert info["timestamp"] is not None
    assert info["cache"]["keys"] == [service.GROUPS_CACHE_KEY]

    assert api.get("/api/clear-cache").status_code == 200
    assert api.get("/api/check-cache").json() == {"hasCachedData": False}
