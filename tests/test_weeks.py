from datetime import date, datetime, timedelta, timezone

import pytest

from lifegroups.analytics.weeks import is_meeting_day, is_pending, is_reported, week_key_of

from conftest import at


def test_week_key_wednesday_through_saturday_anchor_to_this_wednesday():
    for day in ("2025-02-05", "2025-02-06", "2025-02-07", "2025-02-08"):
        assert week_key_of(at(day)) == datetime(2025, 2, 5, tzinfo=timezone.utc)


def test_week_key_sunday_through_tuesday_anchor_to_previous_wednesday():
    for day in ("2025-02-09", "2025-02-10", "2025-02-11"):
        assert week_key_of(at(day)) == datetime(2025, 2, 5, tzinfo=timezone.utc)


def test_week_key_is_idempotent_and_always_wednesday_midnight():
    start = datetime(2024, 12, 25, 3, 17, tzinfo=timezone.utc)
    for h in range(0, 24 * 30, 7):
        d = start + timedelta(hours=h)
        key = week_key_of(d)
        assert week_key_of(key) == key
        assert key.weekday() == 2
        assert (key.hour, key.minute, key.second, key.microsecond) == (0, 0, 0, 0)
        assert key <= d < key + timedelta(days=7)


def test_week_key_accepts_dates_and_naive_datetimes():
    assert week_key_of(date(2025, 1, 1)) == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert week_key_of(datetime(2025, 1, 6, 23, 59)) == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_week_key_uses_utc_day_for_offset_timestamps():
    # Tuesday 22:00 in Chicago is already Wednesday in UTC
    local = datetime.fromisoformat("2025-02-04T22:00:00-06:00")
    assert week_key_of(local) == datetime(2025, 2, 5, tzinfo=timezone.utc)


def test_meeting_day_uses_local_weekday(make_event):
    assert is_meeting_day(make_event("2025-02-05"))
    assert is_meeting_day(make_event("2025-02-06"))
    assert not is_meeting_day(make_event("2025-02-09"))
    # Wednesday 7pm in Chicago is Thursday 01:00 UTC, still a Wednesday meeting
    late = make_event(datetime(2025, 2, 6, 1, 0, tzinfo=timezone.utc))
    assert is_meeting_day(late)
    # Tuesday 8pm Chicago is Wednesday 02:00 UTC, not a meeting day
    tuesday = make_event(datetime(2025, 2, 5, 2, 0, tzinfo=timezone.utc))
    assert not is_meeting_day(tuesday)


def test_meeting_day_false_for_unparseable_date(make_event):
    assert not is_meeting_day(make_event(None))


@pytest.mark.parametrize(
    "day, expected",
    [
        ("2025-02-04", True),   # two days ago
        ("2025-02-05", True),   # yesterday
        ("2025-02-06", False),  # today
        ("2025-02-07", False),  # future
    ],
)
def test_zero_attendance_counts_only_from_yesterday_back(make_event, day, expected):
    as_of = at("2025-02-06", 20)
    event = make_event(day, total=10)
    assert is_reported(event, as_of) is expected
    assert is_pending(event, as_of) is (not expected)


def test_positive_attendance_always_reported_and_cancelled_never(make_event):
    as_of = at("2025-02-06")
    assert is_reported(make_event("2025-02-06", members=3, total=10), as_of)
    assert not is_reported(make_event("2025-01-01", canceled=True, total=10), as_of)
    assert not is_pending(make_event("2025-02-07", canceled=True), as_of)


def test_week_key_clamps_first_days_of_year_one():
    first_wednesday = datetime(1, 1, 3, tzinfo=timezone.utc)
    assert week_key_of(date(1, 1, 2)) == first_wednesday
    assert week_key_of(datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=5)))) == first_wednesday
    assert week_key_of(date(1, 1, 4)) == first_wednesday
