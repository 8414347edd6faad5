from __future__ import annotations

from datetime import date

import pytest

import classes
import db
import notifier
import seed
import utils
from booking import BookingAuthority


@pytest.mark.parametrize(
    "start,months,expected",
    [
        (date(2026, 1, 31), 1, date(2026, 2, 28)),
        (date(2028, 1, 31), 1, date(2028, 2, 29)),
        (date(2026, 11, 15), 3, date(2027, 2, 15)),
        (date(2026, 12, 1), 12, date(2027, 12, 1)),
    ],
)
def test_add_months(start, months, expected):
    assert utils.add_months(start, months) == expected


def test_next_days():
    days = utils.next_days(3, start=date(2026, 12, 31))

    assert days == [date(2026, 12, 31), date(2027, 1, 1), date(2027, 1, 2)]


def test_validate_inputs():
    assert utils.validate_date_range("2026-01-01", "2026-02-01") == []
    assert utils.validate_date_range("2026-02-01", "2026-01-01") == ["End date must be after start date."]
    assert len(utils.validate_date_range("nope", "2026-01-01")) == 1
    assert utils.validate_class_inputs("Yoga", "Sara", 60, 10) == []
    assert utils.validate_class_inputs("", "", "x", 0) == [
        "Class name is required.",
        "Instructor name is required.",
        "Duration must be a whole number.",
        "Capacity must be > 0.",
    ]


def test_staff_stats_and_exports(make_member, make_session, basic_tier):
    a, b = make_member(), make_member()
    session = make_session(capacity=4)
    authority = BookingAuthority()
    authority.attempt_book(a, basic_tier, session)
    authority.attempt_book(b, basic_tier, session)
    authority.cancel(b, session)

    stats = utils.staff_stats()

    assert stats == {
        "total_members": 2,
        "active_subscriptions": 2,
        "total_classes": 1,
        "today_bookings": 1,
    }
    csv_text = utils.rows_to_csv_bytes(utils.bookings_export_rows()).decode("utf-8")
    assert csv_text.splitlines()[0].startswith("id,full_name,email,class_name")
    assert len(csv_text.splitlines()) == 3
    assert [m["tier"] for m in utils.members_export_rows()] == ["Basic", "Basic"]
    assert len(utils.recent_members()) == 2


def test_session_fill_summary(make_session, make_member, basic_tier, tomorrow):
    assert utils.session_fill_summary().empty

    session = make_session(capacity=4)
    make_session(capacity=6)
    BookingAuthority().attempt_book(make_member(), basic_tier, session)

    df = utils.session_fill_summary()

    assert df.to_dict("records") == [
        {"date": tomorrow.isoformat(), "booked": 1, "capacity": 10, "fill_pct": 10.0}
    ]


def test_db_notifier_writes_in_background(make_member):
    member = make_member()
    n = notifier.DbNotifier()

    n.notify(member, "Hello", "World").result(timeout=5)
    bad = n.notify(member, "Hello", "World", kind="shout")
    n.close()

    assert isinstance(bad.exception(), ValueError)
    rows = db.fetch_all("SELECT title FROM notifications WHERE user_id = ?", (member,))
    assert [r["title"] for r in rows] == ["Hello"]


def test_insert_sample_data_twice():
    seed.insert_sample_data()
    seed.insert_sample_data()

    assert len(classes.list_classes()) == 6
    assert len(classes.schedules_for_date(date.today())) == 6
    assert utils.staff_stats()["total_members"] == 1
