from __future__ import annotations

from datetime import date, timedelta

import pytest

import community
import db
from notifier import insert_notification


def _challenge(**overrides):
    values = dict(
        title="30-Day Cardio",
        challenge_type="minutes",
        target_value=600,
        start_date=date.today().isoformat(),
        end_date=(date.today() + timedelta(days=30)).isoformat(),
    )
    values.update(overrides)
    return community.create_challenge(**values)


def test_feed_is_newest_first(make_member):
    member = make_member()
    first = community.post_activity(member, "workout", "5k run")
    second = community.post_activity(member, "", "Leg day")

    feed = community.recent_activity()

    assert [a["id"] for a in feed] == [second, first]
    assert feed[0]["activity_type"] == "post"
    assert feed[0]["full_name"].startswith("Member")
    with pytest.raises(ValueError):
        community.post_activity(member, "post", "   ")


def test_join_challenge_once(make_member):
    member = make_member()
    challenge = _challenge()
    sent = []

    class Notifier:
        def notify(self, member_id, title, message, kind="info"):
            sent.append(title)

    assert community.join_challenge(member, challenge, Notifier()) is True
    assert community.join_challenge(member, challenge, Notifier()) is False
    assert community.is_participating(member, challenge)
    assert sent == ["Challenge Joined"]
    assert community.active_challenges()[0]["participants"] == 1

    community.update_progress(member, challenge, 120)
    row = db.fetch_one("SELECT current_progress FROM challenge_participants WHERE user_id = ?", (member,))
    assert row["current_progress"] == 120


def test_challenge_validation():
    with pytest.raises(ValueError):
        _challenge(title="")
    with pytest.raises(ValueError):
        _challenge(target_value=0)
    with pytest.raises(ValueError):
        _challenge(end_date=date.today().isoformat())


def test_challenge_phase():
    today = date(2026, 3, 10)

    assert community.challenge_phase("2026-03-11", "2026-04-01", today) == "upcoming"
    assert community.challenge_phase("2026-03-01", "2026-03-10", today) == "active"
    assert community.challenge_phase("2026-02-01", "2026-03-01", today) == "ended"


def test_announcements():
    community.create_announcement("Closed Friday", "Maintenance day", "high")

    assert [a["title"] for a in community.active_announcements()] == ["Closed Friday"]
    with pytest.raises(ValueError):
        community.create_announcement("Hi", "There", "urgent")
    with pytest.raises(ValueError):
        community.create_announcement("", "There")


def test_notifications_mark_read(make_member):
    member = make_member()
    insert_notification(member, "Class Booked", "See you there", "success")
    insert_notification(member, "Welcome", "Hello")

    notes = community.notifications_for(member)
    assert {n["title"] for n in notes} == {"Class Booked", "Welcome"}
    assert all(n["is_read"] == 0 for n in notes)

    community.mark_notifications_read(member)
    assert all(n["is_read"] == 1 for n in community.notifications_for(member))
