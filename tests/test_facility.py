from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

import db
import facility


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, member_id, title, message, kind="info"):
        self.sent.append((member_id, title, kind))


def test_join_and_leave_waitlist(make_member):
    member = make_member()
    rack = facility.add_equipment("Squat Rack", "strength", "in_use")
    notifier = RecordingNotifier()

    assert facility.join_waitlist(member, rack, notifier) is True
    assert facility.join_waitlist(member, rack, notifier) is False
    assert notifier.sent == [(member, "Joined Waitlist", "info")]

    entries = facility.my_waitlist(member)
    assert [(w["equipment_id"], w["name"]) for w in entries] == [(rack, "Squat Rack")]

    facility.leave_waitlist(entries[0]["id"], member)
    assert facility.my_waitlist(member) == []
    assert facility.join_waitlist(member, rack) is True


def test_concurrent_joins_leave_one_waiting_entry(make_member):
    member = make_member()
    bench = facility.add_equipment("Bench", "strength", "in_use")
    callers = 8
    barrier = threading.Barrier(callers)

    def join(_):
        barrier.wait()
        return facility.join_waitlist(member, bench)

    with ThreadPoolExecutor(max_workers=callers) as pool:
        results = list(pool.map(join, range(callers)))

    assert results.count(True) == 1
    waiting = db.fetch_one(
        "SELECT COUNT(*) AS c FROM equipment_waitlist WHERE user_id = ? AND equipment_id = ? AND status = 'waiting'",
        (member, bench),
    )
    assert waiting["c"] == 1


def test_leave_waitlist_only_touches_own_entry(make_member):
    owner, other = make_member(), make_member()
    rower = facility.add_equipment("Rower", "cardio")
    facility.join_waitlist(owner, rower)
    entry = facility.my_waitlist(owner)[0]

    facility.leave_waitlist(entry["id"], other)

    assert len(facility.my_waitlist(owner)) == 1


def test_equipment_validation():
    with pytest.raises(ValueError):
        facility.add_equipment(" ", "cardio")
    with pytest.raises(ValueError):
        facility.add_equipment("Bike", "cardio", "broken")

    bike = facility.add_equipment("Bike", "")
    facility.set_equipment_status(bike, "maintenance")
    row = facility.list_equipment()[0]
    assert (row["category"], row["status"]) == ("general", "maintenance")


def test_latest_gym_capacity():
    assert facility.latest_gym_capacity() is None

    facility.log_gym_capacity(10, 100)
    facility.log_gym_capacity(80, 100)

    assert facility.latest_gym_capacity()["current_count"] == 80
    with pytest.raises(ValueError):
        facility.log_gym_capacity(-1, 100)
    with pytest.raises(ValueError):
        facility.log_gym_capacity(1, 0)


@pytest.mark.parametrize(
    "current,maximum,label",
    [(None, None, "Unknown"), (10, 100, "Quiet"), (30, 100, "Moderate"), (69, 100, "Moderate"), (70, 100, "Busy")],
)
def test_capacity_status(current, maximum, label):
    assert facility.capacity_status(current, maximum)[0] == label
