from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

import db
from booking import BookingAuthority
from models import BookingRejection


def _book_all(authorities, members, tier, session_id):
    barrier = threading.Barrier(len(members))

    def attempt(i):
        barrier.wait()
        authority = authorities[i % len(authorities)]
        return authority.attempt_book(members[i], tier, session_id)

    with ThreadPoolExecutor(max_workers=len(members)) as pool:
        return list(pool.map(attempt, range(len(members))))


def _occupancy_and_confirmed(session_id):
    row = db.fetch_one(
        """
        SELECT s.current_bookings,
               (SELECT COUNT(*) FROM class_bookings b WHERE b.schedule_id = s.id AND b.status = 'confirmed') AS confirmed
        FROM class_schedules s WHERE s.id = ?
        """,
        (session_id,),
    )
    return row["current_bookings"], row["confirmed"]


@pytest.mark.parametrize("capacity,callers", [(1, 2), (3, 12), (5, 20)])
def test_capacity_never_exceeded(make_member, make_session, basic_tier, capacity, callers):
    session = make_session(capacity=capacity)
    members = [make_member() for _ in range(callers)]

    outcomes = _book_all([BookingAuthority()], members, basic_tier, session)

    successes = [o for o in outcomes if o.ok]
    assert len(successes) == capacity
    assert all(o.rejection is BookingRejection.SESSION_FULL for o in outcomes if not o.ok)
    assert _occupancy_and_confirmed(session) == (capacity, capacity)


def test_two_members_race_for_last_slot(make_member, make_session, basic_tier):
    session = make_session(capacity=1)
    a, b = make_member(), make_member()

    outcomes = _book_all([BookingAuthority()], [a, b], basic_tier, session)

    assert sorted(o.ok for o in outcomes) == [False, True]
    loser = next(o for o in outcomes if not o.ok)
    assert loser.rejection is BookingRejection.SESSION_FULL
    assert _occupancy_and_confirmed(session) == (1, 1)


def test_separate_authorities_still_share_storage_guard(make_member, make_session, basic_tier):
    # Two authorities stand in for two server processes: no shared in-process lock
    session = make_session(capacity=4)
    members = [make_member() for _ in range(10)]

    outcomes = _book_all([BookingAuthority(), BookingAuthority()], members, basic_tier, session)

    assert sum(o.ok for o in outcomes) == 4
    assert _occupancy_and_confirmed(session) == (4, 4)


def test_concurrent_books_and_cancels_keep_counter_exact(make_member, make_session, basic_tier):
    session = make_session(capacity=5)
    authority = BookingAuthority()
    holders = [make_member() for _ in range(5)]
    for m in holders:
        assert authority.attempt_book(m, basic_tier, session).ok
    newcomers = [make_member() for _ in range(5)]

    barrier = threading.Barrier(10)

    def cancel(m):
        barrier.wait()
        return authority.cancel(m, session)

    def book(m):
        barrier.wait()
        return authority.attempt_book(m, basic_tier, session)

    with ThreadPoolExecutor(max_workers=10) as pool:
        cancel_futures = [pool.submit(cancel, m) for m in holders]
        book_futures = [pool.submit(book, m) for m in newcomers]
        cancels = [f.result() for f in cancel_futures]
        books = [f.result() for f in book_futures]

    assert all(c.ok for c in cancels)
    occupancy, confirmed = _occupancy_and_confirmed(session)
    assert occupancy == confirmed == sum(b.ok for b in books)
    assert occupancy <= 5


def test_sessions_do_not_share_a_lock(make_member, make_session, basic_tier):
    authority = BookingAuthority()
    busy, free = make_session(), make_session()
    member = make_member()

    with authority._session_lock(busy):
        done = threading.Event()
        result = {}

        def book_free():
            result["outcome"] = authority.attempt_book(member, basic_tier, free)
            done.set()

        threading.Thread(target=book_free).start()
        assert done.wait(timeout=5)

    assert result["outcome"].ok
