"""
store.py
SQLite storage for class sessions and bookings, used by the booking authority.

Every read and write happens inside one BEGIN IMMEDIATE transaction, and
occupancy is only ever written with a compare-and-swap on the value read.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager

import db
from models import Booking, BookingMutation, SessionState

log = logging.getLogger(__name__)


class StorageUnavailable(Exception):
    """The transaction could not be completed; nothing was written."""


class InvariantViolation(Exception):
    """Stored session state contradicts the occupancy invariant."""


class BookingTransaction:
    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def read_session_state(self, session_id: int) -> SessionState | None:
        row = self._conn.execute(
            """
            SELECT s.id, s.status, s.capacity, s.current_bookings, s.scheduled_date, s.start_time,
                   c.name AS class_name, c.is_premium,
                   (SELECT COUNT(*) FROM class_bookings b
                    WHERE b.schedule_id = s.id AND b.status = 'confirmed') AS confirmed_count
            FROM class_schedules s
            JOIN fitness_classes c ON c.id = s.class_id
            WHERE s.id = ?
            """,
            (session_id,),
        ).fetchone()
        if row is None:
            return None

        state = SessionState(
            id=row["id"],
            status=row["status"],
            capacity=row["capacity"],
            occupancy=row["current_bookings"],
            is_premium=bool(row["is_premium"]),
            class_name=row["class_name"],
            scheduled_date=row["scheduled_date"],
            start_time=row["start_time"],
            confirmed_count=row["confirmed_count"],
        )
        if not 0 <= state.occupancy <= state.capacity:
            raise InvariantViolation(
                f"session {session_id}: occupancy {state.occupancy} outside [0, {state.capacity}]"
            )
        if state.occupancy != state.confirmed_count:
            raise InvariantViolation(
                f"session {session_id}: occupancy {state.occupancy} != "
                f"{state.confirmed_count} confirmed bookings"
            )
        return state

    def read_member_booking(self, member_id: int, session_id: int) -> Booking | None:
        row = self._conn.execute(
            """
            SELECT id, user_id, schedule_id, status, booked_at, cancelled_at
            FROM class_bookings
            WHERE user_id = ? AND schedule_id = ? AND status = 'confirmed'
            """,
            (member_id, session_id),
        ).fetchone()
        if row is None:
            return None
        return Booking(**dict(row))

    def compare_and_commit(
        self,
        session_id: int,
        expected_occupancy: int,
        new_occupancy: int,
        mutation: BookingMutation,
    ) -> int | None:
        """
        Move occupancy from expected to new and apply the booking change.
        Returns the new booking id for a create, None for a cancel.
        """
        cur = self._conn.execute(
            "UPDATE class_schedules SET current_bookings = ? WHERE id = ? AND current_bookings = ?",
            (new_occupancy, session_id, expected_occupancy),
        )
        if cur.rowcount != 1:
            raise StorageUnavailable(
                f"session {session_id}: occupancy changed from {expected_occupancy} under us"
            )

        now = db.now_iso()
        if mutation.is_create:
            cur = self._conn.execute(
                "INSERT INTO class_bookings(user_id, schedule_id, status, booked_at) VALUES(?,?,?,?)",
                (mutation.member_id, session_id, "confirmed", now),
            )
            return cur.lastrowid

        cur = self._conn.execute(
            """
            UPDATE class_bookings SET status = 'cancelled', cancelled_at = ?
            WHERE id = ? AND user_id = ? AND status = 'confirmed'
            """,
            (now, mutation.booking_id, mutation.member_id),
        )
        if cur.rowcount != 1:
            raise StorageUnavailable(f"booking {mutation.booking_id} is no longer confirmed")
        return None


class SqliteBookingStore:
    @contextmanager
    def transaction(self):
        try:
            with db.transaction() as conn:
                yield BookingTransaction(conn)
        except sqlite3.Error as exc:
            log.warning("Booking transaction failed: %s", exc)
            raise StorageUnavailable(str(exc)) from exc

    def peek_session(self, session_id: int):
        """Unlocked read for display only."""
        return db.fetch_one(
            "SELECT capacity, current_bookings FROM class_schedules WHERE id = ?",
            (session_id,),
        )
