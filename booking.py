"""
booking.py
Class booking authority: admission control and occupancy for class sessions.

Each session has its own lock. The check-then-act sequence for a booking or
cancellation runs under that lock inside a single storage transaction, so two
callers can never both take the last slot, and occupancy always equals the
number of confirmed bookings.
"""

from __future__ import annotations

import logging
import threading
import weakref

from models import (
    BookingMutation,
    BookingOutcome,
    BookingRejection,
    CancelOutcome,
    CancelRejection,
    MembershipTier,
    SessionState,
)
from store import InvariantViolation, SqliteBookingStore, StorageUnavailable

log = logging.getLogger(__name__)
alerts = logging.getLogger("alerts")


def admission_rejection(
    state: SessionState | None,
    tier: MembershipTier | None,
    already_booked: bool,
) -> BookingRejection | None:
    """Apply the booking rules in order; None means the booking may proceed."""
    if state is None or state.status != "scheduled":
        return BookingRejection.SESSION_NOT_BOOKABLE
    if tier is None or (state.is_premium and not tier.allows_premium_classes):
        return BookingRejection.TIER_INELIGIBLE
    if already_booked:
        return BookingRejection.ALREADY_BOOKED
    if not state.has_room:
        return BookingRejection.SESSION_FULL
    return None


class BookingAuthority:
    def __init__(self, store=None, notifier=None):
        self.store = store or SqliteBookingStore()
        self.notifier = notifier
        # a session's lock lives only while some caller holds or waits on it
        self._locks: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _session_lock(self, session_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def attempt_book(self, member_id: int, tier: MembershipTier | None, session_id: int) -> BookingOutcome:
        try:
            with self._session_lock(session_id), self.store.transaction() as tx:
                state = tx.read_session_state(session_id)
                already_booked = state is not None and tx.read_member_booking(member_id, session_id) is not None
                rejection = admission_rejection(state, tier, already_booked)
                if rejection is not None:
                    log.info("Booking rejected: member=%s session=%s reason=%s",
                             member_id, session_id, rejection.value)
                    return BookingOutcome(rejection=rejection)

                booking_id = tx.compare_and_commit(
                    session_id, state.occupancy, state.occupancy + 1, BookingMutation(member_id)
                )
        except InvariantViolation as exc:
            alerts.error("Occupancy invariant violated: %s", exc)
            return BookingOutcome(rejection=BookingRejection.UNAVAILABLE)
        except StorageUnavailable as exc:
            log.warning("Booking unavailable: member=%s session=%s: %s", member_id, session_id, exc)
            return BookingOutcome(rejection=BookingRejection.UNAVAILABLE)

        log.info("Booking confirmed: id=%s member=%s session=%s occupancy=%s/%s",
                 booking_id, member_id, session_id, state.occupancy + 1, state.capacity)
        self._notify(
            member_id,
            "Class Booked",
            f"You've successfully booked {state.class_name} on {state.scheduled_date} at {state.start_time}",
            "success",
        )
        return BookingOutcome(booking_id=booking_id)

    def cancel(self, member_id: int, session_id: int) -> CancelOutcome:
        try:
            with self._session_lock(session_id), self.store.transaction() as tx:
                booking = tx.read_member_booking(member_id, session_id)
                if booking is None:
                    log.info("Cancel rejected: member=%s session=%s has no active booking", member_id, session_id)
                    return CancelOutcome(rejection=CancelRejection.NO_ACTIVE_BOOKING)

                state = tx.read_session_state(session_id)
                tx.compare_and_commit(
                    session_id,
                    state.occupancy,
                    max(0, state.occupancy - 1),
                    BookingMutation(member_id, booking_id=booking.id),
                )
        except InvariantViolation as exc:
            alerts.error("Occupancy invariant violated: %s", exc)
            return CancelOutcome(rejection=CancelRejection.UNAVAILABLE)
        except StorageUnavailable as exc:
            log.warning("Cancel unavailable: member=%s session=%s: %s", member_id, session_id, exc)
            return CancelOutcome(rejection=CancelRejection.UNAVAILABLE)

        log.info("Booking cancelled: id=%s member=%s session=%s", booking.id, member_id, session_id)
        return CancelOutcome()

    # ---------- Display reads (unlocked, may be stale) ----------

    def current_occupancy(self, session_id: int) -> int:
        row = self.store.peek_session(session_id)
        return int(row["current_bookings"]) if row else 0

    def is_full(self, session_id: int) -> bool:
        row = self.store.peek_session(session_id)
        if not row:
            return False
        return row["current_bookings"] >= row["capacity"]

    def _notify(self, member_id: int, title: str, message: str, kind: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(member_id, title, message, kind)
        except Exception:
            log.exception("Could not queue notification for member %s", member_id)
