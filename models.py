"""
models.py
Lightweight domain helpers (statuses, dataclasses, booking outcomes).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SUBSCRIPTION_STATUSES = ("active", "past_due", "cancelled")
BILLING_CYCLES = ("monthly", "annual")
SESSION_STATUSES = ("scheduled", "cancelled", "completed")
NOTIFICATION_KINDS = ("info", "success", "warning")
ANNOUNCEMENT_PRIORITIES = ("low", "normal", "high")
EQUIPMENT_STATUSES = ("available", "in_use", "maintenance")


@dataclass(frozen=True)
class MembershipTier:
    id: int
    name: str
    allows_premium_classes: bool
    max_classes_per_month: int | None  # None = unlimited

    @classmethod
    def from_row(cls, row) -> "MembershipTier":
        return cls(
            id=row["id"],
            name=row["name"],
            allows_premium_classes=bool(row["allows_premium_classes"]),
            max_classes_per_month=row["max_classes_per_month"],
        )


@dataclass(frozen=True)
class MemberSubscription:
    id: int
    user_id: int
    tier_id: int
    status: str  # active/past_due/cancelled
    billing_cycle: str
    start_date: str
    renewal_date: str

    @property
    def confers_booking_rights(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of one class session, read inside the booking transaction."""

    id: int
    status: str  # scheduled/cancelled/completed
    capacity: int
    occupancy: int
    is_premium: bool
    class_name: str
    scheduled_date: str
    start_time: str
    confirmed_count: int

    @property
    def has_room(self) -> bool:
        return self.occupancy < self.capacity


@dataclass(frozen=True)
class Booking:
    id: int
    user_id: int
    schedule_id: int
    status: str  # confirmed/cancelled/attended
    booked_at: str
    cancelled_at: str | None


@dataclass(frozen=True)
class BookingMutation:
    """Row change applied together with an occupancy compare-and-swap."""

    member_id: int
    booking_id: int | None = None  # set when cancelling an existing booking

    @property
    def is_create(self) -> bool:
        return self.booking_id is None


class BookingRejection(Enum):
    SESSION_NOT_BOOKABLE = "session_not_bookable"
    TIER_INELIGIBLE = "tier_ineligible"
    ALREADY_BOOKED = "already_booked"
    SESSION_FULL = "session_full"
    UNAVAILABLE = "unavailable"


class CancelRejection(Enum):
    NO_ACTIVE_BOOKING = "no_active_booking"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class BookingOutcome:
    booking_id: int | None = None
    rejection: BookingRejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True)
class CancelOutcome:
    rejection: CancelRejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


REJECTION_MESSAGES = {
    BookingRejection.SESSION_NOT_BOOKABLE: "This class is no longer open for booking.",
    BookingRejection.TIER_INELIGIBLE: (
        "Your membership tier does not allow booking this class. Please upgrade to Premium or VIP."
    ),
    BookingRejection.ALREADY_BOOKED: "You have already booked this class.",
    BookingRejection.SESSION_FULL: "This class is fully booked.",
    BookingRejection.UNAVAILABLE: "Booking is temporarily unavailable. Please try again.",
    CancelRejection.NO_ACTIVE_BOOKING: "You have no active booking for this class.",
    CancelRejection.UNAVAILABLE: "Cancellation is temporarily unavailable. Please try again.",
}
