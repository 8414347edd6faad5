"""
membership.py
Membership tiers and subscriptions. Supplies the tier snapshot used for
class booking.
"""

from __future__ import annotations

import logging
from datetime import date

import db
import utils
from models import BILLING_CYCLES, SUBSCRIPTION_STATUSES, MembershipTier, MemberSubscription

log = logging.getLogger(__name__)


def list_tiers():
    return db.fetch_all("SELECT * FROM membership_tiers ORDER BY price_monthly ASC")


def get_tier(tier_id: int) -> MembershipTier | None:
    row = db.fetch_one("SELECT * FROM membership_tiers WHERE id = ?", (tier_id,))
    return MembershipTier.from_row(row) if row else None


def get_tier_by_name(name: str) -> MembershipTier | None:
    row = db.fetch_one("SELECT * FROM membership_tiers WHERE name = ?", (name,))
    return MembershipTier.from_row(row) if row else None


def get_subscription(member_id: int) -> MemberSubscription | None:
    """Latest subscription row for the member, whatever its status."""
    row = db.fetch_one(
        """
        SELECT id, user_id, tier_id, status, billing_cycle, start_date, renewal_date
        FROM membership_subscriptions
        WHERE user_id = ?
        ORDER BY id DESC
        LIMIT 1
        """,
        (member_id,),
    )
    return MemberSubscription(**dict(row)) if row else None


def get_tier_snapshot(member_id: int) -> MembershipTier | None:
    """
    The tier the member may book with right now.
    None unless the member's current subscription is active.
    """
    sub = get_subscription(member_id)
    if sub is None or not sub.confers_booking_rights:
        return None
    return get_tier(sub.tier_id)


def subscribe(
    member_id: int,
    tier_id: int,
    billing_cycle: str = "monthly",
    start: date | None = None,
    conn=None,
) -> int:
    """Insert an active subscription. Pass `conn` to join an open transaction."""
    if billing_cycle not in BILLING_CYCLES:
        raise ValueError(f"Billing cycle must be one of: {', '.join(BILLING_CYCLES)}.")
    if get_tier(tier_id) is None:
        raise ValueError("Unknown membership tier.")

    start = start or date.today()
    renewal = utils.add_months(start, 12 if billing_cycle == "annual" else 1)
    now = db.now_iso()
    sql = """
        INSERT INTO membership_subscriptions(user_id, tier_id, status, billing_cycle, start_date,
            renewal_date, created_at, updated_at)
        VALUES(?,?,?,?,?,?,?,?)
        """
    params = (member_id, tier_id, "active", billing_cycle, start.isoformat(), renewal.isoformat(), now, now)
    if conn is not None:
        sub_id = conn.execute(sql, params).lastrowid
    else:
        sub_id = db.execute(sql, params)
    log.info("Member %s subscribed to tier %s (%s)", member_id, tier_id, billing_cycle)
    return sub_id


def set_subscription_status(member_id: int, status: str) -> None:
    if status not in SUBSCRIPTION_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(SUBSCRIPTION_STATUSES)}.")
    sub = get_subscription(member_id)
    if sub is None:
        raise ValueError("Member has no subscription.")
    db.execute(
        "UPDATE membership_subscriptions SET status = ?, updated_at = ? WHERE id = ?",
        (status, db.now_iso(), sub.id),
    )


def change_tier(member_id: int, tier_id: int) -> None:
    sub = get_subscription(member_id)
    if sub is None:
        raise ValueError("Member has no subscription.")
    if get_tier(tier_id) is None:
        raise ValueError("Unknown membership tier.")
    db.execute(
        "UPDATE membership_subscriptions SET tier_id = ?, updated_at = ? WHERE id = ?",
        (tier_id, db.now_iso(), sub.id),
    )


def classes_booked_this_month(member_id: int, today: date | None = None) -> int:
    today = today or date.today()
    month_start = today.replace(day=1)
    next_month = utils.add_months(month_start, 1)
    row = db.fetch_one(
        """
        SELECT COUNT(*) AS c
        FROM class_bookings b
        JOIN class_schedules s ON s.id = b.schedule_id
        WHERE b.user_id = ? AND b.status IN ('confirmed','attended')
          AND s.scheduled_date >= ? AND s.scheduled_date < ?
        """,
        (member_id, month_start.isoformat(), next_month.isoformat()),
    )
    return int(row["c"])
