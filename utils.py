"""
utils.py
Validation, dates, exports, staff stats.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import pandas as pd

import db


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def next_days(count: int, start: date | None = None) -> list[date]:
    start = start or date.today()
    return [start + timedelta(days=i) for i in range(count)]


def validate_date_range(start_date: str, end_date: str) -> list[str]:
    errors: list[str] = []
    try:
        sd = parse_iso(start_date)
        ed = parse_iso(end_date)
        if ed <= sd:
            errors.append("End date must be after start date.")
    except Exception:
        errors.append("Start/end dates must be valid ISO dates (YYYY-MM-DD).")
    return errors


def validate_class_inputs(name: str, instructor: str, duration_minutes, capacity) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Class name is required.")
    if not instructor.strip():
        errors.append("Instructor name is required.")
    for label, value in (("Duration", duration_minutes), ("Capacity", capacity)):
        try:
            if int(value) <= 0:
                errors.append(f"{label} must be > 0.")
        except (TypeError, ValueError):
            errors.append(f"{label} must be a whole number.")
    return errors


def rows_to_csv_bytes(rows) -> bytes:
    df = pd.DataFrame([dict(r) for r in rows])
    return df.to_csv(index=False).encode("utf-8")


def bookings_export_rows():
    return db.fetch_all(
        """
        SELECT b.id, u.full_name, u.email, c.name AS class_name, s.scheduled_date, s.start_time,
               b.status, b.booked_at, b.cancelled_at
        FROM class_bookings b
        JOIN users u ON u.id = b.user_id
        JOIN class_schedules s ON s.id = b.schedule_id
        JOIN fitness_classes c ON c.id = s.class_id
        ORDER BY s.scheduled_date DESC, s.start_time DESC, b.id DESC
        """
    )


def members_export_rows():
    return db.fetch_all(
        """
        SELECT u.id, u.email, u.full_name, u.emergency_contact, u.created_at,
               t.name AS tier, ms.status AS subscription_status, ms.renewal_date
        FROM users u
        LEFT JOIN membership_subscriptions ms ON ms.id = (
            SELECT MAX(id) FROM membership_subscriptions WHERE user_id = u.id
        )
        LEFT JOIN membership_tiers t ON t.id = ms.tier_id
        WHERE u.is_staff = 0
        ORDER BY u.id DESC
        """
    )


def staff_stats(today: date | None = None) -> dict:
    # booked_at is stored in UTC
    today = today or datetime.utcnow().date()
    total_members = db.fetch_one("SELECT COUNT(*) AS c FROM users WHERE is_staff = 0")["c"]
    active_subs = db.fetch_one(
        """
        SELECT COUNT(*) AS c FROM membership_subscriptions ms
        WHERE ms.status = 'active'
          AND ms.id = (SELECT MAX(id) FROM membership_subscriptions WHERE user_id = ms.user_id)
        """
    )["c"]
    total_classes = db.fetch_one("SELECT COUNT(*) AS c FROM fitness_classes")["c"]
    today_bookings = db.fetch_one(
        "SELECT COUNT(*) AS c FROM class_bookings WHERE status = 'confirmed' AND booked_at >= ?",
        (today.isoformat(),),
    )["c"]
    return {
        "total_members": int(total_members),
        "active_subscriptions": int(active_subs),
        "total_classes": int(total_classes),
        "today_bookings": int(today_bookings),
    }


def recent_members(limit: int = 5):
    return db.fetch_all(
        """
        SELECT u.id, u.full_name, u.email, u.created_at, t.name AS tier
        FROM users u
        LEFT JOIN membership_subscriptions ms ON ms.id = (
            SELECT MAX(id) FROM membership_subscriptions WHERE user_id = u.id
        )
        LEFT JOIN membership_tiers t ON t.id = ms.tier_id
        WHERE u.is_staff = 0
        ORDER BY u.created_at DESC, u.id DESC
        LIMIT ?
        """,
        (limit,),
    )


def session_fill_summary() -> pd.DataFrame:
    """Per-date booked vs. capacity totals for scheduled sessions."""
    rows = db.fetch_all(
        """
        SELECT scheduled_date AS date, SUM(current_bookings) AS booked, SUM(capacity) AS capacity
        FROM class_schedules
        WHERE status = 'scheduled'
        GROUP BY scheduled_date
        ORDER BY scheduled_date ASC
        """
    )
    df = pd.DataFrame([dict(r) for r in rows])
    if df.empty:
        return pd.DataFrame(columns=["date", "booked", "capacity", "fill_pct"])
    df["fill_pct"] = (df["booked"] / df["capacity"] * 100).round(1)
    return df
