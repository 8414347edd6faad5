"""
facility.py
Equipment, equipment waitlists and gym floor occupancy.

Waitlist entries are plain membership records: no ordering, no capacity.
"""

from __future__ import annotations

import logging
import sqlite3

import config
import db
from models import EQUIPMENT_STATUSES

log = logging.getLogger(__name__)


def list_equipment():
    return db.fetch_all("SELECT * FROM equipment ORDER BY name ASC")


def add_equipment(name: str, category: str, status: str = "available") -> int:
    if not name.strip():
        raise ValueError("Equipment name is required.")
    if status not in EQUIPMENT_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(EQUIPMENT_STATUSES)}.")
    return db.execute(
        "INSERT INTO equipment(name, category, status, created_at) VALUES(?,?,?,?)",
        (name.strip(), category.strip() or "general", status, db.now_iso()),
    )


def set_equipment_status(equipment_id: int, status: str) -> None:
    if status not in EQUIPMENT_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(EQUIPMENT_STATUSES)}.")
    db.execute("UPDATE equipment SET status = ? WHERE id = ?", (status, equipment_id))


def is_waiting(member_id: int, equipment_id: int) -> bool:
    row = db.fetch_one(
        "SELECT id FROM equipment_waitlist WHERE user_id = ? AND equipment_id = ? AND status = 'waiting'",
        (member_id, equipment_id),
    )
    return row is not None


def join_waitlist(member_id: int, equipment_id: int, notifier=None) -> bool:
    """False if the member is already waiting for this equipment."""
    try:
        db.execute(
            "INSERT INTO equipment_waitlist(user_id, equipment_id, status, joined_at) VALUES(?,?,?,?)",
            (member_id, equipment_id, "waiting", db.now_iso()),
        )
    except sqlite3.IntegrityError:
        if is_waiting(member_id, equipment_id):
            return False
        raise
    if notifier is not None:
        notifier.notify(
            member_id,
            "Joined Waitlist",
            "You've been added to the equipment waitlist. We'll notify you when it's available.",
            "info",
        )
    return True


def leave_waitlist(waitlist_id: int, member_id: int) -> None:
    db.execute(
        "UPDATE equipment_waitlist SET status = 'cancelled' WHERE id = ? AND user_id = ?",
        (waitlist_id, member_id),
    )


def my_waitlist(member_id: int):
    return db.fetch_all(
        """
        SELECT w.id, w.equipment_id, w.joined_at, e.name, e.category, e.status AS equipment_status
        FROM equipment_waitlist w
        JOIN equipment e ON e.id = w.equipment_id
        WHERE w.user_id = ? AND w.status = 'waiting'
        ORDER BY w.joined_at DESC, w.id DESC
        """,
        (member_id,),
    )


def log_gym_capacity(current_count: int, max_capacity: int) -> int:
    if current_count < 0:
        raise ValueError("Current count can't be negative.")
    if max_capacity <= 0:
        raise ValueError("Max capacity must be > 0.")
    return db.execute(
        "INSERT INTO gym_capacity_logs(current_count, max_capacity, logged_at) VALUES(?,?,?)",
        (current_count, max_capacity, db.now_iso()),
    )


def latest_gym_capacity():
    return db.fetch_one("SELECT * FROM gym_capacity_logs ORDER BY logged_at DESC, id DESC LIMIT 1")


def capacity_status(current_count: int | None, max_capacity: int | None) -> tuple[str, float | None]:
    """(label, percentage) for the gym floor."""
    if current_count is None or not max_capacity:
        return "Unknown", None
    percentage = current_count / max_capacity * 100
    if percentage < config.QUIET_BELOW_PERCENT:
        return "Quiet", percentage
    if percentage < config.MODERATE_BELOW_PERCENT:
        return "Moderate", percentage
    return "Busy", percentage
