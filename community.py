"""
community.py
Activity feed, community challenges, announcements and member notifications.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date

import db
import utils
from models import ANNOUNCEMENT_PRIORITIES

log = logging.getLogger(__name__)


# ---------- Activity feed ----------

def post_activity(member_id: int, activity_type: str, content: str) -> int:
    if not content.strip():
        raise ValueError("Post content is required.")
    return db.execute(
        "INSERT INTO activity_feed(user_id, activity_type, content, created_at) VALUES(?,?,?,?)",
        (member_id, activity_type.strip() or "post", content.strip(), db.now_iso()),
    )


def recent_activity(limit: int = 20):
    return db.fetch_all(
        """
        SELECT a.id, a.user_id, u.full_name, a.activity_type, a.content, a.created_at
        FROM activity_feed a
        JOIN users u ON u.id = a.user_id
        ORDER BY a.created_at DESC, a.id DESC
        LIMIT ?
        """,
        (limit,),
    )


# ---------- Challenges ----------

def create_challenge(
    title: str,
    challenge_type: str,
    target_value: float,
    start_date: str,
    end_date: str,
    created_by: int | None = None,
    description: str = "",
) -> int:
    errors = utils.validate_date_range(start_date, end_date)
    if not title.strip():
        errors.insert(0, "Title is required.")
    if float(target_value) <= 0:
        errors.append("Target must be > 0.")
    if errors:
        raise ValueError(" ".join(errors))
    return db.execute(
        """
        INSERT INTO community_challenges(title, description, challenge_type, target_value, start_date,
            end_date, created_by, is_active, created_at)
        VALUES(?,?,?,?,?,?,?,1,?)
        """,
        (title.strip(), description.strip() or None, challenge_type.strip() or "custom", float(target_value),
         start_date, end_date, created_by, db.now_iso()),
    )


def active_challenges():
    return db.fetch_all(
        """
        SELECT c.*, (SELECT COUNT(*) FROM challenge_participants p WHERE p.challenge_id = c.id) AS participants
        FROM community_challenges c
        WHERE c.is_active = 1
        ORDER BY c.start_date DESC
        """
    )


def challenge_phase(start_date: str, end_date: str, today: date | None = None) -> str:
    today = today or date.today()
    if today < utils.parse_iso(start_date):
        return "upcoming"
    if today > utils.parse_iso(end_date):
        return "ended"
    return "active"


def is_participating(member_id: int, challenge_id: int) -> bool:
    row = db.fetch_one(
        "SELECT id FROM challenge_participants WHERE challenge_id = ? AND user_id = ?",
        (challenge_id, member_id),
    )
    return row is not None


def join_challenge(member_id: int, challenge_id: int, notifier=None) -> bool:
    """False if the member already takes part."""
    try:
        db.execute(
            "INSERT INTO challenge_participants(challenge_id, user_id, current_progress, joined_at) VALUES(?,?,0,?)",
            (challenge_id, member_id, db.now_iso()),
        )
    except sqlite3.IntegrityError:
        if is_participating(member_id, challenge_id):
            return False
        raise
    if notifier is not None:
        notifier.notify(member_id, "Challenge Joined", "You've joined a new challenge! Good luck!", "success")
    return True


def update_progress(member_id: int, challenge_id: int, progress: float) -> None:
    if progress < 0:
        raise ValueError("Progress can't be negative.")
    db.execute(
        "UPDATE challenge_participants SET current_progress = ? WHERE challenge_id = ? AND user_id = ?",
        (progress, challenge_id, member_id),
    )


# ---------- Announcements ----------

def create_announcement(title: str, message: str, priority: str = "normal") -> int:
    if not title.strip() or not message.strip():
        raise ValueError("Title and message are required.")
    if priority not in ANNOUNCEMENT_PRIORITIES:
        raise ValueError(f"Priority must be one of: {', '.join(ANNOUNCEMENT_PRIORITIES)}.")
    ann_id = db.execute(
        "INSERT INTO announcements(title, message, priority, is_active, created_at) VALUES(?,?,?,1,?)",
        (title.strip(), message.strip(), priority, db.now_iso()),
    )
    log.info("Announcement %s posted (%s)", ann_id, priority)
    return ann_id


def active_announcements(limit: int = 5):
    return db.fetch_all(
        "SELECT * FROM announcements WHERE is_active = 1 ORDER BY created_at DESC, id DESC LIMIT ?",
        (limit,),
    )


# ---------- Notifications ----------

def notifications_for(member_id: int, limit: int = 10):
    return db.fetch_all(
        "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
        (member_id, limit),
    )


def mark_notifications_read(member_id: int) -> None:
    db.execute("UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0", (member_id,))
