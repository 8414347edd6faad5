"""
classes.py
Class catalog, scheduling (staff) and member booking lists.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

import db
from models import SESSION_STATUSES

log = logging.getLogger(__name__)


def list_classes():
    return db.fetch_all("SELECT * FROM fitness_classes ORDER BY name ASC")


def get_class(class_id: int):
    return db.fetch_one("SELECT * FROM fitness_classes WHERE id = ?", (class_id,))


def create_class(
    name: str,
    instructor_name: str,
    duration_minutes: int,
    capacity: int,
    is_premium: bool = False,
    description: str = "",
) -> int:
    if not name.strip():
        raise ValueError("Class name is required.")
    if not instructor_name.strip():
        raise ValueError("Instructor name is required.")
    if int(duration_minutes) <= 0:
        raise ValueError("Duration must be > 0 minutes.")
    if int(capacity) <= 0:
        raise ValueError("Capacity must be > 0.")

    return db.execute(
        """
        INSERT INTO fitness_classes(name, description, instructor_name, duration_minutes, capacity,
            is_premium, created_at)
        VALUES(?,?,?,?,?,?,?)
        """,
        (name.strip(), description.strip() or None, instructor_name.strip(), int(duration_minutes),
         int(capacity), int(bool(is_premium)), db.now_iso()),
    )


def end_time_for(start_time: str, duration_minutes: int) -> str:
    """'HH:MM' start + duration -> 'HH:MM' end (wraps past midnight)."""
    start = datetime.strptime(start_time, "%H:%M")
    return (start + timedelta(minutes=duration_minutes)).strftime("%H:%M")


def schedule_class(class_id: int, scheduled_date: date, start_time: str) -> int:
    """
    Schedule one session of a class. Capacity is copied from the class
    template so later template edits don't change booked sessions.
    """
    cls = get_class(class_id)
    if cls is None:
        raise ValueError("Unknown class.")
    try:
        end_time = end_time_for(start_time, cls["duration_minutes"])
    except ValueError as exc:
        raise ValueError("Start time must look like HH:MM.") from exc

    session_id = db.execute(
        """
        INSERT INTO class_schedules(class_id, scheduled_date, start_time, end_time, capacity,
            current_bookings, status, created_at)
        VALUES(?,?,?,?,?,0,'scheduled',?)
        """,
        (class_id, scheduled_date.isoformat(), start_time, end_time, cls["capacity"], db.now_iso()),
    )
    log.info("Scheduled %s on %s %s-%s (session %s)", cls["name"], scheduled_date, start_time, end_time, session_id)
    return session_id


def set_schedule_status(session_id: int, status: str) -> None:
    if status not in SESSION_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(SESSION_STATUSES)}.")
    db.execute("UPDATE class_schedules SET status = ? WHERE id = ?", (status, session_id))
    log.info("Session %s marked %s", session_id, status)


def schedules_for_date(day: date):
    return db.fetch_all(
        """
        SELECT s.id, s.class_id, s.scheduled_date, s.start_time, s.end_time, s.capacity,
               s.current_bookings, s.status,
               c.name, c.description, c.instructor_name, c.is_premium
        FROM class_schedules s
        JOIN fitness_classes c ON c.id = s.class_id
        WHERE s.scheduled_date = ? AND s.status = 'scheduled'
        ORDER BY s.start_time ASC
        """,
        (day.isoformat(),),
    )


def my_bookings(member_id: int, upcoming_only: bool = True):
    sql = """
        SELECT b.id, b.schedule_id, b.status, b.booked_at,
               s.scheduled_date, s.start_time, s.end_time, c.name, c.instructor_name
        FROM class_bookings b
        JOIN class_schedules s ON s.id = b.schedule_id
        JOIN fitness_classes c ON c.id = s.class_id
        WHERE b.user_id = ? AND b.status = 'confirmed'
    """
    params: list = [member_id]
    if upcoming_only:
        sql += " AND s.scheduled_date >= ?"
        params.append(date.today().isoformat())
    sql += " ORDER BY s.scheduled_date ASC, s.start_time ASC"
    return db.fetch_all(sql, tuple(params))


def popular_classes(limit: int = 5):
    return db.fetch_all(
        """
        SELECT c.id, c.name, c.instructor_name, COUNT(b.id) AS bookings
        FROM fitness_classes c
        LEFT JOIN class_schedules s ON s.class_id = c.id
        LEFT JOIN class_bookings b ON b.schedule_id = s.id AND b.status IN ('confirmed','attended')
        GROUP BY c.id
        ORDER BY bookings DESC, c.name ASC
        LIMIT ?
        """,
        (limit,),
    )
