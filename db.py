"""
db.py
SQLite helpers + initialization (creates DB/tables, seeds tiers, inserts default admin, etc.)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

import config

log = logging.getLogger(__name__)

DB_FILE = config.DB_FILE


def _connect() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_FILE, timeout=config.DB_TIMEOUT_SECONDS, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_conn():
    conn = _connect()
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


@contextmanager
def transaction():
    """
    Explicit write transaction. BEGIN IMMEDIATE takes SQLite's write lock up
    front, so everything read inside is consistent with what gets written.
    Rolls back on any exception (interrupts included).
    """
    conn = _connect()
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            # SQLite may already have rolled back on its own (e.g. disk full)
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def executemany(sql: str, seq_of_params: list[tuple]) -> None:
    with get_conn() as conn:
        conn.executemany(sql, seq_of_params)


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        full_name TEXT NOT NULL,
        emergency_contact TEXT,
        fitness_goals TEXT,
        password_hash TEXT NOT NULL,
        is_staff INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS membership_tiers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        price_monthly REAL NOT NULL,
        price_annual REAL NOT NULL,
        max_classes_per_month INTEGER,
        allows_premium_classes INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS membership_subscriptions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        tier_id INTEGER NOT NULL,
        status TEXT NOT NULL CHECK(status IN ('active','past_due','cancelled')),
        billing_cycle TEXT NOT NULL CHECK(billing_cycle IN ('monthly','annual')),
        start_date TEXT NOT NULL,
        renewal_date TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
        FOREIGN KEY(tier_id) REFERENCES membership_tiers(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fitness_classes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        instructor_name TEXT NOT NULL,
        duration_minutes INTEGER NOT NULL CHECK(duration_minutes > 0),
        capacity INTEGER NOT NULL CHECK(capacity > 0),
        is_premium INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS class_schedules (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        class_id INTEGER NOT NULL,
        scheduled_date TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        capacity INTEGER NOT NULL CHECK(capacity > 0),
        current_bookings INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL CHECK(status IN ('scheduled','cancelled','completed')),
        created_at TEXT NOT NULL,
        FOREIGN KEY(class_id) REFERENCES fitness_classes(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS class_bookings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        schedule_id INTEGER NOT NULL,
        status TEXT NOT NULL CHECK(status IN ('confirmed','cancelled','attended')),
        booked_at TEXT NOT NULL,
        cancelled_at TEXT,
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
        FOREIGN KEY(schedule_id) REFERENCES class_schedules(id) ON DELETE CASCADE
    )
    """,
    # One confirmed booking per member and session
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_class_bookings_confirmed
    ON class_bookings(user_id, schedule_id) WHERE status = 'confirmed'
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        kind TEXT NOT NULL CHECK(kind IN ('info','success','warning')),
        is_read INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS equipment (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        category TEXT NOT NULL,
        status TEXT NOT NULL CHECK(status IN ('available','in_use','maintenance')),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS equipment_waitlist (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        equipment_id INTEGER NOT NULL,
        status TEXT NOT NULL CHECK(status IN ('waiting','notified','cancelled')),
        joined_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
        FOREIGN KEY(equipment_id) REFERENCES equipment(id) ON DELETE CASCADE
    )
    """,
    # One waiting entry per member and equipment
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_equipment_waitlist_waiting
    ON equipment_waitlist(user_id, equipment_id) WHERE status = 'waiting'
    """,
    """
    CREATE TABLE IF NOT EXISTS gym_capacity_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        current_count INTEGER NOT NULL CHECK(current_count >= 0),
        max_capacity INTEGER NOT NULL CHECK(max_capacity > 0),
        logged_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS activity_feed (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        activity_type TEXT NOT NULL,
        content TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS community_challenges (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        challenge_type TEXT NOT NULL,
        target_value REAL NOT NULL CHECK(target_value > 0),
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        created_by INTEGER,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        FOREIGN KEY(created_by) REFERENCES users(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS challenge_participants (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        challenge_id INTEGER NOT NULL,
        user_id INTEGER NOT NULL,
        current_progress REAL NOT NULL DEFAULT 0,
        joined_at TEXT NOT NULL,
        UNIQUE(challenge_id, user_id),
        FOREIGN KEY(challenge_id) REFERENCES community_challenges(id) ON DELETE CASCADE,
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS announcements (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        priority TEXT NOT NULL CHECK(priority IN ('low','normal','high')),
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    )
    """,
    # Small settings table (used to force password change on first login)
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
]


def _create_tables() -> None:
    for ddl in SCHEMA:
        execute(ddl)


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def _seed_tiers() -> None:
    now = now_iso()
    executemany(
        """
        INSERT INTO membership_tiers(name, price_monthly, price_annual, max_classes_per_month,
            allows_premium_classes, created_at)
        VALUES(?,?,?,?,?,?)
        ON CONFLICT(name) DO NOTHING
        """,
        [
            (name, monthly, annual, max_classes, int(premium), now)
            for name, (monthly, annual, max_classes, premium) in config.DEFAULT_TIERS.items()
        ],
    )


def init_db(default_admin_hash: str) -> None:
    """
    Initialize the database.
    - Create tables
    - Seed the default membership tiers
    - Insert default staff admin (admin/admin123) if no staff user exists
    - Force password change on first login
    """
    _create_tables()
    _seed_tiers()

    admin = fetch_one("SELECT id FROM users WHERE is_staff = 1 LIMIT 1")
    if not admin:
        now = now_iso()
        execute(
            """
            INSERT INTO users(email, full_name, password_hash, is_staff, created_at, updated_at)
            VALUES(?,?,?,1,?,?)
            """,
            (config.DEFAULT_ADMIN_EMAIL.lower(), "Gym Admin", default_admin_hash, now, now),
        )
        _set_setting("force_password_change", "1")
        log.info("Created default staff account %r", config.DEFAULT_ADMIN_EMAIL)
    else:
        # ensure setting exists
        if _get_setting("force_password_change") is None:
            _set_setting("force_password_change", "0")


def is_force_password_change() -> bool:
    val = fetch_one("SELECT value FROM app_settings WHERE key = ?", ("force_password_change",))
    return bool(val and str(val["value"]) == "1")


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")
