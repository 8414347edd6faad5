"""
auth.py
Authentication utilities (bcrypt hashing, verify, login, registration, change password).

This avoids passlib's bcrypt backend auto-detection issues on some Python 3.13 Windows setups.
"""

from __future__ import annotations

import logging
import sqlite3

import bcrypt

import config
import db
import membership

log = logging.getLogger(__name__)


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against stored bcrypt hash.
    """
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def get_user_by_email(email: str):
    return db.fetch_one("SELECT * FROM users WHERE email = ?", (email.strip().lower(),))


def get_user(user_id: int):
    return db.fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))


def login(email: str, password: str):
    """Returns the user row on success, None otherwise."""
    user = get_user_by_email(email)
    if not user:
        return None
    if not verify_password(password, user["password_hash"]):
        log.info("Failed login for %r", email)
        return None
    return user


def validate_new_password(new1: str, new2: str) -> list[str]:
    errors: list[str] = []
    if len(new1) < config.MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters.")
    if new1 != new2:
        errors.append("Passwords do not match.")
    return errors


def register_member(email: str, full_name: str, password: str, tier_name: str = "Basic") -> int:
    """
    Create a member account with an active monthly subscription.
    Raises ValueError with a user-facing message on bad input.
    """
    email = email.strip().lower()
    if not email or "@" not in email:
        raise ValueError("A valid email is required.")
    if not full_name.strip():
        raise ValueError("Full name is required.")
    if len(password) < config.MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters.")
    tier = membership.get_tier_by_name(tier_name)
    if tier is None:
        raise ValueError(f"Unknown membership tier: {tier_name}")

    password_hash = hash_password(password)
    now = db.now_iso()
    # user and subscription commit together or not at all
    with db.transaction() as conn:
        try:
            user_id = conn.execute(
                """
                INSERT INTO users(email, full_name, password_hash, is_staff, created_at, updated_at)
                VALUES(?,?,?,0,?,?)
                """,
                (email, full_name.strip(), password_hash, now, now),
            ).lastrowid
        except sqlite3.IntegrityError as exc:
            raise ValueError("An account with this email already exists.") from exc
        membership.subscribe(user_id, tier.id, conn=conn)
    log.info("Registered member %s (%s) on tier %s", user_id, email, tier.name)
    return user_id


def change_password(email: str, new_password: str) -> None:
    user = get_user_by_email(email)
    if user is None:
        raise ValueError("No account with this email.")
    db.execute(
        "UPDATE users SET password_hash = ?, updated_at = ? WHERE id = ?",
        (hash_password(new_password), db.now_iso(), user["id"]),
    )
    # the forced change only applies to the staff account
    if user["is_staff"]:
        db.clear_force_password_change()


def update_profile(user_id: int, full_name: str, emergency_contact: str, fitness_goals: str) -> None:
    if not full_name.strip():
        raise ValueError("Full name is required.")
    db.execute(
        """
        UPDATE users SET full_name = ?, emergency_contact = ?, fitness_goals = ?, updated_at = ?
        WHERE id = ?
        """,
        (full_name.strip(), emergency_contact.strip() or None, fitness_goals.strip() or None,
         db.now_iso(), user_id),
    )
