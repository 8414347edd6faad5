from __future__ import annotations

from datetime import date, timedelta

import bcrypt
import pytest

import auth
import classes
import db
import membership


@pytest.fixture(autouse=True)
def fresh_db(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "gym-test.db")
    # Full-strength bcrypt makes every registration slow
    real_gensalt = bcrypt.gensalt
    monkeypatch.setattr(auth.bcrypt, "gensalt", lambda rounds=12: real_gensalt(rounds=4))
    db.init_db(auth.hash_password("admin123"))
    yield tmp_path / "gym-test.db"


@pytest.fixture
def tomorrow() -> date:
    return date.today() + timedelta(days=1)


@pytest.fixture
def make_member():
    counter = iter(range(1, 10_000))

    def _make(tier_name: str = "Basic") -> int:
        n = next(counter)
        return auth.register_member(f"member{n}@gym.test", f"Member {n}", "secret123", tier_name)

    return _make


@pytest.fixture
def make_session(tomorrow):
    def _make(capacity: int = 10, is_premium: bool = False, start_time: str = "18:00") -> int:
        class_id = classes.create_class("Spin", "Coach", 45, capacity, is_premium=is_premium)
        return classes.schedule_class(class_id, tomorrow, start_time)

    return _make


@pytest.fixture
def basic_tier():
    return membership.get_tier_by_name("Basic")


@pytest.fixture
def premium_tier():
    return membership.get_tier_by_name("Premium")
