"""
seed.py
Sample data for trying the dashboard out.
"""

from __future__ import annotations

from datetime import date, timedelta

import auth
import classes
import community
import db
import facility


def insert_sample_data() -> None:
    """
    Insert a few classes with sessions over the next week, some equipment,
    a challenge and a demo member (demo@gym.local / demo1234).
    Safe to run multiple times: adds new rows each time, the demo member only once.
    """
    today = date.today()

    yoga = classes.create_class("Morning Yoga", "Sara Ahmed", 60, 12, description="Gentle flow for all levels")
    hiit = classes.create_class("HIIT Blast", "Karim Nabil", 45, 8, description="High-intensity intervals")
    spin = classes.create_class("Spin Elite", "Laila Fathy", 50, 6, is_premium=True,
                                description="Premium indoor cycling")

    for offset in range(7):
        day = today + timedelta(days=offset)
        classes.schedule_class(yoga, day, "07:00")
        classes.schedule_class(hiit, day, "18:30")
        if offset % 2 == 0:
            classes.schedule_class(spin, day, "19:30")

    for name, category in (("Squat Rack 1", "strength"), ("Rowing Machine", "cardio"), ("Treadmill 3", "cardio")):
        facility.add_equipment(name, category)
    facility.log_gym_capacity(42, 150)

    admin = db.fetch_one("SELECT id FROM users WHERE is_staff = 1 ORDER BY id LIMIT 1")
    community.create_challenge(
        "30-Day Cardio",
        "minutes",
        600,
        today.isoformat(),
        (today + timedelta(days=30)).isoformat(),
        created_by=admin["id"] if admin else None,
        description="Log 600 cardio minutes this month",
    )

    if auth.get_user_by_email("demo@gym.local") is None:
        auth.register_member("demo@gym.local", "Demo Member", "demo1234", tier_name="Premium")
