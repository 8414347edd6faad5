"""
config.py
App-wide constants and environment overrides.
"""

from __future__ import annotations

import os
from pathlib import Path

DB_FILE = Path(os.getenv("GYM_DB_FILE", str(Path(__file__).with_name("gym.db"))))

# Seconds a writer waits on SQLite's lock before the call is treated as unavailable
DB_TIMEOUT_SECONDS = float(os.getenv("GYM_DB_TIMEOUT", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Created on first run; the password must be changed on first login
DEFAULT_ADMIN_EMAIL = os.getenv("GYM_ADMIN_EMAIL", "admin")
DEFAULT_ADMIN_PASSWORD = os.getenv("GYM_ADMIN_PASSWORD", "admin123")

MIN_PASSWORD_LENGTH = 6

# name -> (price_monthly, price_annual, max_classes_per_month, allows_premium_classes)
DEFAULT_TIERS = {
    "Basic": (29.0, 290.0, 8, False),
    "Premium": (59.0, 590.0, 20, True),
    "VIP": (99.0, 990.0, None, True),
}

# Days offered by the class date picker, starting today
BOOKING_WINDOW_DAYS = int(os.getenv("GYM_BOOKING_WINDOW_DAYS", "7"))

# Gym floor occupancy bands (percent of max capacity)
QUIET_BELOW_PERCENT = 30
MODERATE_BELOW_PERCENT = 70
