"""
config.py
App settings. Each value can be overridden through an environment variable.
"""

import os
from pathlib import Path

# --- Database ---
DB_FILE = Path(os.environ.get("GYMFLOW_DB", Path(__file__).with_name("gym.db")))

# --- Logging ---
LOG_LEVEL = os.environ.get("GYMFLOW_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# --- Gym ---
GYM_NAME = os.environ.get("GYMFLOW_GYM_NAME", "FitFlow Gym")

# Fee charged when a renewal opens a new billing cycle
DEFAULT_FEES = {
    "daily": float(os.environ.get("GYMFLOW_DAILY_FEE", 150)),
    "weekly": float(os.environ.get("GYMFLOW_WEEKLY_FEE", 800)),
    "monthly": float(os.environ.get("GYMFLOW_MONTHLY_FEE", 2500)),
}

# Active members ending within this many days show up as renewals due
RENEWAL_WINDOW_DAYS = int(os.environ.get("GYMFLOW_RENEWAL_WINDOW_DAYS", 7))
