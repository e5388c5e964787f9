"""
Utility functions for Mileage Tracker application
"""
from __future__ import annotations
import calendar
import os
import uuid
from datetime import date, datetime
from typing import Optional


def today_str() -> str:
    """Get today's date as ISO string"""
    return date.today().isoformat()


def parse_date(s: str) -> date:
    """Parse YYYY-MM-DD date string"""
    return datetime.strptime(s.strip(), "%Y-%m-%d").date()


def safe_float(x: str, default: Optional[float] = 0.0) -> Optional[float]:
    """Convert string to float safely, returning default on error"""
    try:
        return float(x)
    except (TypeError, ValueError):
        return default


def optional_float(x: str) -> Optional[float]:
    """Blank input means 'not entered'"""
    if x is None or not str(x).strip():
        return None
    return safe_float(str(x).strip().replace(",", ""), None)


def round2(x: float) -> float:
    return round(float(x), 2)


def month_key(d: date) -> str:
    """YYYY-MM key for a date"""
    return d.strftime("%Y-%m")


def current_month() -> str:
    return month_key(date.today())


def parse_month(key: str) -> date:
    """First day of a YYYY-MM month key"""
    return datetime.strptime(key.strip(), "%Y-%m").date()


def is_last_day_of_month(d: date) -> bool:
    return d.day == calendar.monthrange(d.year, d.month)[1]


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def app_dir() -> str:
    """
    Get application data directory: ~/.mileage-tracker, or $MILEAGE_TRACKER_HOME.
    Creates directory if it doesn't exist.
    """
    path = os.getenv("MILEAGE_TRACKER_HOME") or os.path.expanduser("~/.mileage-tracker")
    os.makedirs(path, exist_ok=True)
    return path
