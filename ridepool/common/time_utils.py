# ridepool/common/time_utils.py
"""
Арифметика времени для расписаний.
"""

from __future__ import annotations

from datetime import datetime, timedelta


def add_minutes(moment: datetime, minutes: float) -> datetime:
    return moment + timedelta(minutes=minutes)


def add_seconds(moment: datetime, seconds: float) -> datetime:
    return moment + timedelta(seconds=seconds)


def minutes_between(later: datetime, earlier: datetime) -> float:
    """Разница в минутах (дробная, может быть отрицательной)."""
    return (later - earlier).total_seconds() / 60
