"""Date manipulation utilities"""

from datetime import date
from typing import Optional


def safe_date(year: int, month: int, day: int) -> Optional[date]:
    """Build a date, returning None for impossible combinations (e.g. 31.02.)"""
    try:
        return date(year, month, day)
    except ValueError:
        return None


def swap_day_month(value: date) -> Optional[date]:
    """Same year with day and month exchanged, if that is a valid date"""
    return safe_date(value.year, value.day, value.month)


def days_apart(a: date, b: date) -> int:
    """Absolute distance in days"""
    return abs((a - b).days)


def format_display_date(value: date) -> str:
    """German display format, e.g. 07.03.2024"""
    return value.strftime("%d.%m.%Y")
