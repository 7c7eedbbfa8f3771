"""Date resolution for AI-extracted transaction dates

Extraction sources hand us dates in whatever shape the document used:
ISO, German dotted dates, US slashed dates, or spelled-out month names.
Resolution never raises; an unparseable string is returned unchanged together
with a diagnostic so the preview can still render it.
"""

import re
from datetime import date, timedelta
from typing import Iterable, Optional

from portfolio_assistant.domain.models import Diagnostic, Outcome
from portfolio_assistant.utils.date_utils import (
    days_apart,
    format_display_date,
    safe_date,
    swap_day_month,
)

DEFAULT_MONTH_FIRST_CURRENCIES = ("USD",)

FUTURE_TOLERANCE = timedelta(days=30)
PAST_TOLERANCE = timedelta(days=5 * 365)
SWAP_WINDOW_DAYS = 14

_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_NUMERIC_SEPARATORS = (".", "/", "-")

MONTH_NAMES = {
    "jan": 1, "januar": 1, "january": 1,
    "feb": 2, "februar": 2, "february": 2,
    "mar": 3, "mär": 3, "maerz": 3, "märz": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5, "mai": 5,
    "jun": 6, "juni": 6, "june": 6,
    "jul": 7, "juli": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "okt": 10, "oktober": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "dez": 12, "dezember": 12, "december": 12,
}


def prefers_month_first(
    currency_hint: Optional[str],
    month_first_currencies: Iterable[str] = DEFAULT_MONTH_FIRST_CURRENCIES,
) -> bool:
    if not currency_hint:
        return False
    return currency_hint.strip().upper() in {c.upper() for c in month_first_currencies}


def _parse_iso(text: str) -> Optional[date]:
    match = _ISO_PATTERN.match(text)
    if not match:
        return None
    year, month, day = (int(g) for g in match.groups())
    return safe_date(year, month, day)


def _parse_numeric(text: str, separator: str, month_first: bool) -> Optional[date]:
    parts = [p.strip() for p in text.split(separator)]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None

    first, middle, last = parts
    if len(first) == 4:
        return safe_date(int(first), int(middle), int(last))

    if len(last) == 4:
        a, b = int(first), int(middle)
        if a > 12 and b <= 12:
            day, month = a, b
        elif b > 12 and a <= 12:
            month, day = a, b
        elif month_first:
            month, day = a, b
        else:
            day, month = a, b
        return safe_date(int(last), month, day)

    return None


def _parse_month_name(text: str) -> Optional[date]:
    tokens = re.sub(r"[,.]", " ", text.lower()).split()
    if len(tokens) < 3:
        return None

    first, second, third = tokens[:3]
    if not (third.isdigit() and len(third) == 4):
        return None
    year = int(third)

    # 7 März 2024
    if first.isdigit() and second in MONTH_NAMES:
        return safe_date(year, MONTH_NAMES[second], int(first))

    # March 7 2024
    if first in MONTH_NAMES and second.isdigit():
        return safe_date(year, MONTH_NAMES[first], int(second))

    return None


def resolve_date(
    text: str,
    currency_hint: Optional[str] = None,
    month_first_currencies: Iterable[str] = DEFAULT_MONTH_FIRST_CURRENCIES,
) -> Outcome[Optional[date]]:
    """
    Parse a freeform date string into a calendar date.

    Order of attempts:
    1. ISO prefix (YYYY-MM-DD...) - unambiguous, always wins
    2. Numeric with '.', '/' or '-' separators; year-first or year-last.
       Year-last day/month order: a part > 12 is the day, otherwise the
       currency hint decides (month-first for e.g. USD, else day-first)
    3. Month names (German and English, full or abbreviated)

    Returns an Outcome whose value is None when nothing parsed.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return Outcome(None, [Diagnostic("date_missing", "Kein Datum angegeben")])

    if _ISO_PATTERN.match(trimmed):
        parsed = _parse_iso(trimmed)
    else:
        month_first = prefers_month_first(currency_hint, month_first_currencies)
        parsed = None
        for separator in _NUMERIC_SEPARATORS:
            parsed = _parse_numeric(trimmed, separator, month_first)
            if parsed:
                break
        if parsed is None:
            parsed = _parse_month_name(trimmed)

    if parsed is None:
        return Outcome(None, [Diagnostic("date_unparsed", f"Datum nicht erkannt: {text}")])
    return Outcome(parsed)


def format_date(
    text: str,
    currency_hint: Optional[str] = None,
    month_first_currencies: Iterable[str] = DEFAULT_MONTH_FIRST_CURRENCIES,
) -> str:
    """Display form (dd.mm.yyyy) of a freeform date, or the input unchanged"""
    resolved = resolve_date(text, currency_hint, month_first_currencies).value
    if resolved is None:
        return text
    return format_display_date(resolved)


def get_date_warning(text: str, today: Optional[date] = None) -> Optional[Diagnostic]:
    """
    Flag ISO dates that an extraction source has likely misread.

    Only ISO input is checked. Warns when the date is:
    - more than 30 days in the future
    - more than 5 years in the past
    - plausibly day/month transposed: the swapped date lands within 14 days
      of today while the date as given does not

    Advisory only; callers must never block on the result.
    """
    trimmed = (text or "").strip()
    value = _parse_iso(trimmed)
    if value is None:
        return None

    today = today or date.today()

    if value > today + FUTURE_TOLERANCE:
        return Diagnostic("date_in_future", "Datum liegt in der Zukunft - bitte überprüfen")

    if value < today - PAST_TOLERANCE:
        return Diagnostic("date_in_past", "Datum liegt weit in der Vergangenheit - bitte überprüfen")

    if value.month <= 12 and value.day <= 12 and value.month != value.day:
        swapped = swap_day_month(value)
        if (
            swapped is not None
            and days_apart(swapped, today) <= SWAP_WINDOW_DAYS
            and days_apart(value, today) > SWAP_WINDOW_DAYS
        ):
            return Diagnostic(
                "date_transposed",
                f"Datum könnte auch {format_display_date(swapped)} sein - bitte überprüfen",
            )

    return None
