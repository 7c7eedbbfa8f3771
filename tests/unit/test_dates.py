"""Unit tests for date resolution and plausibility warnings"""

from datetime import date

import pytest

from portfolio_assistant.domain.dates import format_date, get_date_warning, resolve_date

TODAY = date(2024, 3, 15)


def test_iso_date_wins_regardless_of_currency():
    assert resolve_date("2024-03-07", "USD").value == date(2024, 3, 7)
    assert resolve_date("2024-03-07T10:00:00", "EUR").value == date(2024, 3, 7)


@pytest.mark.parametrize(
    "text,currency,expected",
    [
        ("07.03.2024", "EUR", date(2024, 3, 7)),
        ("03/07/2024", "USD", date(2024, 3, 7)),
        ("03/07/2024", "EUR", date(2024, 7, 3)),
        ("25/12/2024", "USD", date(2024, 12, 25)),  # part > 12 is the day
        ("12/25/2024", "EUR", date(2024, 12, 25)),
        ("2024/03/07", "USD", date(2024, 3, 7)),
        ("7. März 2024", "EUR", date(2024, 3, 7)),
        ("March 7, 2024", "USD", date(2024, 3, 7)),
        ("7 Okt 2024", "EUR", date(2024, 10, 7)),
    ],
)
def test_resolve_date_formats(text, currency, expected):
    outcome = resolve_date(text, currency)

    assert outcome.value == expected
    assert outcome.ok


def test_month_first_currencies_are_configurable():
    assert resolve_date("03/07/2024", "CAD", ("USD", "CAD")).value == date(2024, 3, 7)


def test_unparseable_date_degrades_to_diagnostic():
    outcome = resolve_date("irgendwann", "EUR")

    assert outcome.value is None
    assert outcome.diagnostics[0].code == "date_unparsed"


def test_empty_date_is_reported_missing():
    assert resolve_date("  ").diagnostics[0].code == "date_missing"


def test_invalid_calendar_date_is_not_resolved():
    assert resolve_date("31.02.2024", "EUR").value is None


def test_format_date_display_and_passthrough():
    assert format_date("2024-03-07") == "07.03.2024"
    assert format_date("03/07/2024", "USD") == "07.03.2024"
    assert format_date("Q1 2024") == "Q1 2024"


def test_warning_for_far_future_date():
    warning = get_date_warning("2024-05-01", today=TODAY)

    assert warning.code == "date_in_future"


def test_warning_for_date_older_than_five_years():
    assert get_date_warning("2018-01-20", today=TODAY).code == "date_in_past"


def test_warning_for_transposed_day_and_month():
    # Swapped, 2024-01-03 becomes 2024-03-01, nine days before today
    transposed = get_date_warning("2024-01-03", today=date(2024, 3, 10))
    assert transposed.code == "date_transposed"
    assert "01.03.2024" in transposed.message


def test_no_warning_for_recent_date():
    assert get_date_warning("2024-03-10", today=TODAY) is None


def test_non_iso_input_is_not_checked():
    assert get_date_warning("10.03.2030", today=TODAY) is None
