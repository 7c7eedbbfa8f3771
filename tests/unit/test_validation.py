"""Unit tests for record assessment and normalization"""

from datetime import date
from decimal import Decimal

from portfolio_assistant.domain.models import TransactionKind
from portfolio_assistant.domain.validation import (
    assess_transaction,
    missing_required_fields,
    normalize_transaction,
    normalize_transactions,
    total_fees,
)
from tests.factories import make_record


def test_normalize_resolves_date_and_kind():
    outcome = normalize_transaction(make_record(date="07.03.2024", txn_type="Kauf"), index=0, today=date(2024, 3, 10))

    assert outcome.value.kind is TransactionKind.BUY
    assert outcome.value.trade_date == date(2024, 3, 7)
    assert outcome.value.date_text == "2024-03-07"
    assert outcome.ok


def test_unknown_kind_is_kept_with_diagnostic():
    outcome = normalize_transaction(make_record(txn_type="Spin off"), index=2, today=date(2024, 3, 10))

    assert outcome.value.kind == "SPIN_OFF"
    assert outcome.diagnostics[0].code == "kind_unknown"
    assert outcome.diagnostics[0].index == 2


def test_date_warning_is_attached_not_blocking():
    outcome = normalize_transaction(make_record(date="2024-01-03"), today=date(2024, 3, 10))

    assert outcome.value.date_warning.code == "date_transposed"
    assert outcome.value.trade_date == date(2024, 1, 3)


def test_unparsed_date_keeps_raw_text():
    normalized = normalize_transaction(make_record(date="Anfang März")).value

    assert normalized.trade_date is None
    assert normalized.date_text == "Anfang März"
    assert "date" in missing_required_fields(normalized)


def test_missing_fields_for_buy():
    normalized = normalize_transaction(
        make_record(shares=None, security_name=None, isin=None, amount=None)
    ).value

    assert missing_required_fields(normalized) == ["shares", "security", "amount"]


def test_dividend_needs_security_but_not_shares():
    normalized = normalize_transaction(make_record(txn_type="Dividende", shares=None)).value

    assert missing_required_fields(normalized) == []


def test_total_fees_adds_foreign_fee_only_in_primary_currency():
    assert total_fees(make_record(fees=Decimal("1.00"), fees_foreign=Decimal("2.00"), fees_foreign_currency="EUR")) == Decimal("3.00")
    assert total_fees(make_record(fees=Decimal("1.00"), fees_foreign=Decimal("2.00"), fees_foreign_currency="USD")) == Decimal("1.00")
    assert total_fees(make_record()) is None


def test_assessment_flags():
    normalized = normalize_transaction(
        make_record(
            gross_amount=Decimal("1600"),
            gross_currency="USD",
            taxes_foreign=Decimal("3"),
            taxes_foreign_currency="USD",
            value_date="2024-03-09",
        )
    ).value

    assessment = assess_transaction(normalized)

    assert assessment.has_foreign_currency
    assert assessment.needs_portfolio
    assert assessment.show_value_date
    assert assessment.separate_foreign_taxes == (Decimal("3"), "USD")


def test_cash_transaction_needs_no_portfolio():
    normalized = normalize_transaction(make_record(txn_type="Einzahlung", shares=None, security_name=None, isin=None)).value

    assert not assess_transaction(normalized).needs_portfolio


def test_normalize_batch_collects_diagnostics_with_index():
    outcome = normalize_transactions([make_record(), make_record(date="nie")], today=date(2024, 3, 10))

    assert len(outcome.value) == 2
    assert [(d.code, d.index) for d in outcome.diagnostics] == [("date_unparsed", 1)]
