"""Unit tests for transaction type normalization"""

import pytest

from portfolio_assistant.domain.models import TransactionKind
from portfolio_assistant.domain.transaction_types import (
    is_dividend,
    normalize_transaction_type,
    requires_security,
    requires_shares,
    transaction_type_label,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Dividende", TransactionKind.DIVIDENDS),
        ("dividend", TransactionKind.DIVIDENDS),
        ("Ausschüttung", TransactionKind.DIVIDENDS),
        ("Kauf", TransactionKind.BUY),
        ("Verkauf", TransactionKind.SELL),
        ("transfer-in", TransactionKind.TRANSFER_IN),
        ("Umbuchung Aus", TransactionKind.TRANSFER_OUT),
        ("  delivery inbound ", TransactionKind.DELIVERY_INBOUND),
        ("Zinsen", TransactionKind.INTEREST),
    ],
)
def test_synonyms_map_to_canonical_kinds(raw, expected):
    assert normalize_transaction_type(raw) is expected


def test_unknown_type_passes_through_in_normalized_case():
    assert normalize_transaction_type("Spin off") == "SPIN_OFF"
    assert not isinstance(normalize_transaction_type("Spin off"), TransactionKind)


def test_labels_are_german_and_unknown_shows_raw():
    assert transaction_type_label("DIVIDENDS") == "Dividende"
    assert transaction_type_label("TAXES") == "Steuern"
    assert transaction_type_label("Spin off") == "Spin off"


def test_field_requirements_by_kind():
    assert requires_shares("Kauf")
    assert not requires_shares("Dividende")
    assert requires_security("Dividende")
    assert not requires_security("Einzahlung")
    assert is_dividend("Ertrag")
