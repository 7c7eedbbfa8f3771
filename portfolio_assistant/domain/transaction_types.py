"""Transaction type normalization for mixed German/English labels"""

import re

from portfolio_assistant.domain.models import TransactionKind

K = TransactionKind

SYNONYMS: dict[str, TransactionKind] = {
    "DIVIDEND": K.DIVIDENDS,
    "DIVIDENDE": K.DIVIDENDS,
    "DIVIDENDEN": K.DIVIDENDS,
    "AUSSCHÜTTUNG": K.DIVIDENDS,
    "AUSSCHUETTUNG": K.DIVIDENDS,
    "ERTRAG": K.DIVIDENDS,
    "ERTRAGSGUTSCHRIFT": K.DIVIDENDS,
    "DIVIDENDENGUTSCHRIFT": K.DIVIDENDS,
    "KAUF": K.BUY,
    "VERKAUF": K.SELL,
    "EINLIEFERUNG": K.DELIVERY_INBOUND,
    "AUSLIEFERUNG": K.DELIVERY_OUTBOUND,
    "UMBUCHUNG_EIN": K.TRANSFER_IN,
    "UMBUCHUNG_EINGANG": K.TRANSFER_IN,
    "UMBUCHUNG_AUS": K.TRANSFER_OUT,
    "UMBUCHUNG_AUSGANG": K.TRANSFER_OUT,
    "EINZAHLUNG": K.DEPOSIT,
    "EINLAGE": K.DEPOSIT,
    "AUSZAHLUNG": K.REMOVAL,
    "ENTNAHME": K.REMOVAL,
    "ZINS": K.INTEREST,
    "ZINSEN": K.INTEREST,
    "GEBUEHREN": K.FEES,
    "GEBÜHREN": K.FEES,
    "STEUERN": K.TAXES,
}

LABELS: dict[TransactionKind, str] = {
    K.BUY: "Kauf",
    K.SELL: "Verkauf",
    K.DIVIDENDS: "Dividende",
    K.DEPOSIT: "Einzahlung",
    K.REMOVAL: "Auszahlung",
    K.INTEREST: "Zinsen",
    K.FEES: "Gebühren",
    K.TAXES: "Steuern",
    K.TRANSFER_IN: "Umbuchung Ein",
    K.TRANSFER_OUT: "Umbuchung Aus",
    K.DELIVERY_INBOUND: "Einlieferung",
    K.DELIVERY_OUTBOUND: "Auslieferung",
}

SHARES_REQUIRED = frozenset({K.BUY, K.SELL, K.DELIVERY_INBOUND, K.DELIVERY_OUTBOUND})
SECURITY_REQUIRED = SHARES_REQUIRED | {K.DIVIDENDS}

_SEPARATORS = re.compile(r"[\s-]+")


def normalize_transaction_type(txn_type: str) -> TransactionKind | str:
    """
    Map a free-text type label to a canonical TransactionKind.

    Unknown labels come back in their normalized-case form (e.g. "Spin off"
    -> "SPIN_OFF") so the record is kept as an opaque custom kind.
    """
    normalized = _SEPARATORS.sub("_", (txn_type or "").strip().upper())
    if normalized in SYNONYMS:
        return SYNONYMS[normalized]
    try:
        return TransactionKind(normalized)
    except ValueError:
        return normalized


def transaction_type_label(txn_type: str) -> str:
    """Fixed display label; unknown kinds show the raw input"""
    kind = normalize_transaction_type(txn_type)
    if isinstance(kind, TransactionKind):
        return LABELS[kind]
    return txn_type


def is_dividend(txn_type: str) -> bool:
    return normalize_transaction_type(txn_type) is TransactionKind.DIVIDENDS


def requires_shares(txn_type: str) -> bool:
    return normalize_transaction_type(txn_type) in SHARES_REQUIRED


def requires_security(txn_type: str) -> bool:
    return normalize_transaction_type(txn_type) in SECURITY_REQUIRED
