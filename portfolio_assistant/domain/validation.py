"""Transaction record validation and assembly

Decides per field whether an extracted value is usable and derives the
secondary values the preview shows. Nothing here rejects a record; required
but missing fields are reported and left for the executor to refuse at
confirmation time.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from portfolio_assistant.domain.dates import (
    DEFAULT_MONTH_FIRST_CURRENCIES,
    get_date_warning,
    resolve_date,
)
from portfolio_assistant.domain.models import (
    Diagnostic,
    ExtractedTransaction,
    NormalizedTransaction,
    Outcome,
    TransactionKind,
)
from portfolio_assistant.domain.transaction_types import (
    normalize_transaction_type,
    requires_security,
    requires_shares,
)

PORTFOLIO_KINDS = frozenset(
    {
        TransactionKind.BUY,
        TransactionKind.SELL,
        TransactionKind.DELIVERY_INBOUND,
        TransactionKind.DELIVERY_OUTBOUND,
        TransactionKind.TRANSFER_IN,
        TransactionKind.TRANSFER_OUT,
    }
)


@dataclass
class TransactionAssessment:
    """What the preview may display or sum for one record"""

    has_foreign_currency: bool
    total_fees: Optional[Decimal]
    # Foreign-currency fee/tax not yet converted; shown beside, never summed
    separate_foreign_fees: Optional[Tuple[Decimal, str]]
    separate_foreign_taxes: Optional[Tuple[Decimal, str]]
    needs_portfolio: bool
    show_value_date: bool
    missing_fields: List[str] = field(default_factory=list)


def has_valid_shares(shares: Optional[Decimal]) -> bool:
    return shares is not None and shares > 0


def has_foreign_currency(txn: ExtractedTransaction) -> bool:
    return bool(txn.gross_currency) and txn.gross_currency != txn.currency


def total_fees(txn: ExtractedTransaction) -> Optional[Decimal]:
    """
    Local fee plus the foreign fee, but only when the foreign fee is already
    in the primary currency. None when no fee is known at all.
    """
    total = Decimal("0")
    has_fees = False
    if txn.fees is not None:
        total += txn.fees
        has_fees = True
    if txn.fees_foreign is not None and txn.fees_foreign_currency == txn.currency:
        total += txn.fees_foreign
        has_fees = True
    return total if has_fees else None


def _separate(amount: Optional[Decimal], currency: Optional[str], primary: str) -> Optional[Tuple[Decimal, str]]:
    if amount is None or not currency or currency == primary:
        return None
    return amount, currency


def needs_portfolio(kind: TransactionKind | str) -> bool:
    return kind in PORTFOLIO_KINDS


def has_security(txn: ExtractedTransaction) -> bool:
    return any((txn.security_name, txn.isin, txn.wkn, txn.ticker))


def missing_required_fields(normalized: NormalizedTransaction) -> List[str]:
    txn = normalized.record
    missing = []
    if normalized.trade_date is None:
        missing.append("date")
    if requires_shares(normalized.kind) and not has_valid_shares(txn.shares):
        missing.append("shares")
    if requires_security(normalized.kind) and not has_security(txn):
        missing.append("security")
    if txn.amount is None and txn.gross_amount is None:
        missing.append("amount")
    return missing


def assess_transaction(normalized: NormalizedTransaction) -> TransactionAssessment:
    txn = normalized.record
    return TransactionAssessment(
        has_foreign_currency=has_foreign_currency(txn),
        total_fees=total_fees(txn),
        separate_foreign_fees=_separate(txn.fees_foreign, txn.fees_foreign_currency, txn.currency),
        separate_foreign_taxes=_separate(txn.taxes_foreign, txn.taxes_foreign_currency, txn.currency),
        needs_portfolio=needs_portfolio(normalized.kind),
        show_value_date=bool(txn.value_date) and txn.value_date != txn.date,
        missing_fields=missing_required_fields(normalized),
    )


def normalize_transaction(
    txn: ExtractedTransaction,
    index: Optional[int] = None,
    month_first_currencies: Iterable[str] = DEFAULT_MONTH_FIRST_CURRENCIES,
    today: Optional[date] = None,
) -> Outcome[NormalizedTransaction]:
    """Run Date Resolver and Type Normalizer over one extracted record"""
    diagnostics: List[Diagnostic] = []

    resolved = resolve_date(txn.date, txn.currency, month_first_currencies)
    diagnostics.extend(
        Diagnostic(d.code, d.message, index) for d in resolved.diagnostics
    )

    warning = get_date_warning(txn.date, today=today)
    if warning is not None:
        warning = Diagnostic(warning.code, warning.message, index)
        diagnostics.append(warning)

    kind = normalize_transaction_type(txn.txn_type)
    if not isinstance(kind, TransactionKind):
        diagnostics.append(
            Diagnostic("kind_unknown", f"Unbekannter Transaktionstyp: {txn.txn_type}", index)
        )

    return Outcome(
        NormalizedTransaction(
            record=txn,
            kind=kind,
            trade_date=resolved.value,
            date_warning=warning,
        ),
        diagnostics,
    )


def normalize_transactions(
    transactions: List[ExtractedTransaction],
    month_first_currencies: Iterable[str] = DEFAULT_MONTH_FIRST_CURRENCIES,
    today: Optional[date] = None,
) -> Outcome[List[NormalizedTransaction]]:
    diagnostics: List[Diagnostic] = []
    normalized = []
    for index, txn in enumerate(transactions):
        outcome = normalize_transaction(txn, index, month_first_currencies, today)
        diagnostics.extend(outcome.diagnostics)
        normalized.append(outcome.value)
    return Outcome(normalized, diagnostics)
