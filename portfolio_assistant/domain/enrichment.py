"""Holdings enrichment for dividend records without a share count"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional, Protocol

from portfolio_assistant.domain.exceptions import BackendCommandError
from portfolio_assistant.domain.models import (
    Diagnostic,
    EnrichedHolding,
    ExtractedTransaction,
    NormalizedTransaction,
    Outcome,
    TransactionKind,
)
from portfolio_assistant.domain.validation import has_valid_shares

logger = logging.getLogger(__name__)


class HoldingsLookup(Protocol):
    async def enrich_extracted_transactions(
        self, transactions: List[ExtractedTransaction]
    ) -> List[EnrichedHolding]: ...


def needs_holdings_lookup(transactions: List[NormalizedTransaction]) -> bool:
    """True when at least one dividend lacks a usable share count"""
    return any(
        t.kind is TransactionKind.DIVIDENDS and not has_valid_shares(t.record.shares)
        for t in transactions
    )


def _dividend_gross(txn: ExtractedTransaction) -> Optional[Decimal]:
    if txn.gross_amount is not None and txn.gross_amount > 0:
        return txn.gross_amount
    if txn.amount is not None and txn.taxes is not None:
        return txn.amount + txn.taxes
    return None


def derive_price_per_share(normalized: NormalizedTransaction) -> NormalizedTransaction:
    """
    Back-derive price per share for a dividend with shares but no price.

    price = gross / shares, where gross is the foreign gross amount when
    present, else local amount + withheld taxes. Currency follows the gross.
    """
    txn = normalized.record
    if normalized.kind is not TransactionKind.DIVIDENDS or not has_valid_shares(txn.shares):
        return normalized
    if txn.price_per_share is not None and txn.price_per_share > 0:
        return normalized

    gross = _dividend_gross(txn)
    if gross is None or gross <= 0:
        return normalized

    priced = replace(
        txn,
        price_per_share=gross / txn.shares,
        price_per_share_currency=txn.gross_currency or txn.currency,
    )
    return replace(normalized, record=priced)


def merge_holdings(
    transactions: List[NormalizedTransaction], holdings: List[EnrichedHolding]
) -> List[NormalizedTransaction]:
    """Apply index-aligned lookup rows; only holdings-derived shares overwrite"""
    merged = []
    for index, normalized in enumerate(transactions):
        holding = holdings[index] if index < len(holdings) else None
        if holding is not None and holding.shares_from_holdings and holding.shares is not None:
            normalized = replace(
                normalized,
                record=replace(normalized.record, shares=holding.shares),
                shares_from_holdings=True,
            )
        merged.append(derive_price_per_share(normalized))
    return merged


class HoldingsEnrichmentService:
    """Back-fills dividend share counts from current portfolio holdings"""

    def __init__(self, lookup: HoldingsLookup):
        self.lookup = lookup

    async def enrich(
        self, transactions: List[NormalizedTransaction]
    ) -> Outcome[List[NormalizedTransaction]]:
        """
        Enrich a normalized batch.

        The whole batch is sent in one call so the backend can match by
        position. Backend failures fall back to the input unchanged; the
        preview must render either way.
        """
        if not needs_holdings_lookup(transactions):
            return Outcome(transactions)

        try:
            holdings = await self.lookup.enrich_extracted_transactions(
                [t.record for t in transactions]
            )
        except BackendCommandError as e:
            logger.warning(
                "Holdings enrichment failed, using extracted data",
                extra={"step": "enrichment", "error": e.message},
            )
            return Outcome(
                transactions,
                [Diagnostic("enrichment_failed", "Bestand konnte nicht ermittelt werden")],
            )

        return Outcome(merge_holdings(transactions, holdings))
