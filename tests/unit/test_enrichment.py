"""Unit tests for holdings enrichment"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from portfolio_assistant.domain.enrichment import (
    HoldingsEnrichmentService,
    derive_price_per_share,
    needs_holdings_lookup,
)
from portfolio_assistant.domain.exceptions import BackendCommandError
from portfolio_assistant.domain.models import EnrichedHolding
from portfolio_assistant.domain.validation import normalize_transaction
from tests.factories import make_record


def _dividend(**overrides):
    values = dict(txn_type="Dividende", shares=None, amount=Decimal("12.00"), taxes=Decimal("3.00"))
    values.update(overrides)
    return normalize_transaction(make_record(**values)).value


def _lookup(result=None, error=None):
    lookup = MagicMock()
    lookup.enrich_extracted_transactions = AsyncMock(return_value=result, side_effect=error)
    return lookup


def test_lookup_needed_only_for_dividends_without_shares():
    assert needs_holdings_lookup([_dividend()])
    assert not needs_holdings_lookup([_dividend(shares=Decimal("5"))])
    assert not needs_holdings_lookup([normalize_transaction(make_record(shares=None)).value])


async def test_enrich_skips_backend_when_nothing_to_fill():
    lookup = _lookup([])
    batch = [normalize_transaction(make_record()).value]

    outcome = await HoldingsEnrichmentService(lookup).enrich(batch)

    assert outcome.value == batch
    lookup.enrich_extracted_transactions.assert_not_called()


async def test_enrich_fills_shares_and_derives_price():
    lookup = _lookup([EnrichedHolding(shares=Decimal("5"), shares_from_holdings=True)])

    outcome = await HoldingsEnrichmentService(lookup).enrich([_dividend()])
    enriched = outcome.value[0]

    assert outcome.ok
    assert enriched.shares_from_holdings
    assert enriched.record.shares == Decimal("5")
    # (12 + 3) / 5
    assert enriched.record.price_per_share == Decimal("3")
    assert enriched.record.price_per_share_currency == "EUR"


async def test_enrich_sends_whole_batch_in_one_call():
    lookup = _lookup(
        [
            EnrichedHolding(shares=Decimal("10"), shares_from_holdings=False),
            EnrichedHolding(shares=Decimal("7"), shares_from_holdings=True),
        ]
    )
    batch = [normalize_transaction(make_record()).value, _dividend()]

    outcome = await HoldingsEnrichmentService(lookup).enrich(batch)

    lookup.enrich_extracted_transactions.assert_awaited_once()
    assert len(lookup.enrich_extracted_transactions.await_args.args[0]) == 2
    assert not outcome.value[0].shares_from_holdings
    assert outcome.value[1].record.shares == Decimal("7")


async def test_enrich_failure_falls_back_to_input():
    lookup = _lookup(error=BackendCommandError("enrich_extracted_transactions", "down"))
    batch = [_dividend()]

    outcome = await HoldingsEnrichmentService(lookup).enrich(batch)

    assert outcome.value == batch
    assert outcome.diagnostics[0].code == "enrichment_failed"


def test_price_derived_from_foreign_gross():
    normalized = _dividend(
        shares=Decimal("4"), gross_amount=Decimal("20"), gross_currency="USD"
    )

    priced = derive_price_per_share(normalized).record

    assert priced.price_per_share == Decimal("5")
    assert priced.price_per_share_currency == "USD"


def test_existing_price_is_kept():
    normalized = _dividend(shares=Decimal("4"), price_per_share=Decimal("1.23"))

    assert derive_price_per_share(normalized).record.price_per_share == Decimal("1.23")
