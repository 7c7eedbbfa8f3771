"""Extraction preview: parse -> normalize -> enrich -> display rows"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from portfolio_assistant.config import AssistantConfig
from portfolio_assistant.domain.dates import format_date
from portfolio_assistant.domain.enrichment import HoldingsEnrichmentService
from portfolio_assistant.domain.extraction import parse_extracted_payload
from portfolio_assistant.domain.models import Diagnostic, NormalizedTransaction
from portfolio_assistant.domain.transaction_types import transaction_type_label
from portfolio_assistant.domain.validation import (
    TransactionAssessment,
    assess_transaction,
    normalize_transactions,
)


def format_amount(value: Optional[Decimal], currency: str) -> str:
    """German number format with currency code, e.g. 1.234,56 EUR"""
    if value is None:
        return "-"
    text = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{text} {currency}"


def format_shares(value: Optional[Decimal]) -> str:
    if value is None:
        return "-"
    return f"{value:,.4f}".replace(",", "_").replace(".", ",").replace("_", ".")


@dataclass
class PreviewRow:
    index: int
    transaction: NormalizedTransaction
    assessment: TransactionAssessment
    label: str
    date_display: str
    value_date_display: Optional[str] = None


@dataclass
class ExtractionPreview:
    rows: List[PreviewRow]
    source_description: Optional[str] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def transactions(self) -> List[NormalizedTransaction]:
        return [row.transaction for row in self.rows]

    @property
    def has_foreign_currency(self) -> bool:
        return any(row.assessment.has_foreign_currency for row in self.rows)

    @property
    def needs_portfolio(self) -> bool:
        return any(row.assessment.needs_portfolio for row in self.rows)

    @property
    def holdings_derived_indices(self) -> List[int]:
        return [row.index for row in self.rows if row.transaction.shares_from_holdings]

    @property
    def headline(self) -> str:
        count = len(self.rows)
        return "1 Transaktion erkannt" if count == 1 else f"{count} Transaktionen erkannt"


class ExtractionPipeline:
    """Builds the preview shown before an extracted import is confirmed"""

    def __init__(self, enrichment: HoldingsEnrichmentService, config: AssistantConfig):
        self.enrichment = enrichment
        self.config = config

    async def build(
        self, payload: str | Dict[str, Any], today: Optional[date] = None
    ) -> ExtractionPreview:
        parsed = parse_extracted_payload(payload, self.config.base_currency)
        normalized = normalize_transactions(
            parsed.value.transactions, self.config.month_first_currencies, today
        )
        enriched = await self.enrichment.enrich(normalized.value)

        rows = []
        for index, txn in enumerate(enriched.value):
            record = txn.record
            assessment = assess_transaction(txn)
            rows.append(
                PreviewRow(
                    index=index,
                    transaction=txn,
                    assessment=assessment,
                    label=transaction_type_label(record.txn_type),
                    date_display=format_date(
                        record.date, record.currency, self.config.month_first_currencies
                    ),
                    value_date_display=(
                        format_date(record.value_date, record.currency, self.config.month_first_currencies)
                        if assessment.show_value_date
                        else None
                    ),
                )
            )

        return ExtractionPreview(
            rows=rows,
            source_description=parsed.value.source_description,
            diagnostics=parsed.diagnostics + normalized.diagnostics + enriched.diagnostics,
        )


@dataclass
class PortfolioOption:
    id: int
    name: str
    is_retired: bool = False


def default_portfolio_id(portfolios: List[PortfolioOption]) -> Optional[int]:
    """First portfolio that is not retired, pre-selected for the import"""
    for portfolio in portfolios:
        if not portfolio.is_retired:
            return portfolio.id
    return portfolios[0].id if portfolios else None
