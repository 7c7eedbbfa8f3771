"""POST /v1/extractions/preview - normalized, enriched extraction preview"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from portfolio_assistant.api.dependencies import get_pipeline, get_request_id
from portfolio_assistant.api.v1.schemas import (
    DiagnosticSchema,
    ExtractedTransactionSchema,
    PreviewRequest,
    PreviewResponse,
    PreviewRowSchema,
)
from portfolio_assistant.domain.exceptions import MalformedPayloadError
from portfolio_assistant.domain.models import Diagnostic
from portfolio_assistant.domain.preview import (
    ExtractionPipeline,
    PortfolioOption,
    PreviewRow,
    default_portfolio_id,
    format_amount,
    format_shares,
)
from portfolio_assistant.infrastructure.observability.metrics import record_diagnostics

router = APIRouter()


def _diagnostic(diagnostic: Diagnostic) -> DiagnosticSchema:
    return DiagnosticSchema(code=diagnostic.code, message=diagnostic.message, index=diagnostic.index)


def _row(row: PreviewRow) -> PreviewRowSchema:
    txn = row.transaction
    record = txn.record
    return PreviewRowSchema(
        index=row.index,
        kind=txn.kind.value if hasattr(txn.kind, "value") else txn.kind,
        label=row.label,
        date=txn.date_text,
        date_display=row.date_display,
        value_date_display=row.value_date_display,
        amount_display=format_amount(record.amount, record.currency),
        shares_display=format_shares(record.shares),
        has_foreign_currency=row.assessment.has_foreign_currency,
        total_fees=row.assessment.total_fees,
        needs_portfolio=row.assessment.needs_portfolio,
        missing_fields=row.assessment.missing_fields,
        shares_from_holdings=txn.shares_from_holdings,
        date_warning=_diagnostic(txn.date_warning) if txn.date_warning else None,
        transaction=ExtractedTransactionSchema(**vars(record)),
    )


@router.post("/extractions/preview", response_model=PreviewResponse)
async def preview_extraction(
    body: PreviewRequest,
    request: Request,
    pipeline: ExtractionPipeline = Depends(get_pipeline),
):
    """
    Build the confirmation preview for an extracted_transactions payload.

    Individual record problems come back as diagnostics; only a payload
    without a transactions list is rejected (422).
    """
    try:
        preview = await pipeline.build(body.payload)
    except MalformedPayloadError as e:
        logging.warning(f"Malformed extraction payload: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=422, detail=str(e))

    record_diagnostics(preview.diagnostics)

    portfolios = [PortfolioOption(p.id, p.name, p.is_retired) for p in body.portfolios]
    return PreviewResponse(
        headline=preview.headline,
        source_description=preview.source_description,
        rows=[_row(row) for row in preview.rows],
        has_foreign_currency=preview.has_foreign_currency,
        needs_portfolio=preview.needs_portfolio,
        holdings_derived_indices=preview.holdings_derived_indices,
        default_portfolio_id=default_portfolio_id(portfolios),
        diagnostics=[_diagnostic(d) for d in preview.diagnostics],
    )
