"""Pydantic schemas for API request/response validation"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ConversationCreate(BaseModel):
    """Request body for POST /v1/conversations"""

    title: Optional[str] = None


class ConversationResponse(BaseModel):
    id: int
    title: Optional[str] = None
    created_at: Optional[str] = None


class AttachmentSchema(BaseModel):
    """Base64 encoded image"""

    data: str = Field(..., min_length=1)
    mime_type: str
    filename: Optional[str] = None


class MessageRequest(BaseModel):
    """Request body for POST /v1/conversations/{id}/messages"""

    content: str = Field(..., min_length=1, description="User message text")
    attachments: List[AttachmentSchema] = Field(default_factory=list)


class MessageSchema(BaseModel):
    id: int
    conversation_id: int
    role: str
    content: str
    attachments: List[AttachmentSchema] = Field(default_factory=list)
    created_at: Optional[str] = None


class MessagesResponse(BaseModel):
    conversation_id: int
    messages: List[MessageSchema]


class SuggestionSchema(BaseModel):
    """Suggestion with its rendering state"""

    id: Optional[int] = None
    handle: str  # in-memory address, usable even when id is None
    conversation_id: int
    message_id: Optional[int] = None
    action_type: str
    description: str
    payload: str
    status: str
    renderable: bool = True
    executing: bool = False
    transaction_count: Optional[int] = None
    error: Optional[str] = None


class SuggestionsResponse(BaseModel):
    conversation_id: int
    suggestions: List[SuggestionSchema]


class ChatTurnResponse(BaseModel):
    """Response for POST /v1/conversations/{id}/messages"""

    user_message_id: int
    assistant_message_id: Optional[int] = None
    response: Optional[str] = None
    suggestions: List[SuggestionSchema] = Field(default_factory=list)
    error: Optional[str] = None
    tokens_used: Optional[int] = None


class ExtractedTransactionSchema(BaseModel):
    """Extracted record as shown in, and edited from, the preview"""

    date: str
    txn_type: str
    currency: str
    security_name: Optional[str] = None
    isin: Optional[str] = None
    wkn: Optional[str] = None
    ticker: Optional[str] = None
    shares: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    gross_amount: Optional[Decimal] = None
    gross_currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    price_per_share: Optional[Decimal] = None
    price_per_share_currency: Optional[str] = None
    fees: Optional[Decimal] = None
    fees_foreign: Optional[Decimal] = None
    fees_foreign_currency: Optional[str] = None
    taxes: Optional[Decimal] = None
    taxes_foreign: Optional[Decimal] = None
    taxes_foreign_currency: Optional[str] = None
    note: Optional[str] = None
    value_date: Optional[str] = None
    order_id: Optional[str] = None


class ConfirmRequest(BaseModel):
    """Optional body for POST /v1/suggestions/{id}/confirm"""

    transactions: Optional[List[ExtractedTransactionSchema]] = None
    portfolio_id: Optional[int] = None


class ImportResultSchema(BaseModel):
    imported_count: int
    errors: List[str]
    duplicates: List[str]


class ConfirmResponse(BaseModel):
    suggestion: SuggestionSchema
    outcome: str  # success | partial | failed_items
    message: Optional[str] = None
    import_result: Optional[ImportResultSchema] = None
    chat_messages: List[str]
    status_persisted: bool


class DeclineResponse(BaseModel):
    suggestion: SuggestionSchema
    status_persisted: bool


class DeclineAllResponse(BaseModel):
    conversation_id: int
    declined: List[SuggestionSchema]


class DiagnosticSchema(BaseModel):
    code: str
    message: str
    index: Optional[int] = None


class PortfolioOptionSchema(BaseModel):
    id: int
    name: str
    is_retired: bool = False


class PreviewRequest(BaseModel):
    """Request body for POST /v1/extractions/preview"""

    payload: Dict[str, Any] | str
    portfolios: List[PortfolioOptionSchema] = Field(default_factory=list)


class PreviewRowSchema(BaseModel):
    index: int
    kind: str
    label: str
    date: str
    date_display: str
    value_date_display: Optional[str] = None
    amount_display: str
    shares_display: str
    has_foreign_currency: bool
    total_fees: Optional[Decimal] = None
    needs_portfolio: bool
    missing_fields: List[str]
    shares_from_holdings: bool
    date_warning: Optional[DiagnosticSchema] = None
    transaction: ExtractedTransactionSchema


class PreviewResponse(BaseModel):
    """Response for POST /v1/extractions/preview"""

    headline: str
    source_description: Optional[str] = None
    rows: List[PreviewRowSchema]
    has_foreign_currency: bool
    needs_portfolio: bool
    holdings_derived_indices: List[int]
    default_portfolio_id: Optional[int] = None
    diagnostics: List[DiagnosticSchema]
