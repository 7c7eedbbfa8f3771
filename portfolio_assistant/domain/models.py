"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class TransactionKind(str, Enum):
    """Canonical transaction kinds understood by the portfolio backend"""

    BUY = "BUY"
    SELL = "SELL"
    DIVIDENDS = "DIVIDENDS"
    DEPOSIT = "DEPOSIT"
    REMOVAL = "REMOVAL"
    INTEREST = "INTEREST"
    FEES = "FEES"
    TAXES = "TAXES"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    DELIVERY_INBOUND = "DELIVERY_INBOUND"
    DELIVERY_OUTBOUND = "DELIVERY_OUTBOUND"


class SuggestionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self is not SuggestionStatus.PENDING


class ActionKind(str, Enum):
    """Closed set of action kinds; anything unrecognised is OTHER"""

    TRANSACTION_CREATE = "transaction_create"
    PORTFOLIO_TRANSFER = "portfolio_transfer"
    TRANSACTION_DELETE = "transaction_delete"
    EXTRACTED_TRANSACTIONS = "extracted_transactions"
    OTHER = "other"

    @classmethod
    def parse(cls, action_type: str) -> "ActionKind":
        try:
            return cls(action_type)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class Diagnostic:
    """Non-fatal note attached to a best-effort result"""

    code: str
    message: str
    index: Optional[int] = None  # position in the extracted batch, if any


@dataclass
class Outcome(Generic[T]):
    """Best-effort value paired with the diagnostics collected producing it"""

    value: T
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics


@dataclass
class ExtractedTransaction:
    """One financial event as read off a document or image"""

    date: str
    txn_type: str
    currency: str
    security_name: Optional[str] = None
    isin: Optional[str] = None
    wkn: Optional[str] = None
    ticker: Optional[str] = None
    shares: Optional[Decimal] = None
    # Primary amount, in account currency after conversion
    amount: Optional[Decimal] = None
    # Original foreign currency amount, only when a conversion happened
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


@dataclass
class ExtractedPayload:
    """Payload of an extracted_transactions suggestion"""

    transactions: List[ExtractedTransaction]
    source_description: Optional[str] = None


@dataclass
class NormalizedTransaction:
    """Extracted record after date, type and holdings normalization"""

    record: ExtractedTransaction
    kind: TransactionKind | str
    trade_date: Optional[date]
    date_warning: Optional[Diagnostic] = None
    shares_from_holdings: bool = False

    @property
    def date_text(self) -> str:
        """ISO date when resolved, otherwise the raw extracted text"""
        return self.trade_date.isoformat() if self.trade_date else self.record.date


@dataclass
class EnrichedHolding:
    """Index-aligned row returned by the holdings lookup"""

    shares: Optional[Decimal]
    shares_from_holdings: bool


@dataclass
class ImportResult:
    """Outcome of a batch import of extracted transactions"""

    imported_count: int
    errors: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)


@dataclass
class ChatAttachment:
    """Base64 image attached to a chat message"""

    data: str
    mime_type: str
    filename: Optional[str] = None


@dataclass
class ChatMessage:
    id: int
    conversation_id: int
    role: str  # "user" | "assistant"
    content: str
    attachments: List[ChatAttachment] = field(default_factory=list)
    created_at: Optional[str] = None


@dataclass
class Suggestion:
    """A proposed mutating action awaiting user confirmation"""

    conversation_id: int
    action_type: str
    description: str
    payload: str  # opaque JSON text
    status: SuggestionStatus = SuggestionStatus.PENDING
    id: Optional[int] = None  # None until persisted
    message_id: Optional[int] = None
    created_at: Optional[str] = None
    # In-memory address; the only way to reach a suggestion that was never persisted
    handle: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)

    @property
    def action_kind(self) -> ActionKind:
        return ActionKind.parse(self.action_type)

    @property
    def key(self) -> str:
        """Identity used for in-flight tracking"""
        if self.id is not None:
            return f"id:{self.id}"
        return f"handle:{self.handle}"


@dataclass
class AssistantReply:
    """Response from chat_with_portfolio_assistant"""

    response: str
    suggestions: List[Suggestion] = field(default_factory=list)
    provider: Optional[str] = None
    model: Optional[str] = None
    tokens_used: Optional[int] = None
