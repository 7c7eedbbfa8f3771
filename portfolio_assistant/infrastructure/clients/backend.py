"""Portfolio backend command client with retry for idempotent reads"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from portfolio_assistant.config import settings
from portfolio_assistant.domain.exceptions import BackendCommandError
from portfolio_assistant.domain.extraction import to_decimal
from portfolio_assistant.domain.models import (
    AssistantReply,
    ChatMessage,
    EnrichedHolding,
    ExtractedTransaction,
    ImportResult,
    NormalizedTransaction,
    Suggestion,
)
from portfolio_assistant.infrastructure.observability.metrics import (
    backend_failure_counter,
    backend_latency_histogram,
)

logger = logging.getLogger(__name__)

# Commands that never mutate backend state and may be retried
IDEMPOTENT_COMMANDS = frozenset({"enrich_extracted_transactions"})

_RECORD_FIELDS = (
    "security_name", "isin", "wkn", "ticker", "shares", "amount",
    "gross_amount", "gross_currency", "exchange_rate",
    "price_per_share", "price_per_share_currency",
    "fees", "fees_foreign", "fees_foreign_currency",
    "taxes", "taxes_foreign", "taxes_foreign_currency",
    "note", "value_date", "order_id",
)


def _wire_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


def record_to_wire(txn: ExtractedTransaction) -> Dict[str, Any]:
    data = {"date": txn.date, "txn_type": txn.txn_type, "currency": txn.currency}
    for name in _RECORD_FIELDS:
        data[name] = _wire_value(getattr(txn, name))
    return data


def normalized_to_wire(txn: NormalizedTransaction) -> Dict[str, Any]:
    """Resolved date and canonical kind replace the raw extracted values"""
    data = record_to_wire(txn.record)
    data["date"] = txn.date_text
    data["txn_type"] = txn.kind.value if hasattr(txn.kind, "value") else txn.kind
    return data


def message_to_wire(message: ChatMessage) -> Dict[str, Any]:
    return {
        "role": message.role,
        "content": message.content,
        "attachments": [
            {"data": a.data, "mime_type": a.mime_type, "filename": a.filename}
            for a in message.attachments
        ],
    }


def error_message(response: httpx.Response) -> str:
    """Unwrap a {"message": ...} error body, falling back to the raw text"""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    if isinstance(body, str):
        return body
    return response.text or f"HTTP {response.status_code}"


def _message_result(command: str, data: Any) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    raise BackendCommandError(command, f"Unexpected result: {data!r}")


class BackendClient:
    """
    Client for the portfolio backend command API.

    Every command is `POST {base_url}/commands/{name}` with a JSON argument
    object. Failures of any kind surface as BackendCommandError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.backend_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.read_max_retries
        self.backoff_base = settings.read_backoff_base
        self.transport = transport

    async def _post(self, command: str, args: Dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                with backend_latency_histogram.labels(command=command).time():
                    response = await client.post(f"{self.base_url}/commands/{command}", json=args)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                raise BackendCommandError(command, f"Timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise BackendCommandError(command, error_message(e.response)) from e
            except httpx.RequestError as e:
                raise BackendCommandError(command, f"Backend unreachable: {e}") from e
            except ValueError as e:
                raise BackendCommandError(command, f"Invalid JSON response: {e}") from e

    async def call(self, command: str, args: Dict[str, Any]) -> Any:
        """
        Invoke a backend command.

        Retry strategy (idempotent reads only):
        - Exponential backoff: base * 2^(attempt-1)
        - Mutating commands are sent exactly once

        Raises:
            BackendCommandError: On timeout, HTTP errors, or invalid response
        """
        attempts = self.max_retries if command in IDEMPOTENT_COMMANDS else 1
        attempt = 0
        while True:
            try:
                return await self._post(command, args)
            except BackendCommandError as e:
                attempt += 1
                backend_failure_counter.labels(command=command).inc()
                if attempt >= attempts:
                    logger.error(
                        "Backend command failed",
                        extra={"step": "backend_command", "command": command, "error": e.message, "attempts": attempt},
                    )
                    raise

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)

    async def enrich_extracted_transactions(
        self, transactions: List[ExtractedTransaction]
    ) -> List[EnrichedHolding]:
        data = await self.call(
            "enrich_extracted_transactions",
            {"transactions": [record_to_wire(t) for t in transactions]},
        )
        try:
            return [
                EnrichedHolding(
                    shares=to_decimal(row.get("shares")),
                    shares_from_holdings=bool(row.get("shares_from_holdings")),
                )
                for row in data
            ]
        except (AttributeError, TypeError) as e:
            raise BackendCommandError("enrich_extracted_transactions", f"Invalid result: {e}") from e

    async def import_extracted_transactions(
        self,
        transactions: List[NormalizedTransaction],
        portfolio_id: Optional[int],
        delivery_mode: bool,
    ) -> ImportResult:
        data = await self.call(
            "import_extracted_transactions",
            {
                "transactions": [normalized_to_wire(t) for t in transactions],
                "portfolio_id": portfolio_id,
                "delivery_mode": delivery_mode,
            },
        )
        try:
            return ImportResult(
                imported_count=int(data["imported_count"]),
                errors=list(data.get("errors") or []),
                duplicates=list(data.get("duplicates") or []),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise BackendCommandError("import_extracted_transactions", f"Invalid result: {e}") from e

    async def execute_confirmed_transaction(self, payload: str) -> str:
        command = "execute_confirmed_transaction"
        return _message_result(command, await self.call(command, {"payload": payload}))

    async def execute_confirmed_portfolio_transfer(self, payload: str) -> str:
        command = "execute_confirmed_portfolio_transfer"
        return _message_result(command, await self.call(command, {"payload": payload}))

    async def execute_confirmed_transaction_delete(self, payload: str) -> str:
        command = "execute_confirmed_transaction_delete"
        return _message_result(command, await self.call(command, {"payload": payload}))

    async def execute_confirmed_ai_action(
        self, action_type: str, payload: str, api_key: Optional[str] = None
    ) -> str:
        command = "execute_confirmed_ai_action"
        data = await self.call(
            command,
            {"action_type": action_type, "payload": payload, "alpha_vantage_api_key": api_key},
        )
        return _message_result(command, data)

    async def chat_with_portfolio_assistant(
        self,
        messages: List[ChatMessage],
        provider: str,
        model: str,
        api_key: Optional[str],
        base_currency: str,
        user_name: Optional[str] = None,
    ) -> AssistantReply:
        command = "chat_with_portfolio_assistant"
        data = await self.call(
            command,
            {
                "messages": [message_to_wire(m) for m in messages],
                "provider": provider,
                "model": model,
                "api_key": api_key,
                "base_currency": base_currency,
                "user_name": user_name,
            },
        )
        try:
            return AssistantReply(
                response=data["response"],
                suggestions=[
                    Suggestion(
                        conversation_id=0,
                        action_type=s["action_type"],
                        description=s.get("description", ""),
                        payload=s.get("payload", ""),
                    )
                    for s in data.get("suggestions") or []
                ],
                provider=data.get("provider"),
                model=data.get("model"),
                tokens_used=data.get("tokens_used"),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise BackendCommandError(command, f"Invalid result: {e}") from e
