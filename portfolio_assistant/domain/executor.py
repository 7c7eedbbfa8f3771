"""Action executor - dispatches confirmed suggestions to backend mutations"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, assert_never

from portfolio_assistant.config import AssistantConfig
from portfolio_assistant.domain.enrichment import HoldingsEnrichmentService
from portfolio_assistant.domain.exceptions import MissingPortfolioError
from portfolio_assistant.domain.extraction import parse_extracted_payload
from portfolio_assistant.domain.models import (
    ActionKind,
    Diagnostic,
    ExtractedTransaction,
    ImportResult,
    NormalizedTransaction,
    Outcome,
    Suggestion,
)
from portfolio_assistant.domain.transaction_types import transaction_type_label
from portfolio_assistant.domain.validation import (
    missing_required_fields,
    needs_portfolio,
    normalize_transactions,
)

logger = logging.getLogger(__name__)

FIELD_LABELS = {
    "date": "Datum",
    "shares": "Stückzahl",
    "security": "Wertpapier",
    "amount": "Betrag",
}


class MutationCommands(Protocol):
    """Mutating backend commands reachable only through confirmation"""

    async def execute_confirmed_transaction(self, payload: str) -> str: ...

    async def execute_confirmed_portfolio_transfer(self, payload: str) -> str: ...

    async def execute_confirmed_transaction_delete(self, payload: str) -> str: ...

    async def execute_confirmed_ai_action(
        self, action_type: str, payload: str, api_key: Optional[str] = None
    ) -> str: ...

    async def import_extracted_transactions(
        self,
        transactions: List[NormalizedTransaction],
        portfolio_id: Optional[int],
        delivery_mode: bool,
    ) -> ImportResult: ...


@dataclass
class ImportSelection:
    """User choices from the preview: edited/enriched records and target portfolio"""

    transactions: Optional[List[ExtractedTransaction]] = None
    portfolio_id: Optional[int] = None


@dataclass
class ChatEntry:
    content: str
    is_duplicate_notice: bool = False


@dataclass
class ExecutionResult:
    """Either a plain success message or a structured import result"""

    action_kind: ActionKind
    message: Optional[str] = None
    import_result: Optional[ImportResult] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        if self.import_result is None:
            return "success"
        if self.import_result.errors:
            return "partial" if self.import_result.imported_count else "failed_items"
        return "success"

    def chat_entries(self) -> List[ChatEntry]:
        """
        Chat log entries for this result.

        Imported, failed and duplicate records are reported independently;
        a single batch may produce all three.
        """
        if self.import_result is None:
            return [ChatEntry(f"✓ {self.message}")]

        result = self.import_result
        entries = []
        if result.imported_count > 0:
            noun = "Transaktion" if result.imported_count == 1 else "Transaktionen"
            entries.append(ChatEntry(f"✓ {result.imported_count} {noun} erfolgreich importiert"))
        if result.errors:
            entries.append(ChatEntry(f"⚠️ Fehler: {'; '.join(result.errors)}"))
        if result.duplicates:
            lines = "\n".join(f"• {d}" for d in result.duplicates)
            entries.append(ChatEntry(f"🔄 Duplikate übersprungen:\n{lines}", is_duplicate_notice=True))
        if not entries:
            entries.append(ChatEntry("Keine Transaktionen importiert"))
        return entries


class ActionExecutor:
    """Runs exactly one backend mutation per confirmed suggestion"""

    def __init__(
        self,
        commands: MutationCommands,
        config: AssistantConfig,
        enrichment: Optional[HoldingsEnrichmentService] = None,
    ):
        self.commands = commands
        self.config = config
        self.enrichment = enrichment

    async def execute(
        self, suggestion: Suggestion, selection: Optional[ImportSelection] = None
    ) -> ExecutionResult:
        """
        Dispatch a confirmed suggestion by action kind.

        Raises:
            BackendCommandError: the backend rejected or failed the command
            MalformedPayloadError: extracted payload cannot be parsed
            MissingPortfolioError: portfolio transactions without a portfolio
        """
        kind = suggestion.action_kind
        match kind:
            case ActionKind.TRANSACTION_CREATE:
                message = await self.commands.execute_confirmed_transaction(suggestion.payload)
            case ActionKind.PORTFOLIO_TRANSFER:
                message = await self.commands.execute_confirmed_portfolio_transfer(suggestion.payload)
            case ActionKind.TRANSACTION_DELETE:
                message = await self.commands.execute_confirmed_transaction_delete(suggestion.payload)
            case ActionKind.EXTRACTED_TRANSACTIONS:
                imported = await self._import(suggestion, selection)
                return ExecutionResult(kind, import_result=imported.value, diagnostics=imported.diagnostics)
            case ActionKind.OTHER:
                message = await self.commands.execute_confirmed_ai_action(
                    suggestion.action_type,
                    suggestion.payload,
                    self.config.alpha_vantage_api_key,
                )
            case _:
                assert_never(kind)
        return ExecutionResult(kind, message=message)

    async def _import(
        self, suggestion: Suggestion, selection: Optional[ImportSelection]
    ) -> Outcome[ImportResult]:
        selection = selection or ImportSelection()
        diagnostics: List[Diagnostic] = []

        if selection.transactions is not None:
            records = selection.transactions
        else:
            records = parse_extracted_payload(suggestion.payload, self.config.base_currency).value.transactions

        normalized = normalize_transactions(records, self.config.month_first_currencies).value
        if selection.transactions is None and self.enrichment is not None:
            # Same holdings back-fill the preview showed
            enriched = await self.enrichment.enrich(normalized)
            normalized = enriched.value
            diagnostics.extend(enriched.diagnostics)

        if selection.portfolio_id is None and any(needs_portfolio(t.kind) for t in normalized):
            raise MissingPortfolioError("Bitte ein Depot für den Import auswählen")

        accepted: List[NormalizedTransaction] = []
        rejected: List[str] = []
        for index, txn in enumerate(normalized):
            missing = missing_required_fields(txn)
            if missing:
                fields = ", ".join(FIELD_LABELS[m] for m in missing)
                label = transaction_type_label(txn.record.txn_type)
                rejected.append(f"#{index + 1} {label}: fehlt {fields}")
            else:
                accepted.append(txn)

        if rejected:
            logger.info(
                "Rejected extracted records at confirmation",
                extra={"step": "import_validation", "rejected": len(rejected), "accepted": len(accepted)},
            )

        if not accepted:
            return Outcome(ImportResult(imported_count=0, errors=rejected), diagnostics)

        result = await self.commands.import_extracted_transactions(
            accepted, selection.portfolio_id, self.config.delivery_mode
        )
        return Outcome(
            ImportResult(
                imported_count=result.imported_count,
                errors=rejected + result.errors,
                duplicates=result.duplicates,
            ),
            diagnostics,
        )
