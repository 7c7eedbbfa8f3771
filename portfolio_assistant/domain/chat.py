"""Chat turn orchestration and suggestion rendering"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from portfolio_assistant.config import AssistantConfig
from portfolio_assistant.domain.context_window import build_context_window
from portfolio_assistant.domain.exceptions import (
    BackendCommandError,
    InvalidAttachmentError,
    MalformedPayloadError,
)
from portfolio_assistant.domain.extraction import load_payload, parse_extracted_payload
from portfolio_assistant.domain.lifecycle import SuggestionLifecycleManager, SuggestionStore
from portfolio_assistant.domain.models import (
    ActionKind,
    AssistantReply,
    ChatAttachment,
    ChatMessage,
    Suggestion,
)

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/gif", "image/webp"})


class AssistantService(Protocol):
    async def chat_with_portfolio_assistant(
        self,
        messages: List[ChatMessage],
        provider: str,
        model: str,
        api_key: Optional[str],
        base_currency: str,
        user_name: Optional[str] = None,
    ) -> AssistantReply: ...


def validate_attachments(attachments: List[ChatAttachment]) -> None:
    for attachment in attachments:
        if attachment.mime_type.lower() not in ALLOWED_MIME_TYPES:
            raise InvalidAttachmentError(
                f"Nicht unterstützter Bildtyp: {attachment.mime_type}"
            )
        if not attachment.data:
            raise InvalidAttachmentError("Leerer Anhang")


@dataclass
class ChatTurn:
    user_message_id: int
    assistant_message_id: Optional[int] = None
    response: Optional[str] = None
    suggestions: List[Suggestion] = field(default_factory=list)
    error: Optional[str] = None
    tokens_used: Optional[int] = None


@dataclass
class SuggestionView:
    suggestion: Suggestion
    renderable: bool
    executing: bool
    transaction_count: Optional[int] = None
    error: Optional[str] = None


class ChatSession:
    """One user turn: persist, window, ask the assistant, persist the answer"""

    def __init__(
        self,
        store: SuggestionStore,
        assistant: AssistantService,
        manager: SuggestionLifecycleManager,
        config: AssistantConfig,
    ):
        self.store = store
        self.assistant = assistant
        self.manager = manager
        self.config = config

    async def send(
        self,
        conversation_id: int,
        content: str,
        attachments: Optional[List[ChatAttachment]] = None,
    ) -> ChatTurn:
        """
        Send a user message and persist the assistant's answer.

        Backend failures of the assistant call are reported on the turn's
        `error` field; the user message stays in history.

        Raises:
            InvalidAttachmentError: unsupported image type
            SuggestionStoreError: the user message could not be stored
        """
        attachments = attachments or []
        validate_attachments(attachments)

        user_message_id = await self.store.save_chat_message(
            "user", content, conversation_id, attachments
        )
        size = max(1, self.config.chat_context_size)
        history = await self.store.get_chat_history(conversation_id, limit=size)
        if not history or history[-1].id != user_message_id:
            history = list(history) + [
                ChatMessage(user_message_id, conversation_id, "user", content, attachments)
            ]
        window = build_context_window(history, size)

        try:
            reply = await self.assistant.chat_with_portfolio_assistant(
                window,
                self.config.ai_provider,
                self.config.ai_model,
                self.config.ai_api_key,
                self.config.base_currency,
                self.config.user_name,
            )
        except BackendCommandError as e:
            logger.error(
                "Assistant request failed",
                extra={"step": "chat", "conversation_id": conversation_id, "error": e.message},
            )
            return ChatTurn(user_message_id=user_message_id, error=e.message)

        assistant_message_id = await self.store.save_chat_message(
            "assistant", reply.response, conversation_id
        )
        suggestions = await self.manager.propose(
            conversation_id, assistant_message_id, reply.suggestions
        )
        return ChatTurn(
            user_message_id=user_message_id,
            assistant_message_id=assistant_message_id,
            response=reply.response,
            suggestions=suggestions,
            tokens_used=reply.tokens_used,
        )


def render_suggestion(
    suggestion: Suggestion, executing: bool, base_currency: str = "EUR"
) -> SuggestionView:
    """A malformed payload yields a non-renderable view, never an exception"""
    try:
        if suggestion.action_kind is ActionKind.EXTRACTED_TRANSACTIONS:
            parsed = parse_extracted_payload(suggestion.payload, base_currency)
            count = len(parsed.value.transactions)
        else:
            load_payload(suggestion.payload)
            count = None
    except MalformedPayloadError as e:
        return SuggestionView(suggestion, renderable=False, executing=executing, error=str(e))
    return SuggestionView(suggestion, renderable=True, executing=executing, transaction_count=count)
