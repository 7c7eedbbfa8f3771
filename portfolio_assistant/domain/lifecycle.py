"""Suggestion lifecycle - pending -> confirmed | declined

Every AI-initiated mutation passes through here. A suggestion is persisted as
pending when the assistant proposes it and moves exactly once to a terminal
state. Confirmation dispatches the executor once; the status is written only
after the backend call has resolved, so a failed execution leaves the
suggestion pending and retryable.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from portfolio_assistant.domain.exceptions import (
    InvalidStatusTransitionError,
    SuggestionBusyError,
    SuggestionNotFoundError,
    SuggestionStoreError,
)
from portfolio_assistant.domain.executor import (
    ActionExecutor,
    ExecutionResult,
    ImportSelection,
)
from portfolio_assistant.domain.models import (
    ChatAttachment,
    ChatMessage,
    Suggestion,
    SuggestionStatus,
)

logger = logging.getLogger(__name__)


class SuggestionStore(Protocol):
    """Persistence commands for chat history and suggestions"""

    async def save_chat_message(
        self,
        role: str,
        content: str,
        conversation_id: int,
        attachments: Optional[List[ChatAttachment]] = None,
    ) -> int: ...

    async def get_chat_history(
        self, conversation_id: int, limit: Optional[int] = None
    ) -> List[ChatMessage]: ...

    async def save_chat_suggestion(
        self,
        message_id: int,
        conversation_id: int,
        action_type: str,
        description: str,
        payload: str,
    ) -> int: ...

    async def get_pending_suggestions(self, conversation_id: int) -> List[Suggestion]: ...

    async def get_suggestion(self, suggestion_id: int) -> Optional[Suggestion]: ...

    async def update_suggestion_status(
        self, suggestion_id: int, status: SuggestionStatus
    ) -> None: ...


@dataclass
class TransitionOutcome:
    suggestion: Suggestion
    execution: Optional[ExecutionResult] = None
    chat_message_ids: List[int] = field(default_factory=list)
    status_persisted: bool = True


class SuggestionLifecycleManager:
    """
    Owns the current suggestion set per conversation.

    Each suggestion carries its own in-flight marker; confirming one never
    waits on or touches another. A suggestion leaves the set once its
    terminal status is in the store; only pending, in-flight and unpersisted
    ones are held in memory.
    """

    def __init__(self, store: SuggestionStore, executor: ActionExecutor):
        self.store = store
        self.executor = executor
        self._suggestions: Dict[int, List[Suggestion]] = {}
        self._executing: set[str] = set()

    def suggestions(self, conversation_id: int) -> List[Suggestion]:
        return list(self._suggestions.get(conversation_id, []))

    def is_executing(self, suggestion: Suggestion) -> bool:
        return suggestion.key in self._executing

    def _remember(self, suggestion: Suggestion) -> Suggestion:
        bucket = self._suggestions.setdefault(suggestion.conversation_id, [])
        if suggestion.id is not None:
            for existing in bucket:
                if existing.id == suggestion.id:
                    return existing
        bucket.append(suggestion)
        return suggestion

    def _evict(self, suggestion: Suggestion) -> None:
        bucket = self._suggestions.get(suggestion.conversation_id)
        if bucket is None:
            return
        remaining = [s for s in bucket if s is not suggestion]
        if remaining:
            self._suggestions[suggestion.conversation_id] = remaining
        else:
            del self._suggestions[suggestion.conversation_id]

    def forget_conversation(self, conversation_id: int) -> None:
        self._suggestions.pop(conversation_id, None)

    def forget_message(self, conversation_id: int, message_id: int) -> None:
        bucket = self._suggestions.get(conversation_id, [])
        self._suggestions[conversation_id] = [s for s in bucket if s.message_id != message_id]

    async def load(self, conversation_id: int) -> List[Suggestion]:
        """Merge persisted pending suggestions into the in-memory set"""
        for suggestion in await self.store.get_pending_suggestions(conversation_id):
            self._remember(suggestion)
        return self.suggestions(conversation_id)

    async def find(self, suggestion_id: int) -> Suggestion:
        for bucket in self._suggestions.values():
            for suggestion in bucket:
                if suggestion.id == suggestion_id:
                    return suggestion
        stored = await self.store.get_suggestion(suggestion_id)
        if stored is None:
            raise SuggestionNotFoundError(f"Suggestion {suggestion_id} not found")
        if stored.status.is_terminal:
            return stored
        return self._remember(stored)

    def find_by_handle(self, handle: str) -> Suggestion:
        """Look up a suggestion held in memory, persisted or not"""
        for bucket in self._suggestions.values():
            for suggestion in bucket:
                if suggestion.handle == handle:
                    return suggestion
        raise SuggestionNotFoundError(f"Suggestion {handle} not found")

    async def propose(
        self, conversation_id: int, message_id: int, proposals: List[Suggestion]
    ) -> List[Suggestion]:
        """
        Persist assistant proposals as pending, tied to their message.

        A proposal that fails to persist stays in memory without an id
        instead of being dropped.
        """
        saved = []
        for proposal in proposals:
            suggestion = Suggestion(
                conversation_id=conversation_id,
                message_id=message_id,
                action_type=proposal.action_type,
                description=proposal.description,
                payload=proposal.payload,
                status=SuggestionStatus.PENDING,
            )
            try:
                suggestion.id = await self.store.save_chat_suggestion(
                    message_id,
                    conversation_id,
                    suggestion.action_type,
                    suggestion.description,
                    suggestion.payload,
                )
            except SuggestionStoreError as e:
                logger.warning(
                    "Failed to persist suggestion, keeping it in memory",
                    extra={"step": "suggestion_propose", "action_type": suggestion.action_type, "error": str(e)},
                )
            saved.append(self._remember(suggestion))
        return saved

    def _ensure_pending(self, suggestion: Suggestion, requested: SuggestionStatus) -> None:
        if suggestion.status.is_terminal:
            raise InvalidStatusTransitionError(
                suggestion.id, suggestion.status.value, requested.value
            )
        if suggestion.key in self._executing:
            raise SuggestionBusyError(f"Suggestion {suggestion.id} is already executing")

    async def _persist_status(self, suggestion: Suggestion) -> bool:
        if suggestion.id is None:
            logger.warning(
                "Suggestion has no id, status kept in memory only",
                extra={"step": "suggestion_status", "action_type": suggestion.action_type},
            )
            return False
        try:
            await self.store.update_suggestion_status(suggestion.id, suggestion.status)
        except (SuggestionStoreError, InvalidStatusTransitionError) as e:
            logger.error(
                "Failed to persist suggestion status",
                extra={"step": "suggestion_status", "suggestion_id": suggestion.id, "error": str(e)},
            )
            return False
        return True

    async def confirm(
        self, suggestion: Suggestion, selection: Optional[ImportSelection] = None
    ) -> TransitionOutcome:
        """
        Execute a pending suggestion once and mark it confirmed.

        Raises:
            InvalidStatusTransitionError: already confirmed or declined
            SuggestionBusyError: an execution for this suggestion is in flight
            BackendCommandError, MissingPortfolioError, MalformedPayloadError:
                execution failed; the suggestion stays pending
        """
        self._ensure_pending(suggestion, SuggestionStatus.CONFIRMED)
        self._executing.add(suggestion.key)
        try:
            result = await self.executor.execute(suggestion, selection)

            # Execution happened; never allow a second dispatch from here on
            suggestion.status = SuggestionStatus.CONFIRMED

            message_ids = []
            for entry in result.chat_entries():
                try:
                    message_ids.append(
                        await self.store.save_chat_message(
                            "assistant", entry.content, suggestion.conversation_id
                        )
                    )
                except SuggestionStoreError as e:
                    logger.warning(
                        "Failed to log execution result to chat",
                        extra={"step": "suggestion_confirm", "suggestion_id": suggestion.id, "error": str(e)},
                    )

            persisted = await self._persist_status(suggestion)
            if persisted:
                self._evict(suggestion)
            return TransitionOutcome(suggestion, result, message_ids, persisted)
        finally:
            self._executing.discard(suggestion.key)

    async def decline(self, suggestion: Suggestion) -> TransitionOutcome:
        """Mark a pending suggestion declined. Never touches the executor."""
        self._ensure_pending(suggestion, SuggestionStatus.DECLINED)

        persisted = True
        if suggestion.id is not None:
            try:
                await self.store.update_suggestion_status(suggestion.id, SuggestionStatus.DECLINED)
            except InvalidStatusTransitionError as e:
                # Already terminal in storage; adopt the stored state
                suggestion.status = SuggestionStatus(e.current)
                self._evict(suggestion)
                raise
            except SuggestionStoreError as e:
                logger.error(
                    "Failed to persist declined status",
                    extra={"step": "suggestion_decline", "suggestion_id": suggestion.id, "error": str(e)},
                )
                persisted = False
        else:
            persisted = False

        suggestion.status = SuggestionStatus.DECLINED
        if persisted:
            self._evict(suggestion)
        return TransitionOutcome(suggestion, status_persisted=persisted)

    async def decline_all(self, conversation_id: int) -> List[TransitionOutcome]:
        """Decline every pending suggestion of a conversation that is not executing"""
        outcomes = []
        for suggestion in self.suggestions(conversation_id):
            if suggestion.status is not SuggestionStatus.PENDING or self.is_executing(suggestion):
                continue
            try:
                outcomes.append(await self.decline(suggestion))
            except InvalidStatusTransitionError:
                continue
        return outcomes
