"""Data access layer for chat conversations, messages and suggestions"""

from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio_assistant.domain.exceptions import (
    InvalidStatusTransitionError,
    SuggestionStoreError,
)
from portfolio_assistant.domain.models import (
    ChatAttachment,
    ChatMessage,
    Suggestion,
    SuggestionStatus,
)
from portfolio_assistant.infrastructure.database.models import (
    ChatMessageRecord,
    ChatSuggestion,
    Conversation,
)


def to_chat_message(record: ChatMessageRecord) -> ChatMessage:
    return ChatMessage(
        id=record.id,
        conversation_id=record.conversation_id,
        role=record.role,
        content=record.content,
        attachments=[
            ChatAttachment(data=a["data"], mime_type=a["mime_type"], filename=a.get("filename"))
            for a in record.attachments_json or []
        ],
        created_at=record.created_at.isoformat() if record.created_at else None,
    )


def to_suggestion(record: ChatSuggestion) -> Suggestion:
    return Suggestion(
        id=record.id,
        conversation_id=record.conversation_id,
        message_id=record.message_id,
        action_type=record.action_type,
        description=record.description,
        payload=record.payload,
        status=SuggestionStatus(record.status),
        created_at=record.created_at.isoformat() if record.created_at else None,
    )


class ChatRepository:
    """Repository for conversations, messages and suggestions"""

    def __init__(self, db: Session):
        self.db = db

    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        conversation = Conversation(title=title)
        self.db.add(conversation)
        self.db.flush()  # Get ID without committing
        return conversation

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        return self.db.get(Conversation, conversation_id)

    def delete_conversation(self, conversation_id: int) -> bool:
        """Delete a conversation with its messages and suggestions"""
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return False
        self.db.delete(conversation)
        return True

    def add_message(
        self,
        conversation_id: int,
        role: str,
        content: str,
        attachments: Optional[List[ChatAttachment]] = None,
    ) -> ChatMessageRecord:
        record = ChatMessageRecord(
            conversation_id=conversation_id,
            role=role,
            content=content,
            attachments_json=[
                {"data": a.data, "mime_type": a.mime_type, "filename": a.filename}
                for a in attachments
            ] if attachments else None,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def list_messages(self, conversation_id: int, limit: Optional[int] = None) -> List[ChatMessageRecord]:
        """Messages oldest first; with a limit, the most recent `limit` of them"""
        query = self.db.query(ChatMessageRecord).filter(ChatMessageRecord.conversation_id == conversation_id)
        if limit is None:
            return query.order_by(ChatMessageRecord.id.asc()).all()
        recent = query.order_by(ChatMessageRecord.id.desc()).limit(limit).all()
        return list(reversed(recent))

    def get_message(self, message_id: int) -> Optional[ChatMessageRecord]:
        return self.db.get(ChatMessageRecord, message_id)

    def delete_message(self, message_id: int) -> bool:
        """Delete a message and the suggestions it carried"""
        record = self.get_message(message_id)
        if record is None:
            return False
        self.db.delete(record)
        return True

    def add_suggestion(
        self,
        message_id: Optional[int],
        conversation_id: int,
        action_type: str,
        description: str,
        payload: str,
    ) -> ChatSuggestion:
        record = ChatSuggestion(
            message_id=message_id,
            conversation_id=conversation_id,
            action_type=action_type,
            description=description,
            payload=payload,
            status=SuggestionStatus.PENDING.value,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_suggestion(self, suggestion_id: int) -> Optional[ChatSuggestion]:
        return self.db.get(ChatSuggestion, suggestion_id)

    def pending_suggestions(self, conversation_id: int) -> List[ChatSuggestion]:
        return (
            self.db.query(ChatSuggestion)
            .filter(
                ChatSuggestion.conversation_id == conversation_id,
                ChatSuggestion.status == SuggestionStatus.PENDING.value,
            )
            .order_by(ChatSuggestion.id.asc())
            .all()
        )

    def finish_suggestion(self, suggestion_id: int, status: SuggestionStatus) -> int:
        """Set a terminal status only if still pending; returns affected rows"""
        return (
            self.db.query(ChatSuggestion)
            .filter(
                ChatSuggestion.id == suggestion_id,
                ChatSuggestion.status == SuggestionStatus.PENDING.value,
            )
            .update({ChatSuggestion.status: status.value}, synchronize_session=False)
        )


class SqlChatStore:
    """
    Persistence commands for the suggestion lifecycle, one transaction each.

    Database errors surface as SuggestionStoreError.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _run(self, operation: Callable[[ChatRepository], object]):
        db = self.session_factory()
        try:
            result = operation(ChatRepository(db))
            db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            raise SuggestionStoreError(f"Database error: {e}") from e
        finally:
            db.close()

    async def save_chat_message(
        self,
        role: str,
        content: str,
        conversation_id: int,
        attachments: Optional[List[ChatAttachment]] = None,
    ) -> int:
        return self._run(lambda repo: repo.add_message(conversation_id, role, content, attachments).id)

    async def get_chat_history(self, conversation_id: int, limit: Optional[int] = None) -> List[ChatMessage]:
        return self._run(
            lambda repo: [to_chat_message(r) for r in repo.list_messages(conversation_id, limit)]
        )

    async def save_chat_suggestion(
        self,
        message_id: int,
        conversation_id: int,
        action_type: str,
        description: str,
        payload: str,
    ) -> int:
        return self._run(
            lambda repo: repo.add_suggestion(
                message_id, conversation_id, action_type, description, payload
            ).id
        )

    async def get_pending_suggestions(self, conversation_id: int) -> List[Suggestion]:
        return self._run(lambda repo: [to_suggestion(r) for r in repo.pending_suggestions(conversation_id)])

    async def get_suggestion(self, suggestion_id: int) -> Optional[Suggestion]:
        def fetch(repo: ChatRepository) -> Optional[Suggestion]:
            record = repo.get_suggestion(suggestion_id)
            return to_suggestion(record) if record else None

        return self._run(fetch)

    async def update_suggestion_status(self, suggestion_id: int, status: SuggestionStatus) -> None:
        """
        Move a pending suggestion to a terminal status.

        Raises:
            InvalidStatusTransitionError: stored status is already terminal
            SuggestionStoreError: unknown suggestion or database failure
        """

        def update(repo: ChatRepository) -> Optional[str]:
            if repo.finish_suggestion(suggestion_id, status):
                return None
            record = repo.get_suggestion(suggestion_id)
            if record is None:
                raise SuggestionStoreError(f"Suggestion {suggestion_id} not found")
            return record.status

        current = self._run(update)
        if current is not None:
            raise InvalidStatusTransitionError(suggestion_id, current, status.value)
