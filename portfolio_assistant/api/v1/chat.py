"""Conversations and chat messages"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from portfolio_assistant.api.dependencies import (
    get_chat_session,
    get_config,
    get_manager,
    get_request_id,
)
from portfolio_assistant.api.v1.schemas import (
    AttachmentSchema,
    ChatTurnResponse,
    ConversationCreate,
    ConversationResponse,
    MessageRequest,
    MessageSchema,
    MessagesResponse,
)
from portfolio_assistant.api.v1.suggestions import to_suggestion_schema
from portfolio_assistant.config import AssistantConfig
from portfolio_assistant.domain.chat import ChatSession
from portfolio_assistant.domain.exceptions import InvalidAttachmentError, SuggestionStoreError
from portfolio_assistant.domain.lifecycle import SuggestionLifecycleManager
from portfolio_assistant.domain.models import ChatAttachment
from portfolio_assistant.infrastructure.database.repositories import ChatRepository, to_chat_message
from portfolio_assistant.infrastructure.database.session import get_db

router = APIRouter()


def _require_conversation(repo: ChatRepository, conversation_id: int):
    conversation = repo.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    return conversation


@router.post("/conversations", response_model=ConversationResponse, status_code=201)
def create_conversation(body: ConversationCreate, db: Session = Depends(get_db)):
    conversation = ChatRepository(db).create_conversation(body.title)
    db.commit()
    db.refresh(conversation)
    return ConversationResponse(
        id=conversation.id,
        title=conversation.title,
        created_at=conversation.created_at.isoformat() if conversation.created_at else None,
    )


@router.delete("/conversations/{conversation_id}", status_code=204)
def delete_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    manager: SuggestionLifecycleManager = Depends(get_manager),
):
    """Delete a conversation; messages and suggestions go with it"""
    if not ChatRepository(db).delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    db.commit()
    manager.forget_conversation(conversation_id)


@router.get("/conversations/{conversation_id}/messages", response_model=MessagesResponse)
def list_messages(conversation_id: int, db: Session = Depends(get_db)):
    """Full conversation history, oldest first"""
    repo = ChatRepository(db)
    _require_conversation(repo, conversation_id)
    messages = [to_chat_message(r) for r in repo.list_messages(conversation_id)]
    return MessagesResponse(
        conversation_id=conversation_id,
        messages=[
            MessageSchema(
                id=m.id,
                conversation_id=m.conversation_id,
                role=m.role,
                content=m.content,
                attachments=[
                    AttachmentSchema(data=a.data, mime_type=a.mime_type, filename=a.filename)
                    for a in m.attachments
                ],
                created_at=m.created_at,
            )
            for m in messages
        ],
    )


@router.delete("/messages/{message_id}", status_code=204)
def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    manager: SuggestionLifecycleManager = Depends(get_manager),
):
    repo = ChatRepository(db)
    record = repo.get_message(message_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
    conversation_id = record.conversation_id
    repo.delete_message(message_id)
    db.commit()
    manager.forget_message(conversation_id, message_id)


@router.post("/conversations/{conversation_id}/messages", response_model=ChatTurnResponse)
async def send_message(
    conversation_id: int,
    body: MessageRequest,
    request: Request,
    db: Session = Depends(get_db),
    session: ChatSession = Depends(get_chat_session),
    manager: SuggestionLifecycleManager = Depends(get_manager),
    config: AssistantConfig = Depends(get_config),
):
    """
    Send a chat message to the portfolio assistant.

    Flow:
    1. Persist the user message with its attachments
    2. Send the bounded context window to the assistant
    3. Persist the reply and its suggestions as pending
    4. Return the reply; assistant failures come back in `error`
    """
    request_id = get_request_id(request)
    _require_conversation(ChatRepository(db), conversation_id)

    try:
        turn = await session.send(
            conversation_id,
            body.content,
            [ChatAttachment(a.data, a.mime_type, a.filename) for a in body.attachments],
        )
    except InvalidAttachmentError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SuggestionStoreError as e:
        logging.error(f"Chat persistence error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Chat history unavailable")

    return ChatTurnResponse(
        user_message_id=turn.user_message_id,
        assistant_message_id=turn.assistant_message_id,
        response=turn.response,
        suggestions=[to_suggestion_schema(s, manager, config) for s in turn.suggestions],
        error=turn.error,
        tokens_used=turn.tokens_used,
    )
