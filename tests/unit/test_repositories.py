"""Unit tests for chat persistence"""

import pytest

from portfolio_assistant.domain.exceptions import InvalidStatusTransitionError, SuggestionStoreError
from portfolio_assistant.domain.models import ChatAttachment, SuggestionStatus
from portfolio_assistant.infrastructure.database.models import ChatSuggestion
from portfolio_assistant.infrastructure.database.repositories import ChatRepository


@pytest.fixture
def conversation_id(db) -> int:
    conversation = ChatRepository(db).create_conversation("Depot")
    db.commit()
    return conversation.id


async def test_history_limit_returns_latest_oldest_first(store, conversation_id):
    for i in range(5):
        await store.save_chat_message("user", f"m{i}", conversation_id)

    history = await store.get_chat_history(conversation_id, limit=2)

    assert [m.content for m in history] == ["m3", "m4"]


async def test_attachments_round_trip(store, conversation_id):
    image = ChatAttachment(data="aGk=", mime_type="image/jpeg", filename="a.jpg")
    await store.save_chat_message("user", "Bild", conversation_id, [image])

    history = await store.get_chat_history(conversation_id)

    assert history[0].attachments == [image]


async def test_status_update_only_from_pending(store, conversation_id):
    message_id = await store.save_chat_message("assistant", "Vorschlag", conversation_id)
    suggestion_id = await store.save_chat_suggestion(message_id, conversation_id, "transaction_create", "Kauf", "{}")

    await store.update_suggestion_status(suggestion_id, SuggestionStatus.CONFIRMED)

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        await store.update_suggestion_status(suggestion_id, SuggestionStatus.DECLINED)
    assert exc_info.value.current == "confirmed"
    assert await store.get_pending_suggestions(conversation_id) == []


async def test_status_update_for_unknown_suggestion(store, conversation_id):
    with pytest.raises(SuggestionStoreError):
        await store.update_suggestion_status(404, SuggestionStatus.DECLINED)


async def test_deleting_message_removes_its_suggestions(db, store, conversation_id):
    message_id = await store.save_chat_message("assistant", "Vorschlag", conversation_id)
    await store.save_chat_suggestion(message_id, conversation_id, "transaction_create", "Kauf", "{}")

    repo = ChatRepository(db)
    assert repo.delete_message(message_id)
    db.commit()

    assert db.query(ChatSuggestion).count() == 0


async def test_deleting_conversation_cascades(db, store, conversation_id):
    message_id = await store.save_chat_message("assistant", "Vorschlag", conversation_id)
    await store.save_chat_suggestion(message_id, conversation_id, "transaction_create", "Kauf", "{}")

    repo = ChatRepository(db)
    assert repo.delete_conversation(conversation_id)
    db.commit()

    assert await store.get_chat_history(conversation_id) == []
    assert db.query(ChatSuggestion).count() == 0
