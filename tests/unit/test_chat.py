"""Unit tests for chat turn orchestration"""

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from portfolio_assistant.domain.chat import ChatSession, render_suggestion
from portfolio_assistant.domain.exceptions import BackendCommandError, InvalidAttachmentError
from portfolio_assistant.domain.executor import ActionExecutor
from portfolio_assistant.domain.lifecycle import SuggestionLifecycleManager
from portfolio_assistant.domain.models import (
    AssistantReply,
    ChatAttachment,
    ChatMessage,
    Suggestion,
)


@pytest.fixture
def history() -> list:
    return []


@pytest.fixture
def chat_store(history) -> MagicMock:
    """Store backed by a plain list"""
    store = MagicMock()

    async def save_chat_message(role, content, conversation_id, attachments=None):
        message = ChatMessage(len(history) + 1, conversation_id, role, content, list(attachments or []))
        history.append(message)
        return message.id

    async def get_chat_history(conversation_id, limit=None):
        return history[-limit:] if limit else list(history)

    store.save_chat_message = AsyncMock(side_effect=save_chat_message)
    store.get_chat_history = AsyncMock(side_effect=get_chat_history)
    store.save_chat_suggestion = AsyncMock(return_value=11)
    return store


@pytest.fixture
def session(chat_store, fake_backend, config) -> ChatSession:
    manager = SuggestionLifecycleManager(chat_store, ActionExecutor(fake_backend, config))
    return ChatSession(chat_store, fake_backend, manager, config)


async def test_send_persists_both_messages(session, fake_backend, history):
    turn = await session.send(1, "Wie läuft mein Depot?")

    assert turn.response == "Hallo"
    assert [m.role for m in history] == ["user", "assistant"]
    assert turn.user_message_id == 1
    assert turn.assistant_message_id == 2
    messages = fake_backend.chat_with_portfolio_assistant.await_args.args[0]
    assert messages[-1].content == "Wie läuft mein Depot?"


async def test_send_passes_configured_assistant_settings(session, fake_backend):
    await session.send(1, "Hallo")

    args = fake_backend.chat_with_portfolio_assistant.await_args.args
    assert args[1:] == ("claude", "claude-sonnet-4-5", "test-key", "EUR", "Test")


async def test_context_window_is_bounded(chat_store, fake_backend, config, history):
    manager = SuggestionLifecycleManager(chat_store, ActionExecutor(fake_backend, config))
    session = ChatSession(chat_store, fake_backend, manager, replace(config, chat_context_size=3))
    for i in range(5):
        await session.send(1, f"Frage {i}")

    messages = fake_backend.chat_with_portfolio_assistant.await_args.args[0]
    assert len(messages) == 3
    assert messages[-1].content == "Frage 4"
    chat_store.get_chat_history.assert_awaited_with(1, limit=3)


async def test_only_latest_message_carries_images(session, fake_backend):
    image = ChatAttachment(data="aGVsbG8=", mime_type="image/png", filename="beleg.png")
    await session.send(1, "Erstes Bild", [image])
    await session.send(1, "Zweites Bild", [image])

    messages = fake_backend.chat_with_portfolio_assistant.await_args.args[0]
    assert messages[-1].attachments == [image]
    assert all(not m.attachments for m in messages[:-1])


async def test_unsupported_attachment_is_rejected_before_saving(session, history):
    with pytest.raises(InvalidAttachmentError):
        await session.send(1, "PDF", [ChatAttachment(data="JVBERi0=", mime_type="application/pdf")])

    assert history == []


async def test_suggestions_are_persisted_as_pending(session, fake_backend, chat_store):
    fake_backend.chat_with_portfolio_assistant.return_value = AssistantReply(
        response="Soll ich das anlegen?",
        suggestions=[Suggestion(conversation_id=0, action_type="transaction_create", description="Kauf", payload="{}")],
    )

    turn = await session.send(4, "Kauf 10 Apple")

    assert turn.suggestions[0].id == 11
    assert turn.suggestions[0].conversation_id == 4
    assert turn.suggestions[0].message_id == turn.assistant_message_id
    chat_store.save_chat_suggestion.assert_awaited_once_with(2, 4, "transaction_create", "Kauf", "{}")


async def test_assistant_failure_is_reported_on_turn(session, fake_backend, history):
    fake_backend.chat_with_portfolio_assistant.side_effect = BackendCommandError(
        "chat_with_portfolio_assistant", "Kein API-Schlüssel"
    )

    turn = await session.send(1, "Hallo")

    assert turn.error == "Kein API-Schlüssel"
    assert turn.response is None
    assert [m.role for m in history] == ["user"]


def test_malformed_payload_renders_as_not_renderable():
    suggestion = Suggestion(id=1, conversation_id=1, action_type="extracted_transactions", description="", payload="{kaputt")

    view = render_suggestion(suggestion, executing=False)

    assert not view.renderable
    assert view.error


def test_extracted_payload_renders_with_count():
    payload = '{"transactions": [{"date": "2024-03-07", "txnType": "BUY", "currency": "EUR"}]}'
    suggestion = Suggestion(id=1, conversation_id=1, action_type="extracted_transactions", description="", payload=payload)

    view = render_suggestion(suggestion, executing=True)

    assert view.renderable
    assert view.executing
    assert view.transaction_count == 1
