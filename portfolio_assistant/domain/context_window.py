"""Bounded chat context sent to the assistant"""

from dataclasses import replace
from typing import List

from portfolio_assistant.domain.models import ChatMessage


def build_context_window(history: List[ChatMessage], size: int) -> List[ChatMessage]:
    """
    Select the messages sent with an assistant request.

    History in storage is unbounded; only the last `size` messages (at least
    one) are sent. Attachments are kept only on the final message, which is
    the user's just-sent message, so earlier images are not re-uploaded.

    Args:
        history: Conversation messages, oldest first
        size: Configured context size

    Returns:
        The trailing window, oldest first
    """
    size = max(1, size)
    window = history[-size:]
    trimmed = []
    for position, message in enumerate(window):
        is_last = position == len(window) - 1
        if message.attachments and not (is_last and message.role == "user"):
            message = replace(message, attachments=[])
        trimmed.append(message)
    return trimmed
