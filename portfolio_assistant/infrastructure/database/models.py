"""SQLAlchemy ORM models for conversations, messages and suggestions"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Conversation(Base):
    """Chat conversation with the portfolio assistant"""

    __tablename__ = "chat_conversation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    messages = relationship(
        "ChatMessageRecord",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ChatMessageRecord.id",
    )
    suggestions = relationship("ChatSuggestion", back_populates="conversation", cascade="all, delete")


class ChatMessageRecord(Base):
    """Single user or assistant message; attachments stored inline as base64"""

    __tablename__ = "chat_message"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        Integer, ForeignKey("chat_conversation.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(Text, nullable=False)  # user | assistant
    content = Column(Text, nullable=False)
    attachments_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    conversation = relationship("Conversation", back_populates="messages")
    suggestions = relationship(
        "ChatSuggestion", back_populates="message", cascade="all, delete-orphan"
    )


class ChatSuggestion(Base):
    """Proposed mutating action awaiting confirmation"""

    __tablename__ = "chat_suggestion"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        Integer, ForeignKey("chat_conversation.id", ondelete="CASCADE"), nullable=False, index=True
    )
    message_id = Column(Integer, ForeignKey("chat_message.id", ondelete="CASCADE"), nullable=True)
    action_type = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    payload = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")  # pending | confirmed | declined
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    conversation = relationship("Conversation", back_populates="suggestions")
    message = relationship("ChatMessageRecord", back_populates="suggestions")
