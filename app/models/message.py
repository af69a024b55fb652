"""
Message model: one row per observed WhatsApp message.

Rows are never deleted; status is the only column updated after insert.
"""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)

from app.db import Base
from app.models.mixins import utcnow


class Message(Base):
    """Append-only ledger row, unique by message_id."""

    __tablename__ = "messages"

    __table_args__ = (
        Index("ix_messages_chat_session_timestamp", "chat_id", "session_name", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(String(255), unique=True, nullable=False, index=True)
    session_name = Column(String(255), nullable=False, index=True)
    from_number = Column(String(255), nullable=False)
    to_number = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    kind = Column(String(32), nullable=False)
    is_group = Column(Boolean, nullable=False, default=False)
    group_id = Column(String(255), nullable=True)
    is_from_me = Column(Boolean, nullable=False, default=False)
    status = Column(String(32), nullable=False)
    chat_id = Column(String(255), nullable=False)

    # Participant (counterpart, or group author)
    participant_id = Column(String(255), nullable=True)
    participant_name = Column(String(255), nullable=True)
    participant_phone = Column(String(64), nullable=True)
    pushname = Column(String(255), nullable=True)

    # Reply snapshot, copied at ingestion time
    is_reply = Column(Boolean, nullable=False, default=False)
    quoted_message_id = Column(String(255), nullable=True)
    quoted_message_body = Column(Text, nullable=True)
    quoted_message_from = Column(String(255), nullable=True)
    quoted_message_kind = Column(String(32), nullable=True)
    quoted_message_timestamp = Column(DateTime, nullable=True)

    media_filename = Column(String(255), nullable=True)
    media_mimetype = Column(String(100), nullable=True)
    media_size = Column(BigInteger, nullable=True)

    timestamp = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Message(message_id={self.message_id}, chat_id={self.chat_id})>"
