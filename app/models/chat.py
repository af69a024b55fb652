"""Chat model: one summary row per (chat_id, session_name)."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from app.db import Base
from app.models.mixins import TimestampMixin


class Chat(Base, TimestampMixin):
    """Last-write-wins summary of a conversation, owned by one agent session."""

    __tablename__ = "chats"

    __table_args__ = (
        UniqueConstraint("chat_id", "session_name", name="uq_chats_chat_id_session_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(String(255), nullable=False)
    session_name = Column(String(255), nullable=False, index=True)
    chat_type = Column(String(16), nullable=False)  # 'individual' | 'group'
    participant_number = Column(String(64), nullable=True)
    group_name = Column(String(255), nullable=True)
    chat_name = Column(String(255), nullable=True)

    last_message_id = Column(String(255), nullable=True)
    last_message_text = Column(Text, nullable=True)
    last_message_time = Column(DateTime, nullable=True)
    last_message_from = Column(String(255), nullable=True)

    unread_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
