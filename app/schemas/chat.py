"""Pydantic schemas for chat summaries."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ChatRead(BaseModel):
    id: int
    chat_id: str
    session_name: str
    chat_type: str
    participant_number: Optional[str] = None
    group_name: Optional[str] = None
    chat_name: Optional[str] = None
    last_message_id: Optional[str] = None
    last_message_text: Optional[str] = None
    last_message_time: Optional[datetime] = None
    last_message_from: Optional[str] = None
    unread_count: int = 0
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ChatRecomputeRead(BaseModel):
    chat: ChatRead
    total_messages: int
    sent_messages: int
    received_messages: int
