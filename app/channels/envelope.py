"""
Enriched message descriptors.

The participant resolver turns raw client events into one of these shapes;
the ledger, chat aggregator and notification hub never look at raw payloads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.schemas.whatsapp import MessageKind, MessageStatus


class Participant(BaseModel):
    id: str
    display_name: str
    phone: Optional[str] = None
    pushname: Optional[str] = None


class ReplySnapshot(BaseModel):
    """Copy of the quoted message taken at ingestion time. Fields are None when the lookup failed."""

    quoted_message_id: Optional[str] = None
    body: Optional[str] = None
    sender: Optional[str] = None
    kind: Optional[MessageKind] = None
    timestamp: Optional[datetime] = None


class MediaRef(BaseModel):
    filename: str
    size: int
    mimetype: Optional[str] = None


class EnrichedMessageBase(BaseModel):
    message_id: str
    session_name: str
    from_id: str
    to_id: str
    is_from_me: bool
    is_group: bool = False
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    participant: Participant
    kind: MessageKind = MessageKind.TEXT
    body: Optional[str] = None
    status: MessageStatus
    reply: Optional[ReplySnapshot] = None
    timestamp: datetime

    @property
    def is_reply(self) -> bool:
        return self.reply is not None

    @property
    def sender_id(self) -> str:
        """Who wrote the message: ourselves, or the resolved participant (group author included)."""
        return self.from_id if self.is_from_me else self.participant.id


class TextMessage(EnrichedMessageBase):
    type: Literal["text"] = "text"
    kind: MessageKind = MessageKind.TEXT


class MediaMessage(EnrichedMessageBase):
    type: Literal["media"] = "media"
    kind: MessageKind
    mimetype: Optional[str] = None


class GroupEvent(EnrichedMessageBase):
    type: Literal["group_event"] = "group_event"
    kind: MessageKind = MessageKind.GROUP_EVENT


EnrichedMessage = Annotated[
    Union[TextMessage, MediaMessage, GroupEvent], Field(discriminator="type")
]
