"""
WhatsApp client event payloads.

Matches the objects the browser-automation client hands to its callbacks
(message, ack, revoke, QR). Field aliases follow the client's camelCase names.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class MessageKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    VOICE_NOTE = "voice_note"
    DOCUMENT = "document"
    STICKER = "sticker"
    GROUP_EVENT = "group_event"


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    PLAYED = "played"
    FAILED = "failed"
    REVOKED = "revoked"
    REVOKED_FOR_ME = "revoked_for_me"


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    QR_PENDING = "qr_pending"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    AUTH_FAILED = "auth_failed"
    DISCONNECTED = "disconnected"


MEDIA_KINDS = frozenset(
    {
        MessageKind.IMAGE,
        MessageKind.VIDEO,
        MessageKind.AUDIO,
        MessageKind.VOICE_NOTE,
        MessageKind.DOCUMENT,
        MessageKind.STICKER,
    }
)

RAW_KIND_MAP: dict[str, MessageKind] = {
    "chat": MessageKind.TEXT,
    "text": MessageKind.TEXT,
    "image": MessageKind.IMAGE,
    "video": MessageKind.VIDEO,
    "audio": MessageKind.AUDIO,
    "ptt": MessageKind.VOICE_NOTE,
    "voice_note": MessageKind.VOICE_NOTE,
    "document": MessageKind.DOCUMENT,
    "sticker": MessageKind.STICKER,
    "gp2": MessageKind.GROUP_EVENT,
    "notification": MessageKind.GROUP_EVENT,
    "group_event": MessageKind.GROUP_EVENT,
}

ACK_STATUS_MAP: dict[int, MessageStatus] = {
    -1: MessageStatus.FAILED,
    0: MessageStatus.PENDING,
    1: MessageStatus.SENT,
    2: MessageStatus.DELIVERED,
    3: MessageStatus.READ,
    4: MessageStatus.PLAYED,
}


def kind_from_raw(raw_type: Optional[str]) -> MessageKind:
    """Map the client's message type to a MessageKind; unknown types are text."""
    if not raw_type:
        return MessageKind.TEXT
    return RAW_KIND_MAP.get(raw_type.lower(), MessageKind.TEXT)


def status_from_ack(ack: Optional[int]) -> Optional[MessageStatus]:
    """Map an ack level to a status. None for levels the tracker does not model."""
    if ack is None:
        return None
    status = ACK_STATUS_MAP.get(ack)
    if status is None:
        logger.warning("Unknown ack level: %s", ack)
    return status


class MessageEvent(BaseModel):
    """A message observed by the client (sent or received)."""

    id: str
    from_: str = Field(alias="from")
    to: str
    body: Optional[str] = None
    caption: Optional[str] = None
    type: str = "chat"
    is_group_msg: bool = Field(default=False, alias="isGroupMsg")
    author: Optional[str] = None
    has_media: bool = Field(default=False, alias="hasMedia")
    has_quoted_msg: bool = Field(default=False, alias="hasQuotedMsg")
    quoted_msg_id: Optional[str] = Field(default=None, alias="quotedMsgId")
    from_me: bool = Field(default=False, alias="fromMe")
    timestamp: Optional[datetime] = None
    mimetype: Optional[str] = None
    notify_name: Optional[str] = Field(default=None, alias="notifyName")
    ack: Optional[int] = None

    model_config = {"populate_by_name": True}

    @property
    def kind(self) -> MessageKind:
        return kind_from_raw(self.type)

    @property
    def is_media(self) -> bool:
        return self.has_media or self.kind in MEDIA_KINDS

    @property
    def is_reply(self) -> bool:
        return self.has_quoted_msg or self.quoted_msg_id is not None


class AckEvent(BaseModel):
    """Delivery acknowledgement for a message."""

    message_id: str = Field(alias="id")
    ack: int

    model_config = {"populate_by_name": True}


class RevokeEvent(BaseModel):
    """A message was deleted for everyone or only for this account."""

    message_id: str = Field(alias="id")
    for_me: bool = Field(default=False, alias="forMe")

    model_config = {"populate_by_name": True}

    @property
    def status(self) -> MessageStatus:
        return MessageStatus.REVOKED_FOR_ME if self.for_me else MessageStatus.REVOKED


class ContactInfo(BaseModel):
    id: str
    pushname: Optional[str] = None
    name: Optional[str] = None
    number: Optional[str] = None


class QuotedMessage(BaseModel):
    """Point-in-time view of a quoted message."""

    id: str
    body: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    type: Optional[str] = None
    timestamp: Optional[datetime] = None

    model_config = {"populate_by_name": True}


class QrCode(BaseModel):
    base64_qr: str = Field(alias="base64Qr")
    attempts: int = 0
    url_code: Optional[str] = Field(default=None, alias="urlCode")

    model_config = {"populate_by_name": True}
