"""Pydantic schemas for agent sessions and the send operation."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from app.schemas.whatsapp import SessionState

# -----------------------------------------------------------------------------
# Session schemas
# -----------------------------------------------------------------------------


class SessionCreate(BaseModel):
    agent_name: str = Field(..., min_length=1, max_length=255)


class SessionRead(BaseModel):
    id: int
    session_name: str
    agent_name: str
    status: Optional[str] = None
    last_connected_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SessionListRow(SessionRead):
    """Persisted session plus its live state, when a connection is registered."""

    live_state: Optional[SessionState] = None


class SessionStatusRead(BaseModel):
    """Live connection state as held by the session registry."""

    session_name: str
    agent_name: str
    state: SessionState
    has_qr: bool = False
    updated_at: datetime

    @classmethod
    def from_handle(cls, handle) -> "SessionStatusRead":
        return cls(
            session_name=handle.session_name,
            agent_name=handle.agent_name,
            state=handle.state,
            has_qr=handle.qr is not None,
            updated_at=handle.updated_at,
        )


class QrRead(BaseModel):
    session_name: str
    base64_qr: str
    attempts: Optional[int] = None
    url_code: Optional[str] = None


# -----------------------------------------------------------------------------
# Send
# -----------------------------------------------------------------------------


class SendMessageRequest(BaseModel):
    recipient: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("recipient", "to")
    )
    content: str = Field(..., min_length=1)
    reply_to: Optional[str] = Field(
        None, validation_alias=AliasChoices("reply_to", "quotedMessageId")
    )


class SendResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    recipient: str
