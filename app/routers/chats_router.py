"""Chats API: summary reconciliation against the message ledger."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.exceptions import StorageFailure
from app.schemas.chat import ChatRead, ChatRecomputeRead
from app.services.chat_service import ChatService
from app.services.message_ledger_service import MessageLedgerService

chats_router = APIRouter(prefix="/chats", tags=["Chat"])


@chats_router.post(
    "/{session_name}/{chat_id}/recompute",
    response_model=ChatRecomputeRead,
)
def recompute_chat(
    session_name: str,
    chat_id: str,
    db: Session = Depends(get_db),
) -> ChatRecomputeRead:
    """Rebuild a chat summary from the latest ledger message."""
    try:
        chat = ChatService(db).recompute_from_ledger(chat_id, session_name)
    except StorageFailure as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    if chat is None:
        raise HTTPException(status_code=404, detail="No messages recorded for this chat")
    counts = MessageLedgerService(db).get_message_counts(chat_id, session_name)
    return ChatRecomputeRead(
        chat=ChatRead.model_validate(chat),
        total_messages=counts["total"],
        sent_messages=counts["sent"],
        received_messages=counts["received"],
    )
