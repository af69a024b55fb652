from fastapi import Depends, HTTPException
from fastapi.requests import HTTPConnection
from sqlalchemy.orm import Session

from app.core.app_state import AppState
from app.core.notifications import NotificationHub
from app.db import get_db
from app.exceptions import MessageNotFound
from app.models.message import Message
from app.services.media_store import MediaStore
from app.services.message_ledger_service import MessageLedgerService
from app.services.session_supervisor import SessionSupervisor


def get_app_state(connection: HTTPConnection) -> AppState:
    return connection.app.state.tracker


def get_supervisor(state: AppState = Depends(get_app_state)) -> SessionSupervisor:
    return state.supervisor


def get_media_store(state: AppState = Depends(get_app_state)) -> MediaStore:
    return state.media_store


def get_hub(state: AppState = Depends(get_app_state)) -> NotificationHub:
    return state.hub


def get_message_by_id(
    message_id: str,
    db: Session = Depends(get_db),
) -> Message:
    """FastAPI dependency to get a ledger message by its WhatsApp id."""
    try:
        return MessageLedgerService(db).require_message(message_id)
    except MessageNotFound as e:
        raise HTTPException(status_code=404, detail="Message not found") from e
