"""Sessions API: provision, list, get, QR, stop, send."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi_pagination import Page, Params, create_page
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from app.commands.outbound.send_message_command import SendMessageCommand
from app.commands.sessions.provision_session_command import ProvisionSessionCommand
from app.db import get_db
from app.exceptions import SessionNotFound
from app.routers.utils.dependencies import get_supervisor
from app.schemas.session import (
    QrRead,
    SendMessageRequest,
    SessionCreate,
    SessionListRow,
    SessionRead,
    SessionStatusRead,
)
from app.services.session_service import SessionService
from app.services.session_supervisor import SessionSupervisor

sessions_router = APIRouter(prefix="/sessions", tags=["Session"])


def _session_to_list_row(s, supervisor: SessionSupervisor) -> SessionListRow:
    """Convert a persisted session to SessionListRow with its live state."""
    row = SessionRead.model_validate(s)
    return SessionListRow(
        **row.model_dump(), live_state=supervisor.registry.state(s.session_name)
    )


@sessions_router.post("", response_model=SessionStatusRead, status_code=201)
async def provision_session(
    data: SessionCreate,
    supervisor: SessionSupervisor = Depends(get_supervisor),
) -> SessionStatusRead:
    """Provision a session for an agent and start connecting it."""
    command = ProvisionSessionCommand(supervisor)
    return await command.execute(data)


@sessions_router.get("", response_model=Page[SessionListRow])
def list_sessions(
    params: Params = Depends(),
    db: Session = Depends(get_db),
    supervisor: SessionSupervisor = Depends(get_supervisor),
) -> Page[SessionListRow]:
    """List persisted sessions with their live connection state."""
    query = SessionService(db).get_sessions_query()
    page = paginate(query, params=params)
    rows = [_session_to_list_row(s, supervisor) for s in page.items]
    return create_page(rows, total=page.total, params=page.params)


@sessions_router.get("/{session_name}", response_model=SessionListRow)
def get_session(
    session_name: str,
    db: Session = Depends(get_db),
    supervisor: SessionSupervisor = Depends(get_supervisor),
) -> SessionListRow:
    session = SessionService(db).get_session(session_name)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return _session_to_list_row(session, supervisor)


@sessions_router.get("/{session_name}/qr", response_model=QrRead)
def get_session_qr(
    session_name: str,
    supervisor: SessionSupervisor = Depends(get_supervisor),
) -> QrRead:
    """Latest QR code while the session waits for a scan."""
    try:
        qr = supervisor.get_qr(session_name)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    if qr is None:
        raise HTTPException(status_code=404, detail="No QR code pending")
    return QrRead(
        session_name=session_name,
        base64_qr=qr.base64_qr,
        attempts=qr.attempts,
        url_code=qr.url_code,
    )


@sessions_router.delete("/{session_name}", status_code=204)
async def delete_session(
    session_name: str,
    supervisor: SessionSupervisor = Depends(get_supervisor),
) -> Response:
    """Stop the session's connection and forget it."""
    try:
        await supervisor.stop_session(session_name, forget=True)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return Response(status_code=204)


@sessions_router.post("/{session_name}/messages", response_model=dict)
async def send_message(
    session_name: str,
    data: SendMessageRequest,
    supervisor: SessionSupervisor = Depends(get_supervisor),
) -> dict:
    """Send a text message through a ready session."""
    command = SendMessageCommand(supervisor)
    return await command.execute(session_name, data)
