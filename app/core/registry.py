from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.adapters.base import BaseWhatsAppClient
from app.exceptions import InvalidSessionTransition, SessionNotFound
from app.schemas.whatsapp import QrCode, SessionState

TERMINAL_STATES = frozenset({SessionState.AUTH_FAILED, SessionState.DISCONNECTED})

ALLOWED_TRANSITIONS: Dict[SessionState, frozenset[SessionState]] = {
    SessionState.UNINITIALIZED: frozenset({SessionState.INITIALIZING}),
    SessionState.INITIALIZING: frozenset(
        {
            SessionState.QR_PENDING,
            SessionState.AUTHENTICATED,
            SessionState.READY,
            SessionState.AUTH_FAILED,
            SessionState.DISCONNECTED,
        }
    ),
    SessionState.QR_PENDING: frozenset(
        {
            SessionState.QR_PENDING,
            SessionState.AUTHENTICATED,
            SessionState.AUTH_FAILED,
            SessionState.DISCONNECTED,
        }
    ),
    SessionState.AUTHENTICATED: frozenset(
        {SessionState.READY, SessionState.AUTH_FAILED, SessionState.DISCONNECTED}
    ),
    SessionState.READY: frozenset(
        {SessionState.AUTH_FAILED, SessionState.DISCONNECTED}
    ),
    SessionState.AUTH_FAILED: frozenset(),
    SessionState.DISCONNECTED: frozenset(),
}


@dataclass
class SessionHandle:
    """Live state of one agent connection. Only the owning session's tasks mutate it."""

    session_name: str
    agent_name: str
    state: SessionState = SessionState.UNINITIALIZED
    client: Optional[BaseWhatsAppClient] = None
    qr: Optional[QrCode] = None
    events: asyncio.Queue[Any] = field(default_factory=asyncio.Queue)
    consumer: Optional[asyncio.Task] = None
    connector: Optional[asyncio.Task] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class SessionRegistry:
    """Session name -> live handle. Reads need no lock and may see the prior state."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionHandle] = {}

    def register(self, session_name: str, agent_name: str) -> SessionHandle:
        """Register a fresh handle; a terminal handle under the same name is replaced."""
        existing = self._sessions.get(session_name)
        if existing is not None and not existing.is_terminal:
            raise ValueError(f"Session already registered: {session_name}")
        handle = SessionHandle(session_name=session_name, agent_name=agent_name)
        self._sessions[session_name] = handle
        return handle

    def get(self, session_name: str) -> Optional[SessionHandle]:
        return self._sessions.get(session_name)

    def require(self, session_name: str) -> SessionHandle:
        handle = self._sessions.get(session_name)
        if handle is None:
            raise SessionNotFound(f"Session not found: {session_name}")
        return handle

    def state(self, session_name: str) -> Optional[SessionState]:
        handle = self._sessions.get(session_name)
        return handle.state if handle else None

    def transition(self, session_name: str, state: SessionState) -> SessionHandle:
        handle = self.require(session_name)
        if state not in ALLOWED_TRANSITIONS[handle.state]:
            raise InvalidSessionTransition(
                f"{session_name}: {handle.state.value} -> {state.value}"
            )
        handle.state = state
        handle.updated_at = datetime.now(timezone.utc)
        if state != SessionState.QR_PENDING:
            handle.qr = None
        return handle

    def deregister(self, session_name: str) -> Optional[SessionHandle]:
        return self._sessions.pop(session_name, None)

    def list_sessions(self) -> list[SessionHandle]:
        return list(self._sessions.values())
