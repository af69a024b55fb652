"""Agent session CRUD."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Query
from sqlalchemy.orm import Session as DBSession

from app.models.session import Session
from app.schemas.whatsapp import SessionState


class SessionService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_session(self, session_name: str) -> Optional[Session]:
        return self.db.query(Session).filter(Session.session_name == session_name).first()

    def get_sessions_query(self) -> Query[Session]:
        """Get a query for sessions, oldest first (for pagination)."""
        return self.db.query(Session).order_by(Session.created_at, Session.session_name)

    def get_all_sessions(self) -> List[Session]:
        return self.db.query(Session).order_by(Session.created_at).all()

    def create_session(self, agent_name: str, prefix: str = "agent") -> Session:
        """Provision a session with a generated '{prefix}_{epoch_millis}' name."""
        session_name = self._generate_name(prefix)
        session = Session(
            session_name=session_name,
            agent_name=agent_name,
            status=SessionState.UNINITIALIZED.value,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def record_state(self, session_name: str, state: SessionState) -> Optional[Session]:
        session = self.get_session(session_name)
        if session is None:
            return None
        session.status = state.value
        if state == SessionState.READY:
            session.last_connected_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(session)
        return session

    def delete_session(self, session_name: str) -> bool:
        session = self.get_session(session_name)
        if session is None:
            return False
        self.db.delete(session)
        self.db.commit()
        return True

    def _generate_name(self, prefix: str) -> str:
        name = f"{prefix}_{int(time.time() * 1000)}"
        suffix = 1
        while self.get_session(name) is not None:
            name = f"{prefix}_{int(time.time() * 1000)}_{suffix}"
            suffix += 1
        return name
