"""Session model: one row per provisioned agent (one WhatsApp connection)."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String

from app.db import Base
from app.models.mixins import TimestampMixin


class Session(Base, TimestampMixin):
    """Persisted agent identity. Live connection state is held by the supervisor."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_name = Column(String(255), unique=True, nullable=False, index=True)
    agent_name = Column(String(255), nullable=False)
    status = Column(String(32), nullable=True)  # last known connection state
    last_connected_at = Column(DateTime, nullable=True)
