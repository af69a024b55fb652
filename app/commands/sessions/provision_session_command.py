"""Command to provision a new agent session and start its connection."""

from __future__ import annotations

from fastapi import HTTPException

from app.exceptions import ClientNotConfigured
from app.schemas.session import SessionCreate, SessionStatusRead
from app.services.session_supervisor import SessionSupervisor


class ProvisionSessionCommand:
    def __init__(self, supervisor: SessionSupervisor) -> None:
        self.supervisor = supervisor

    async def execute(self, body: SessionCreate) -> SessionStatusRead:
        """
        Raises:
            HTTPException: 503 if no WhatsApp client is configured.
        """
        try:
            handle = await self.supervisor.provision(body.agent_name)
        except ClientNotConfigured as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        return SessionStatusRead.from_handle(handle)
