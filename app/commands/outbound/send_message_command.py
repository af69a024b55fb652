"""
Command to send an outbound WhatsApp message through a live session.

Delegates to the session supervisor; the sent message is recorded later when
the client reports it back through the normal message callback.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException

from app.exceptions import InvalidRecipient, SendFailed, SessionNotFound, SessionNotReady
from app.schemas.session import SendMessageRequest, SendResult
from app.services.session_supervisor import SessionSupervisor

logger = logging.getLogger(__name__)


class SendMessageCommand:
    """
    Command to send a text message via the given session.
    """

    def __init__(self, supervisor: SessionSupervisor) -> None:
        self.supervisor = supervisor

    async def execute(self, session_name: str, body: SendMessageRequest) -> dict[str, Any]:
        """
        Send the message and return the client's result.

        Args:
            session_name: Session to send through.
            body: Recipient, text content and optional quoted message id.

        Returns:
            dict: {"data": {"success": True, "message_id": ..., "recipient": ...}}.

        Raises:
            HTTPException: 404 if the session is unknown, 409 if it is not ready,
                400 if the recipient is invalid, 502 if the client failed to send.
        """
        try:
            result: SendResult = await self.supervisor.send(
                session_name, body.recipient, body.content, reply_to=body.reply_to
            )
        except SessionNotFound as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except SessionNotReady as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        except InvalidRecipient as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except SendFailed as e:
            logger.error("Send failed: %s", e)
            raise HTTPException(
                status_code=502,
                detail="WhatsApp client failed to send message",
            ) from e
        return {"data": result.model_dump()}
