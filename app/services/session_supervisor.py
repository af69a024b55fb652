"""
Session supervisor: owns every live WhatsApp connection.

Client callbacks only enqueue onto the session's ordered event channel. One
consumer task per session drains it, so a session's events are handled
strictly one after another while different sessions run concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.adapters.base import ClientCallbacks, ClientFactory
from app.core.address import INDIVIDUAL_SUFFIX, normalize_recipient
from app.core.notifications import Notification, NotificationHub, NotificationKind
from app.core.pipeline import IngestionPipeline, SessionFactory
from app.core.registry import SessionHandle, SessionRegistry
from app.exceptions import (
    ClientNotConfigured,
    InvalidSessionTransition,
    SendFailed,
    SessionNotFound,
    SessionNotReady,
    StorageFailure,
)
from app.schemas.session import SendResult
from app.schemas.whatsapp import (
    AckEvent,
    MessageEvent,
    QrCode,
    RevokeEvent,
    SessionState,
    status_from_ack,
)
from app.services.session_service import SessionService

logger = logging.getLogger(__name__)

EVENT_MESSAGE = "message"
EVENT_ACK = "ack"
EVENT_REVOKE = "revoke"
EVENT_QR = "qr"
EVENT_STATE = "state"


class SessionSupervisor:
    def __init__(
        self,
        pipeline: IngestionPipeline,
        hub: NotificationHub,
        session_factory: SessionFactory,
        client_factory: Optional[ClientFactory] = None,
        registry: Optional[SessionRegistry] = None,
        startup_timeout: float = 300.0,
        session_name_prefix: str = "agent",
        individual_suffix: str = INDIVIDUAL_SUFFIX,
    ) -> None:
        self._pipeline = pipeline
        self._hub = hub
        self._session_factory = session_factory
        self._client_factory = client_factory
        self.registry = registry or SessionRegistry()
        self._startup_timeout = startup_timeout
        self._session_name_prefix = session_name_prefix
        self._individual_suffix = individual_suffix

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def provision(self, agent_name: str) -> SessionHandle:
        """Create a session row for the agent and start its first connection attempt."""
        self._require_factory()
        with self._session_factory() as db:
            session = SessionService(db).create_session(
                agent_name, prefix=self._session_name_prefix
            )
            session_name = session.session_name
        logger.info("Provisioned session %s for agent %s", session_name, agent_name)
        return await self.start_session(session_name, agent_name)

    async def start_session(self, session_name: str, agent_name: str) -> SessionHandle:
        factory = self._require_factory()
        previous = self.registry.get(session_name)
        if previous is not None and previous.is_terminal and previous.consumer is not None:
            previous.consumer.cancel()
        handle = self.registry.register(session_name, agent_name)
        try:
            handle.client = factory(session_name)
        except Exception:
            self.registry.deregister(session_name)
            raise
        handle.consumer = asyncio.create_task(
            self._consume(handle), name=f"session-consumer-{session_name}"
        )
        self._apply_state(handle, SessionState.INITIALIZING)
        handle.connector = asyncio.create_task(
            self._connect(handle), name=f"session-connector-{session_name}"
        )
        return handle

    async def load_all(self) -> List[str]:
        """Start a connection for every persisted session. Returns the names started."""
        if self._client_factory is None:
            logger.warning("No WhatsApp client configured; persisted sessions not loaded")
            return []
        with self._session_factory() as db:
            persisted = [
                (s.session_name, s.agent_name) for s in SessionService(db).get_all_sessions()
            ]

        started: List[str] = []
        for session_name, agent_name in persisted:
            existing = self.registry.get(session_name)
            if existing is not None and not existing.is_terminal:
                continue
            try:
                await self.start_session(session_name, agent_name)
                started.append(session_name)
            except Exception:
                logger.exception("Failed to load session %s", session_name)
        logger.info("Loaded %d of %d persisted sessions", len(started), len(persisted))
        return started

    async def stop_session(self, session_name: str, forget: bool = False) -> None:
        """
        Close the session's client and stop its consumer.

        With ``forget`` the persisted row is removed too, so the session is not
        restored at the next boot.

        Raises:
            SessionNotFound: neither a live nor a persisted session has that name.
        """
        handle = self.registry.get(session_name)
        deleted = False
        if forget:
            with self._session_factory() as db:
                deleted = SessionService(db).delete_session(session_name)
        if handle is None:
            if not deleted:
                raise SessionNotFound(f"Session not found: {session_name}")
            return

        if handle.connector is not None and not handle.connector.done():
            handle.connector.cancel()
        await self._close_client(handle)
        if not handle.is_terminal:
            self._apply_state(handle, SessionState.DISCONNECTED, "stopped", persist=not deleted)
        if handle.consumer is not None:
            handle.consumer.cancel()
        await asyncio.gather(
            *(t for t in (handle.connector, handle.consumer) if t is not None),
            return_exceptions=True,
        )
        if self.registry.get(session_name) is handle:
            self.registry.deregister(session_name)
        logger.info("Stopped session %s", session_name)

    async def shutdown(self) -> None:
        for handle in self.registry.list_sessions():
            try:
                await self.stop_session(handle.session_name)
            except Exception:
                logger.exception("Failed to stop session %s", handle.session_name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_state(self, session_name: str) -> SessionState:
        return self.registry.require(session_name).state

    def get_qr(self, session_name: str) -> Optional[QrCode]:
        return self.registry.require(session_name).qr

    def list_sessions(self) -> List[SessionHandle]:
        return self.registry.list_sessions()

    async def wait_idle(self, session_name: str) -> None:
        """Block until every event queued so far for the session has been handled."""
        await self.registry.require(session_name).events.join()

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send(
        self,
        session_name: str,
        recipient: str,
        content: str,
        reply_to: Optional[str] = None,
    ) -> SendResult:
        """
        Send a text message through the session's client.

        The ledger is not written here; the sent message comes back through the
        client's message callback and is ingested like any other.

        Raises:
            SessionNotFound: no live session has that name.
            SessionNotReady: the session is not in the ready state.
            InvalidRecipient: the recipient cannot be turned into an address.
            SendFailed: the client rejected or failed the send.
        """
        handle = self.registry.require(session_name)
        if handle.state != SessionState.READY or handle.client is None:
            raise SessionNotReady(
                f"Session {session_name} is {handle.state.value}, not ready"
            )
        address = normalize_recipient(recipient, self._individual_suffix)
        try:
            message_id = await handle.client.send_message(
                address, content, quoted_message_id=reply_to
            )
        except Exception as e:
            raise SendFailed(f"Send via {session_name} to {address} failed: {e}") from e
        logger.info("Sent message via %s to %s", session_name, address)
        return SendResult(success=True, message_id=message_id, recipient=address)

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def _callbacks(self, handle: SessionHandle) -> ClientCallbacks:
        async def on_message(event: MessageEvent) -> None:
            await handle.events.put((EVENT_MESSAGE, event))

        async def on_ack(event: AckEvent) -> None:
            await handle.events.put((EVENT_ACK, event))

        async def on_revoke(event: RevokeEvent) -> None:
            await handle.events.put((EVENT_REVOKE, event))

        async def on_qr(qr: QrCode) -> None:
            await handle.events.put((EVENT_QR, qr))

        async def on_state(state: SessionState, detail: Optional[str] = None) -> None:
            await handle.events.put((EVENT_STATE, (state, detail)))

        return ClientCallbacks(
            on_message=on_message,
            on_ack=on_ack,
            on_revoke=on_revoke,
            on_qr=on_qr,
            on_state=on_state,
        )

    async def _consume(self, handle: SessionHandle) -> None:
        while True:
            kind, payload = await handle.events.get()
            try:
                await self._dispatch(handle, kind, payload)
            except StorageFailure as e:
                logger.error(
                    "Storage failure handling %s event for %s: %s",
                    kind,
                    handle.session_name,
                    e,
                )
            except Exception:
                logger.exception(
                    "Unhandled error processing %s event for %s", kind, handle.session_name
                )
            finally:
                handle.events.task_done()

    async def _dispatch(self, handle: SessionHandle, kind: str, payload: Any) -> None:
        session_name = handle.session_name
        if kind == EVENT_MESSAGE:
            await self._pipeline.ingest(session_name, payload, handle.client)
        elif kind == EVENT_ACK:
            status = status_from_ack(payload.ack)
            if status is not None:
                self._pipeline.apply_status(session_name, payload.message_id, status)
        elif kind == EVENT_REVOKE:
            self._pipeline.apply_status(session_name, payload.message_id, payload.status)
        elif kind == EVENT_QR:
            self._apply_qr(handle, payload)
        elif kind == EVENT_STATE:
            state, detail = payload
            self._apply_state(handle, state, detail)
            if handle.is_terminal:
                await self._close_client(handle)
        else:
            logger.warning("Unknown event kind %r for session %s", kind, session_name)

    async def _connect(self, handle: SessionHandle) -> None:
        try:
            await asyncio.wait_for(
                handle.client.start(self._callbacks(handle)),
                timeout=self._startup_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Session %s did not start within %.0fs",
                handle.session_name,
                self._startup_timeout,
            )
            await handle.events.put(
                (EVENT_STATE, (SessionState.DISCONNECTED, "startup timeout"))
            )
        except Exception as e:
            logger.exception("Session %s failed to start", handle.session_name)
            await handle.events.put((EVENT_STATE, (SessionState.DISCONNECTED, str(e))))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _apply_qr(self, handle: SessionHandle, qr: QrCode) -> None:
        if not self._transition(handle, SessionState.QR_PENDING):
            return
        handle.qr = qr
        self._hub.publish(
            Notification(
                kind=NotificationKind.QR_CODE,
                session_name=handle.session_name,
                payload={
                    "base64_qr": qr.base64_qr,
                    "attempts": qr.attempts,
                    "url_code": qr.url_code,
                },
            )
        )
        self._publish_state(handle)

    def _apply_state(
        self,
        handle: SessionHandle,
        state: SessionState,
        detail: Optional[str] = None,
        persist: bool = True,
    ) -> None:
        if not self._transition(handle, state):
            return
        logger.info(
            "Session %s is now %s%s",
            handle.session_name,
            state.value,
            f" ({detail})" if detail else "",
        )
        self._publish_state(handle, detail)
        if persist:
            self._persist_state(handle.session_name, state)

    def _transition(self, handle: SessionHandle, state: SessionState) -> bool:
        if self.registry.get(handle.session_name) is not handle:
            return False
        try:
            self.registry.transition(handle.session_name, state)
        except InvalidSessionTransition as e:
            logger.warning("Ignoring session state change %s", e)
            return False
        return True

    def _publish_state(self, handle: SessionHandle, detail: Optional[str] = None) -> None:
        self._hub.publish(
            Notification(
                kind=NotificationKind.SESSION_STATUS,
                session_name=handle.session_name,
                payload={
                    "session_name": handle.session_name,
                    "agent_name": handle.agent_name,
                    "state": handle.state.value,
                    "detail": detail,
                },
            )
        )

    def _persist_state(self, session_name: str, state: SessionState) -> None:
        try:
            with self._session_factory() as db:
                SessionService(db).record_state(session_name, state)
        except SQLAlchemyError as e:
            logger.warning("Could not record state %s for %s: %s", state.value, session_name, e)

    async def _close_client(self, handle: SessionHandle) -> None:
        if handle.client is None:
            return
        try:
            await handle.client.close()
        except Exception as e:
            logger.warning("Error closing client for %s: %s", handle.session_name, e)

    def _require_factory(self) -> ClientFactory:
        if self._client_factory is None:
            raise ClientNotConfigured("No WhatsApp client factory is configured")
        return self._client_factory
