"""Fake WhatsApp client for driving the pipeline and supervisor."""

import asyncio
from typing import Optional

import pytest

from app.adapters.base import BaseWhatsAppClient, ClientCallbacks
from app.schemas.whatsapp import (
    AckEvent,
    ContactInfo,
    MessageEvent,
    QrCode,
    QuotedMessage,
    RevokeEvent,
    SessionState,
)


class FakeWhatsAppClient(BaseWhatsAppClient):
    def __init__(self, session_name: str = "agent_test") -> None:
        self.session_name = session_name
        self.callbacks: Optional[ClientCallbacks] = None
        self.contacts: dict[str, ContactInfo] = {}
        self.messages: dict[str, QuotedMessage] = {}
        self.group_names: dict[str, str] = {}
        self.media: dict[str, bytes] = {}
        self.sent: list[tuple[str, str, Optional[str]]] = []
        self.fail_contacts = False
        self.fail_media = False
        self.fail_send = False
        self.start_delay = 0.0
        self.start_error: Optional[Exception] = None
        self.next_message_id = "true_5551234@c.us_3EB0SENT"
        self.closed = False

    async def start(self, callbacks: ClientCallbacks) -> None:
        self.callbacks = callbacks
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        if self.start_error is not None:
            raise self.start_error

    async def close(self) -> None:
        self.closed = True

    async def send_message(
        self, recipient: str, content: str, quoted_message_id: Optional[str] = None
    ) -> Optional[str]:
        if self.fail_send:
            raise RuntimeError("browser page crashed")
        self.sent.append((recipient, content, quoted_message_id))
        return self.next_message_id

    async def get_contact(self, contact_id: str) -> Optional[ContactInfo]:
        if self.fail_contacts:
            raise RuntimeError("contact lookup timed out")
        return self.contacts.get(contact_id)

    async def get_message_by_id(self, message_id: str) -> Optional[QuotedMessage]:
        return self.messages.get(message_id)

    async def get_group_name(self, group_id: str) -> Optional[str]:
        return self.group_names.get(group_id)

    async def download_media(self, event: MessageEvent) -> Optional[bytes]:
        if self.fail_media:
            raise RuntimeError("media expired on server")
        return self.media.get(event.id)

    # Event emitters used by tests

    async def emit_message(self, event: MessageEvent) -> None:
        await self.callbacks.on_message(event)

    async def emit_ack(self, message_id: str, ack: int) -> None:
        await self.callbacks.on_ack(AckEvent(message_id=message_id, ack=ack))

    async def emit_revoke(self, message_id: str, for_me: bool = False) -> None:
        await self.callbacks.on_revoke(RevokeEvent(message_id=message_id, for_me=for_me))

    async def emit_qr(self, base64_qr: str, attempts: int = 1) -> None:
        await self.callbacks.on_qr(QrCode(base64_qr=base64_qr, attempts=attempts))

    async def emit_state(self, state: SessionState, detail: Optional[str] = None) -> None:
        await self.callbacks.on_state(state, detail)


@pytest.fixture
def fake_client():
    return FakeWhatsAppClient()


@pytest.fixture
def client_factory():
    """Factory that hands out (and remembers) one fake client per session."""
    clients: dict[str, FakeWhatsAppClient] = {}

    def factory(session_name: str) -> FakeWhatsAppClient:
        client = FakeWhatsAppClient(session_name)
        clients[session_name] = client
        return client

    factory.clients = clients
    return factory
