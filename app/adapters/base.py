"""
WhatsApp client interface.

A client wraps one browser-automation connection for one agent session. It
reports everything through the callbacks handed to ``start`` and answers the
best-effort lookups the participant resolver needs.
"""

from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from app.schemas.whatsapp import (
    AckEvent,
    ContactInfo,
    MessageEvent,
    QrCode,
    QuotedMessage,
    RevokeEvent,
    SessionState,
)

MessageHandler = Callable[[MessageEvent], Awaitable[None]]
AckHandler = Callable[[AckEvent], Awaitable[None]]
RevokeHandler = Callable[[RevokeEvent], Awaitable[None]]
QrHandler = Callable[[QrCode], Awaitable[None]]
StateHandler = Callable[[SessionState, Optional[str]], Awaitable[None]]


@dataclass
class ClientCallbacks:
    on_message: MessageHandler
    on_ack: AckHandler
    on_revoke: RevokeHandler
    on_qr: QrHandler
    on_state: StateHandler


class BaseWhatsAppClient(ABC):
    """Contract for WhatsApp client connections."""

    @abstractmethod
    async def start(self, callbacks: ClientCallbacks) -> None:
        """Open the connection and register callbacks. Returns once the connection attempt settles."""
        ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def send_message(
        self,
        recipient: str,
        content: str,
        quoted_message_id: Optional[str] = None,
    ) -> Optional[str]:
        """Send a text message. Return the platform message id when known."""
        ...

    @abstractmethod
    async def get_contact(self, contact_id: str) -> Optional[ContactInfo]: ...

    @abstractmethod
    async def get_message_by_id(self, message_id: str) -> Optional[QuotedMessage]: ...

    async def get_group_name(self, group_id: str) -> Optional[str]:
        return None

    async def download_media(self, event: MessageEvent) -> Optional[bytes]:
        return None


ClientFactory = Callable[[str], BaseWhatsAppClient]


def load_client_factory(path: str) -> ClientFactory:
    """Resolve a 'package.module:attribute' path to a client factory."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Client factory must look like 'package.module:attribute', got {path!r}"
        )
    module = importlib.import_module(module_name)
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise ValueError(f"Client factory {path!r} is not callable")
    return factory
