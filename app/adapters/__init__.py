"""WhatsApp client adapters."""

from app.adapters.base import (
    BaseWhatsAppClient,
    ClientCallbacks,
    ClientFactory,
    load_client_factory,
)

__all__ = [
    "BaseWhatsAppClient",
    "ClientCallbacks",
    "ClientFactory",
    "load_client_factory",
]
