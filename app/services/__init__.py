from app.services.chat_service import ChatService
from app.services.media_store import MediaStore
from app.services.message_ledger_service import MessageLedgerService
from app.services.session_service import SessionService

__all__ = [
    "ChatService",
    "MediaStore",
    "MessageLedgerService",
    "SessionService",
]
