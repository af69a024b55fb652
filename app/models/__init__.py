from app.models.chat import Chat
from app.models.message import Message
from app.models.session import Session

__all__ = [
    "Chat",
    "Message",
    "Session",
]
