"""
In-process notification fan-out.

Subscribers hold a bounded queue per connection. Publishing never blocks and
never raises: a full queue drops the event for that subscriber only.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

GLOBAL_TOPIC = "global"


def session_topic(session_name: str) -> str:
    return f"session-{session_name}"


def chat_topic(chat_id: str) -> str:
    return f"chat-{chat_id}"


class NotificationKind(str, Enum):
    NEW_MESSAGE = "new_message"
    STATUS_UPDATE = "status_update"
    SESSION_STATUS = "session_status"
    QR_CODE = "qr_code"


class Notification(BaseModel):
    kind: NotificationKind
    session_name: str
    chat_id: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def topics(self) -> list[str]:
        topics = [GLOBAL_TOPIC, session_topic(self.session_name)]
        if self.chat_id:
            topics.append(chat_topic(self.chat_id))
        return topics


class Subscription:
    def __init__(self, topics: Iterable[str], maxsize: int) -> None:
        self.topics = frozenset(topics)
        self.queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def matches(self, topics: Iterable[str]) -> bool:
        return not self.topics.isdisjoint(topics)

    async def get(self) -> Notification:
        return await self.queue.get()


class NotificationHub:
    """Best-effort, at-most-once delivery to currently connected subscribers."""

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscriptions: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, topics: Optional[Iterable[str]] = None) -> Subscription:
        subscription = Subscription(topics or [GLOBAL_TOPIC], self._queue_size)
        self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    def publish(self, notification: Notification) -> int:
        """Deliver to every matching subscriber once. Returns how many received it."""
        delivered = 0
        try:
            topics = notification.topics
            for subscription in list(self._subscriptions):
                if not subscription.matches(topics):
                    continue
                try:
                    subscription.queue.put_nowait(notification)
                    delivered += 1
                except asyncio.QueueFull:
                    subscription.dropped += 1
                    logger.warning(
                        "Subscriber queue full, dropping %s notification",
                        notification.kind.value,
                    )
        except Exception:
            logger.exception("Failed to publish %s notification", notification.kind.value)
        return delivered
