"""Live notification stream over WebSocket."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.core.notifications import NotificationHub, chat_topic, session_topic
from app.routers.utils.dependencies import get_hub

logger = logging.getLogger(__name__)

events_router = APIRouter(prefix="/events", tags=["Events"])


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@events_router.websocket("/ws")
async def stream_events(
    websocket: WebSocket,
    session: Optional[str] = None,
    chat: Optional[str] = None,
    hub: NotificationHub = Depends(get_hub),
) -> None:
    """
    Push notifications as JSON. ``chat`` narrows to one chat, ``session`` to one
    session; with neither the global stream is sent.
    """
    await websocket.accept()
    if chat:
        topics = [chat_topic(chat)]
    elif session:
        topics = [session_topic(session)]
    else:
        topics = None
    subscription = hub.subscribe(topics)
    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        while True:
            next_event = asyncio.create_task(subscription.get())
            done, _ = await asyncio.wait(
                {next_event, disconnected}, return_when=asyncio.FIRST_COMPLETED
            )
            if disconnected in done:
                next_event.cancel()
                break
            notification = next_event.result()
            if session and notification.session_name != session:
                continue
            await websocket.send_json(notification.model_dump(mode="json"))
    except WebSocketDisconnect:
        pass
    finally:
        disconnected.cancel()
        hub.unsubscribe(subscription)
        if subscription.dropped:
            logger.info(
                "Subscriber disconnected after dropping %d notifications",
                subscription.dropped,
            )
