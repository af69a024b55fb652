"""Chat summaries: upsert on every ingested message, recompute from the ledger."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.channels.envelope import EnrichedMessageBase
from app.core.address import strip_suffix
from app.exceptions import StorageFailure
from app.models.chat import Chat
from app.models.message import Message
from app.services.message_ledger_service import MessageLedgerService

logger = logging.getLogger(__name__)

CHAT_TYPE_INDIVIDUAL = "individual"
CHAT_TYPE_GROUP = "group"
UNKNOWN_GROUP_NAME = "Unknown Group"


class ChatService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_chat(self, chat_id: str, session_name: str) -> Optional[Chat]:
        return (
            self.db.query(Chat)
            .filter(Chat.chat_id == chat_id, Chat.session_name == session_name)
            .first()
        )

    def upsert(
        self,
        chat_id: str,
        session_name: str,
        enriched: EnrichedMessageBase,
        message: Message,
    ) -> Chat:
        """
        Point the chat summary at ``message``; create the row on first sight.

        Last processed wins: an older out-of-order message still overwrites the
        last_message_* fields.
        """
        if enriched.is_group:
            chat_type = CHAT_TYPE_GROUP
            group_name = enriched.group_name or UNKNOWN_GROUP_NAME
            chat_name = group_name
            participant_number = None
        else:
            chat_type = CHAT_TYPE_INDIVIDUAL
            group_name = None
            chat_name = enriched.participant.display_name or strip_suffix(chat_id)
            participant_number = enriched.participant.phone

        try:
            chat = self.get_chat(chat_id, session_name)
            if chat is None:
                chat = Chat(
                    chat_id=chat_id,
                    session_name=session_name,
                    chat_type=chat_type,
                    participant_number=participant_number,
                    group_name=group_name,
                    chat_name=chat_name,
                    unread_count=0,
                    is_active=True,
                )
                self.db.add(chat)
                logger.info("Chat created: %s (%s)", chat_id, session_name)
            else:
                chat.chat_name = chat_name
                if group_name is not None:
                    chat.group_name = group_name
                if participant_number is not None:
                    chat.participant_number = participant_number
                chat.updated_at = datetime.now(timezone.utc)
            self._apply_last_message(chat, message)
            self.db.commit()
            self.db.refresh(chat)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailure(f"Failed to upsert chat {chat_id}") from e
        return chat

    def recompute_from_ledger(self, chat_id: str, session_name: str) -> Optional[Chat]:
        """
        Rebuild the summary from the newest ledger message of the chat.

        Display names already on the row are kept. Returns None when the ledger
        has nothing for this chat.
        """
        latest = MessageLedgerService(self.db).get_latest_chat_message(
            chat_id, session_name
        )
        if latest is None:
            return None
        try:
            chat = self.get_chat(chat_id, session_name)
            if chat is None:
                chat = Chat(
                    chat_id=chat_id,
                    session_name=session_name,
                    chat_type=CHAT_TYPE_GROUP if latest.is_group else CHAT_TYPE_INDIVIDUAL,
                    unread_count=0,
                    is_active=True,
                )
                if latest.is_group:
                    chat.group_name = UNKNOWN_GROUP_NAME
                    chat.chat_name = UNKNOWN_GROUP_NAME
                else:
                    chat.participant_number = latest.participant_phone
                    chat.chat_name = latest.participant_name or strip_suffix(chat_id)
                self.db.add(chat)
            self._apply_last_message(chat, latest)
            chat.updated_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(chat)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailure(f"Failed to recompute chat {chat_id}") from e
        logger.info("Chat recomputed from ledger: %s (%s)", chat_id, session_name)
        return chat

    @staticmethod
    def _apply_last_message(chat: Chat, message: Message) -> None:
        chat.last_message_id = message.message_id
        chat.last_message_text = message.body
        chat.last_message_time = message.timestamp
        chat.last_message_from = (
            message.from_number if message.is_from_me else message.participant_id
        )
