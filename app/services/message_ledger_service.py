"""
Message ledger: deduplicated, append-only log of observed messages.

Insert is a no-op on a known message_id; status is the only column updated
afterwards. Nothing is ever deleted (revocation is a status).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.channels.envelope import EnrichedMessageBase, MediaRef
from app.core.address import derive_chat_id
from app.exceptions import MessageNotFound, StorageFailure
from app.models.message import Message
from app.schemas.whatsapp import MessageStatus

logger = logging.getLogger(__name__)


class IngestOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE_SKIPPED = "duplicate_skipped"


class StatusUpdateOutcome(str, Enum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"
    KEPT_REVOKED = "kept_revoked"


REVOKED_STATUSES = (MessageStatus.REVOKED.value, MessageStatus.REVOKED_FOR_ME.value)


@dataclass
class IngestResult:
    outcome: IngestOutcome
    message: Optional[Message] = None

    @property
    def inserted(self) -> bool:
        return self.outcome == IngestOutcome.INSERTED


class MessageLedgerService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def exists(self, message_id: str) -> bool:
        return (
            self.db.query(Message.id).filter(Message.message_id == message_id).first()
            is not None
        )

    def get_message(self, message_id: str) -> Optional[Message]:
        return self.db.query(Message).filter(Message.message_id == message_id).first()

    def require_message(self, message_id: str) -> Message:
        message = self.get_message(message_id)
        if message is None:
            raise MessageNotFound(f"Message not found: {message_id}")
        return message

    def ingest(
        self,
        enriched: EnrichedMessageBase,
        media: Optional[MediaRef] = None,
    ) -> IngestResult:
        """
        Insert the message unless its id is already in the ledger.

        The existence check covers the sequential per-session path; the unique
        constraint on message_id turns a lost race into the same
        DUPLICATE_SKIPPED outcome.

        Raises:
            StorageFailure: any other persistence error.
        """
        try:
            if self.exists(enriched.message_id):
                logger.info("Message already exists in ledger: %s", enriched.message_id)
                return IngestResult(IngestOutcome.DUPLICATE_SKIPPED)

            message = self._build_row(enriched, media)
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
        except IntegrityError:
            self.db.rollback()
            logger.info(
                "Message already exists in ledger (constraint): %s", enriched.message_id
            )
            return IngestResult(IngestOutcome.DUPLICATE_SKIPPED)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailure(
                f"Failed to ingest message {enriched.message_id}"
            ) from e

        logger.info(
            "Message saved: %s%s",
            message.message_id,
            " (with media)" if media else "",
        )
        return IngestResult(IngestOutcome.INSERTED, message)

    def update_status(
        self, message_id: str, status: MessageStatus
    ) -> StatusUpdateOutcome:
        """
        Set the status of one message.

        A revoked message keeps its revocation status when a later ack arrives;
        that case reports KEPT_REVOKED.
        """
        query = self.db.query(Message).filter(Message.message_id == message_id)
        if status.value not in REVOKED_STATUSES:
            query = query.filter(Message.status.notin_(REVOKED_STATUSES))
        try:
            updated = query.update(
                {Message.status: status.value}, synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailure(f"Failed to update status of {message_id}") from e
        if not updated:
            if self.exists(message_id):
                logger.info(
                    "Message %s is revoked, ignoring status %s", message_id, status.value
                )
                return StatusUpdateOutcome.KEPT_REVOKED
            return StatusUpdateOutcome.NOT_FOUND
        logger.info("Message %s status updated to: %s", message_id, status.value)
        return StatusUpdateOutcome.UPDATED

    def get_chat_messages(
        self,
        chat_id: str,
        session_name: str,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Message]:
        """Messages of one chat, newest first."""
        return (
            self.db.query(Message)
            .filter(Message.chat_id == chat_id, Message.session_name == session_name)
            .order_by(Message.timestamp.desc(), Message.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def get_latest_chat_message(
        self, chat_id: str, session_name: str
    ) -> Optional[Message]:
        messages = self.get_chat_messages(chat_id, session_name, limit=1)
        return messages[0] if messages else None

    def get_message_counts(self, chat_id: str, session_name: str) -> dict[str, int]:
        """Total / sent / received for a chat, computed from the ledger."""
        total, sent = (
            self.db.query(
                func.count(Message.id),
                func.coalesce(func.sum(case((Message.is_from_me.is_(True), 1), else_=0)), 0),
            )
            .filter(Message.chat_id == chat_id, Message.session_name == session_name)
            .one()
        )
        return {"total": total, "sent": sent, "received": total - sent}

    def _build_row(
        self, enriched: EnrichedMessageBase, media: Optional[MediaRef]
    ) -> Message:
        chat_id = derive_chat_id(
            enriched.from_id,
            enriched.to_id,
            enriched.is_from_me,
            enriched.group_id if enriched.is_group else None,
        )
        reply = enriched.reply
        return Message(
            message_id=enriched.message_id,
            session_name=enriched.session_name,
            from_number=enriched.from_id,
            to_number=enriched.to_id,
            body=enriched.body,
            kind=enriched.kind.value,
            is_group=enriched.is_group,
            group_id=enriched.group_id if enriched.is_group else None,
            is_from_me=enriched.is_from_me,
            status=enriched.status.value,
            chat_id=chat_id,
            participant_id=enriched.participant.id,
            participant_name=enriched.participant.display_name,
            participant_phone=enriched.participant.phone,
            pushname=enriched.participant.pushname,
            is_reply=reply is not None,
            quoted_message_id=reply.quoted_message_id if reply else None,
            quoted_message_body=reply.body if reply else None,
            quoted_message_from=reply.sender if reply else None,
            quoted_message_kind=reply.kind.value if reply and reply.kind else None,
            quoted_message_timestamp=reply.timestamp if reply else None,
            media_filename=media.filename if media else None,
            media_mimetype=media.mimetype if media else None,
            media_size=media.size if media else None,
            timestamp=enriched.timestamp,
        )
