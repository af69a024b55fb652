from __future__ import annotations

import logging
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from app.adapters.base import BaseWhatsAppClient
from app.channels.envelope import EnrichedMessageBase, MediaMessage, MediaRef
from app.core.address import GROUP_SUFFIX, INDIVIDUAL_SUFFIX
from app.core.notifications import Notification, NotificationHub, NotificationKind
from app.core.resolver import ParticipantResolver
from app.exceptions import MediaDownloadFailed, StorageFailure
from app.models.message import Message
from app.schemas.whatsapp import MessageEvent, MessageStatus, QuotedMessage
from app.services.chat_service import ChatService
from app.services.media_store import MediaStore
from app.services.message_ledger_service import (
    IngestOutcome,
    IngestResult,
    MessageLedgerService,
    StatusUpdateOutcome,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[Session]]


class IngestionPipeline:
    """
    resolve -> dedup -> media -> ledger insert -> chat upsert -> publish.

    Callers must feed one session's events sequentially; the ledger's
    existence check relies on it.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        media_store: MediaStore,
        hub: NotificationHub,
        individual_suffix: str = INDIVIDUAL_SUFFIX,
        group_suffix: str = GROUP_SUFFIX,
    ) -> None:
        self._session_factory = session_factory
        self._media_store = media_store
        self._hub = hub
        self._individual_suffix = individual_suffix
        self._group_suffix = group_suffix

    def resolver_for(self, client: Optional[BaseWhatsAppClient]) -> ParticipantResolver:
        return ParticipantResolver(
            client,
            quoted_fallback=self._quoted_from_ledger,
            individual_suffix=self._individual_suffix,
            group_suffix=self._group_suffix,
        )

    async def ingest(
        self,
        session_name: str,
        event: MessageEvent,
        client: Optional[BaseWhatsAppClient] = None,
    ) -> IngestResult:
        """
        Ingest one message event.

        Raises:
            StorageFailure: the ledger write failed; nothing was recorded and
                any downloaded attachment was removed again.
        """
        enriched = await self.resolver_for(client).resolve(session_name, event)

        with self._session_factory() as db:
            if MessageLedgerService(db).exists(enriched.message_id):
                logger.info("Message already exists in ledger: %s", enriched.message_id)
                return IngestResult(IngestOutcome.DUPLICATE_SKIPPED)

        media: Optional[MediaRef] = None
        if isinstance(enriched, MediaMessage):
            media = await self._store_media(client, event, enriched)

        with self._session_factory() as db:
            try:
                result = MessageLedgerService(db).ingest(enriched, media=media)
            except StorageFailure:
                self._discard_media(media)
                raise
            if not result.inserted:
                self._discard_media(media)
                return result
            message = result.message
            try:
                ChatService(db).upsert(message.chat_id, session_name, enriched, message)
            except StorageFailure:
                logger.exception(
                    "Chat summary update failed for %s; message kept in ledger",
                    enriched.message_id,
                )
            db.refresh(message)
            self._hub.publish(self._new_message_notification(enriched, message))
        return result

    def apply_status(
        self, session_name: str, message_id: str, status: MessageStatus
    ) -> StatusUpdateOutcome:
        with self._session_factory() as db:
            ledger = MessageLedgerService(db)
            outcome = ledger.update_status(message_id, status)
            if outcome == StatusUpdateOutcome.NOT_FOUND:
                logger.info(
                    "Status %s for unknown message %s discarded", status.value, message_id
                )
                return outcome
            if outcome == StatusUpdateOutcome.KEPT_REVOKED:
                return outcome
            message = ledger.get_message(message_id)
            chat_id = message.chat_id if message else None

        self._hub.publish(
            Notification(
                kind=NotificationKind.STATUS_UPDATE,
                session_name=session_name,
                chat_id=chat_id,
                payload={"message_id": message_id, "status": status.value},
            )
        )
        return outcome

    async def _store_media(
        self,
        client: Optional[BaseWhatsAppClient],
        event: MessageEvent,
        enriched: MediaMessage,
    ) -> Optional[MediaRef]:
        """Download and persist the attachment; any failure leaves the message without media."""
        if client is None:
            return None
        try:
            try:
                raw = await client.download_media(event)
            except Exception as e:
                raise MediaDownloadFailed(str(e)) from e
            if not raw:
                raise MediaDownloadFailed("client returned no data")
            return self._media_store.store(
                raw, enriched.mimetype, enriched.kind.value, enriched.message_id
            )
        except MediaDownloadFailed as e:
            logger.warning("Media download failed for %s: %s", enriched.message_id, e)
        except OSError as e:
            logger.error("Media write failed for %s: %s", enriched.message_id, e)
        return None

    def _discard_media(self, media: Optional[MediaRef]) -> None:
        if media is None:
            return
        try:
            self._media_store.discard(media.filename)
        except OSError as e:
            logger.error("Could not remove unreferenced media %s: %s", media.filename, e)

    def _quoted_from_ledger(self, message_id: str) -> Optional[QuotedMessage]:
        with self._session_factory() as db:
            row = MessageLedgerService(db).get_message(message_id)
            if row is None:
                return None
            return QuotedMessage(
                id=row.message_id,
                body=row.body,
                from_=row.from_number if row.is_from_me else row.participant_id,
                type=row.kind,
                timestamp=row.timestamp,
            )

    @staticmethod
    def _new_message_notification(
        enriched: EnrichedMessageBase, message: Message
    ) -> Notification:
        payload = enriched.model_dump(mode="json")
        payload["chat_id"] = message.chat_id
        payload["media"] = (
            {
                "filename": message.media_filename,
                "mimetype": message.media_mimetype,
                "size": message.media_size,
            }
            if message.media_filename
            else None
        )
        return Notification(
            kind=NotificationKind.NEW_MESSAGE,
            session_name=enriched.session_name,
            chat_id=message.chat_id,
            payload=payload,
        )
