"""
Participant resolver: raw client event -> enriched message descriptor.

Every lookup here is best effort. A failed contact, group or quoted-message
lookup degrades to fallback values; resolution itself never raises.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from app.adapters.base import BaseWhatsAppClient
from app.channels.envelope import (
    EnrichedMessage,
    GroupEvent,
    MediaMessage,
    Participant,
    ReplySnapshot,
    TextMessage,
)
from app.core.address import (
    GROUP_SUFFIX,
    INDIVIDUAL_SUFFIX,
    phone_from_address,
    resolve_group_id,
    strip_suffix,
)
from app.exceptions import ContactLookupFailed, QuotedMessageLookupFailed
from app.schemas.whatsapp import (
    MEDIA_KINDS,
    ContactInfo,
    MessageEvent,
    MessageKind,
    MessageStatus,
    QuotedMessage,
    kind_from_raw,
    status_from_ack,
)

logger = logging.getLogger(__name__)

QuotedLookup = Callable[[str], Optional[QuotedMessage]]


class ParticipantResolver:
    def __init__(
        self,
        client: Optional[BaseWhatsAppClient],
        quoted_fallback: Optional[QuotedLookup] = None,
        individual_suffix: str = INDIVIDUAL_SUFFIX,
        group_suffix: str = GROUP_SUFFIX,
    ) -> None:
        self._client = client
        self._quoted_fallback = quoted_fallback
        self._individual_suffix = individual_suffix
        self._group_suffix = group_suffix

    async def resolve(self, session_name: str, event: MessageEvent) -> EnrichedMessage:
        group_id = resolve_group_id(
            event.from_, event.to, event.is_group_msg, self._group_suffix
        )
        is_group = group_id is not None
        participant = await self.resolve_participant(event, group_id)
        group_name = await self._lookup_group_name(group_id) if is_group else None
        reply = await self.resolve_reply(event) if event.is_reply else None

        kind = event.kind
        if kind != MessageKind.GROUP_EVENT and event.is_media and kind not in MEDIA_KINDS:
            kind = MessageKind.DOCUMENT
        fields = dict(
            message_id=event.id,
            session_name=session_name,
            from_id=event.from_,
            to_id=event.to,
            is_from_me=event.from_me,
            is_group=is_group,
            group_id=group_id,
            group_name=group_name,
            participant=participant,
            body=self._body_for(event, kind),
            status=self._initial_status(event),
            reply=reply,
            timestamp=event.timestamp or datetime.now(timezone.utc),
        )
        if kind == MessageKind.GROUP_EVENT:
            return GroupEvent(**fields)
        if event.is_media:
            return MediaMessage(
                kind=kind,
                mimetype=event.mimetype,
                **fields,
            )
        return TextMessage(**fields)

    async def resolve_participant(
        self, event: MessageEvent, group_id: Optional[str] = None
    ) -> Participant:
        participant_id = event.to if event.from_me else event.from_
        if group_id and event.author and event.author != group_id:
            participant_id = event.author

        contact: Optional[ContactInfo] = None
        try:
            contact = await self._fetch_contact(participant_id)
        except ContactLookupFailed as e:
            logger.warning("%s; falling back to raw id", e)

        pushname = (contact.pushname if contact else None) or (
            None if event.from_me else event.notify_name
        )
        display_name = (
            (contact.name if contact else None)
            or pushname
            or strip_suffix(participant_id)
        )
        phone = phone_from_address(participant_id, self._individual_suffix)
        if phone is None and contact and contact.number:
            phone = contact.number
        return Participant(
            id=participant_id,
            display_name=display_name,
            phone=phone,
            pushname=pushname,
        )

    async def resolve_reply(self, event: MessageEvent) -> ReplySnapshot:
        """Snapshot of the quoted message; reply-ness survives a failed lookup."""
        quoted_id = event.quoted_msg_id
        quoted: Optional[QuotedMessage] = None
        try:
            quoted = await self._fetch_quoted(quoted_id)
        except QuotedMessageLookupFailed as e:
            logger.warning("%s", e)
        if quoted is None and quoted_id and self._quoted_fallback is not None:
            try:
                quoted = self._quoted_fallback(quoted_id)
            except Exception as e:
                logger.warning("Ledger lookup for quoted message %s failed: %s", quoted_id, e)

        if quoted is None:
            return ReplySnapshot(quoted_message_id=quoted_id)
        return ReplySnapshot(
            quoted_message_id=quoted_id or quoted.id,
            body=quoted.body,
            sender=quoted.from_,
            kind=kind_from_raw(quoted.type) if quoted.type else None,
            timestamp=quoted.timestamp,
        )

    async def _fetch_contact(self, contact_id: str) -> Optional[ContactInfo]:
        if self._client is None:
            return None
        try:
            return await self._client.get_contact(contact_id)
        except Exception as e:
            raise ContactLookupFailed(f"Contact lookup failed for {contact_id}: {e}") from e

    async def _fetch_quoted(self, quoted_id: Optional[str]) -> Optional[QuotedMessage]:
        if self._client is None or not quoted_id:
            return None
        try:
            return await self._client.get_message_by_id(quoted_id)
        except Exception as e:
            raise QuotedMessageLookupFailed(
                f"Quoted message lookup failed for {quoted_id}: {e}"
            ) from e

    async def _lookup_group_name(self, group_id: str) -> Optional[str]:
        if self._client is None:
            return None
        try:
            return await self._client.get_group_name(group_id)
        except Exception as e:
            logger.warning("Group name lookup failed for %s: %s", group_id, e)
            return None

    @staticmethod
    def _body_for(event: MessageEvent, kind: MessageKind) -> Optional[str]:
        text = event.body or event.caption
        if text:
            return text
        if event.is_media:
            return f"[{kind.value.upper()}]"
        return None

    @staticmethod
    def _initial_status(event: MessageEvent) -> MessageStatus:
        status = status_from_ack(event.ack)
        if status is not None:
            return status
        return MessageStatus.SENT if event.from_me else MessageStatus.DELIVERED
