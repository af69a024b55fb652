"""Tests for ChatService."""

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.channels.envelope import Participant, TextMessage
from app.models.chat import Chat
from app.schemas.whatsapp import MessageStatus
from app.services.chat_service import (
    CHAT_TYPE_GROUP,
    CHAT_TYPE_INDIVIDUAL,
    UNKNOWN_GROUP_NAME,
    ChatService,
)
from app.services.message_ledger_service import MessageLedgerService

ME = "5550000@c.us"
CONTACT = "5551234@c.us"
GROUP = "120363041234567890@g.us"


def _enriched(message_id, body, minute, **overrides) -> TextMessage:
    data = dict(
        message_id=message_id,
        session_name="agent_test",
        from_id=CONTACT,
        to_id=ME,
        is_from_me=False,
        participant=Participant(id=CONTACT, display_name="Alice", phone="5551234"),
        body=body,
        status=MessageStatus.DELIVERED,
        timestamp=datetime(2026, 3, 1, 12, minute, tzinfo=timezone.utc),
    )
    data.update(overrides)
    return TextMessage(**data)


def _ingest_and_upsert(db, enriched):
    message = MessageLedgerService(db).ingest(enriched).message
    return ChatService(db).upsert(message.chat_id, enriched.session_name, enriched, message)


def test_first_message_creates_chat(db: Session):
    chat = _ingest_and_upsert(db, _enriched("m1", "hi", 0))

    assert chat.chat_id == CONTACT
    assert chat.chat_type == CHAT_TYPE_INDIVIDUAL
    assert chat.chat_name == "Alice"
    assert chat.participant_number == "5551234"
    assert chat.last_message_text == "hi"
    assert chat.last_message_from == CONTACT
    assert chat.unread_count == 0
    assert chat.is_active is True


def test_nth_message_updates_single_row(db: Session):
    _ingest_and_upsert(db, _enriched("m1", "hi", 0))
    _ingest_and_upsert(db, _enriched("m2", "how are you", 1))
    chat = _ingest_and_upsert(db, _enriched("m3", "still there?", 2, is_from_me=True, from_id=ME, to_id=CONTACT))

    assert db.query(Chat).count() == 1
    assert chat.last_message_id == "m3"
    assert chat.last_message_text == "still there?"
    assert chat.last_message_from == ME


def test_out_of_order_message_still_overwrites(db: Session):
    _ingest_and_upsert(db, _enriched("m2", "newer", 5))
    chat = _ingest_and_upsert(db, _enriched("m1", "older", 1))
    assert chat.last_message_text == "older"


def test_group_chat_without_name_gets_placeholder(db: Session):
    chat = _ingest_and_upsert(
        db, _enriched("g1", "hello all", 0, to_id=GROUP, is_group=True, group_id=GROUP)
    )
    assert chat.chat_id == GROUP
    assert chat.chat_type == CHAT_TYPE_GROUP
    assert chat.group_name == UNKNOWN_GROUP_NAME
    assert chat.participant_number is None


def test_recompute_from_ledger_repairs_summary(db: Session, make_ledger_row):
    make_ledger_row(message_id="a", body="first", timestamp=datetime(2026, 3, 1, 10, 0))
    make_ledger_row(message_id="b", body="latest", timestamp=datetime(2026, 3, 1, 11, 0))

    chat = ChatService(db).recompute_from_ledger(CONTACT, "agent_test")

    assert chat.last_message_id == "b"
    assert chat.last_message_text == "latest"
    assert chat.chat_type == CHAT_TYPE_INDIVIDUAL
    assert db.query(Chat).count() == 1


def test_recompute_keeps_display_name(db: Session, make_ledger_row):
    _ingest_and_upsert(db, _enriched("m1", "hi", 0))
    make_ledger_row(message_id="m9", body="missed", timestamp=datetime(2026, 3, 1, 13, 0))

    chat = ChatService(db).recompute_from_ledger(CONTACT, "agent_test")

    assert chat.chat_name == "Alice"
    assert chat.last_message_text == "missed"


def test_recompute_without_messages(db: Session):
    assert ChatService(db).recompute_from_ledger("nobody@c.us", "agent_test") is None
