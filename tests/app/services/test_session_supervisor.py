"""Tests for SessionSupervisor lifecycle, event dispatch and send."""

import asyncio

import pytest

from app.core.notifications import NotificationKind
from app.exceptions import (
    ClientNotConfigured,
    InvalidRecipient,
    SendFailed,
    SessionNotFound,
    SessionNotReady,
)
from app.models.chat import Chat
from app.models.message import Message
from app.schemas.whatsapp import MessageEvent, SessionState
from app.services.session_service import SessionService
from app.services.session_supervisor import SessionSupervisor
from tests.fixtures.client_fixtures import FakeWhatsAppClient


@pytest.fixture
def supervisor(pipeline, hub, db_manager, client_factory):
    return SessionSupervisor(
        pipeline,
        hub,
        db_manager.db_session,
        client_factory=client_factory,
        startup_timeout=5,
    )


async def _started_client(client_factory, handle):
    """The session's fake client, once the supervisor has handed it callbacks."""
    client = client_factory.clients[handle.session_name]
    for _ in range(100):
        if client.callbacks is not None:
            break
        await asyncio.sleep(0.01)
    return client


async def _provision_ready(supervisor, client_factory):
    handle = await supervisor.provision("sales")
    client = await _started_client(client_factory, handle)
    await client.emit_state(SessionState.AUTHENTICATED)
    await client.emit_state(SessionState.READY)
    await supervisor.wait_idle(handle.session_name)
    return handle, client


def _drain(subscription):
    items = []
    while not subscription.queue.empty():
        items.append(subscription.queue.get_nowait())
    return items


@pytest.mark.asyncio
async def test_provision_persists_and_starts_session(supervisor, client_factory, db):
    handle = await supervisor.provision("sales")
    client = await _started_client(client_factory, handle)

    assert handle.session_name.startswith("agent_")
    assert handle.state == SessionState.INITIALIZING
    assert client.callbacks is not None
    row = SessionService(db).get_session(handle.session_name)
    assert row.agent_name == "sales"
    assert row.status == "initializing"
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_provision_without_client_factory(pipeline, hub, db_manager):
    supervisor = SessionSupervisor(pipeline, hub, db_manager.db_session)
    with pytest.raises(ClientNotConfigured):
        await supervisor.provision("sales")


@pytest.mark.asyncio
async def test_qr_then_ready_publishes_state(supervisor, client_factory, hub, db):
    subscription = hub.subscribe()
    handle = await supervisor.provision("sales")
    client = await _started_client(client_factory, handle)

    await client.emit_qr("data:image/png;base64,AAA")
    await supervisor.wait_idle(handle.session_name)
    assert supervisor.get_state(handle.session_name) == SessionState.QR_PENDING
    assert supervisor.get_qr(handle.session_name).base64_qr == "data:image/png;base64,AAA"

    await client.emit_state(SessionState.AUTHENTICATED)
    await client.emit_state(SessionState.READY)
    await supervisor.wait_idle(handle.session_name)

    assert supervisor.get_qr(handle.session_name) is None
    kinds = [(n.kind, n.payload.get("state")) for n in _drain(subscription)]
    assert (NotificationKind.QR_CODE, None) in kinds
    assert kinds[-1] == (NotificationKind.SESSION_STATUS, "ready")
    db.expire_all()
    row = SessionService(db).get_session(handle.session_name)
    assert row.status == "ready"
    assert row.last_connected_at is not None
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_invalid_state_change_is_ignored(supervisor, client_factory):
    handle = await supervisor.provision("sales")
    client = await _started_client(client_factory, handle)

    await client.emit_state(SessionState.UNINITIALIZED)
    await supervisor.wait_idle(handle.session_name)

    assert supervisor.get_state(handle.session_name) == SessionState.INITIALIZING
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_events_are_processed_in_order(supervisor, client_factory, make_event, db):
    handle, client = await _provision_ready(supervisor, client_factory)
    events = [make_event(id=f"false_5551234@c.us_{i}", body=f"msg {i}") for i in range(5)]

    for event in events:
        await client.emit_message(event)
    await client.emit_message(events[0])
    await client.emit_ack(events[2].id, 3)
    await client.emit_ack("unknown", 3)
    await client.emit_revoke(events[4].id)
    await supervisor.wait_idle(handle.session_name)

    assert db.query(Message).count() == 5
    statuses = {m.message_id: m.status for m in db.query(Message).all()}
    assert statuses[events[2].id] == "read"
    assert statuses[events[4].id] == "revoked"
    chat = db.query(Chat).one()
    assert chat.last_message_text == "msg 4"
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_unknown_ack_level_is_ignored(supervisor, client_factory, make_event, db):
    handle, client = await _provision_ready(supervisor, client_factory)
    event = make_event()
    await client.emit_message(event)
    await client.emit_ack(event.id, 42)
    await supervisor.wait_idle(handle.session_name)

    assert db.query(Message).one().status == "delivered"
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_failing_event_does_not_stop_consumer(
    supervisor, client_factory, make_event, pipeline, monkeypatch, db
):
    handle, client = await _provision_ready(supervisor, client_factory)
    original = pipeline.ingest
    calls = {"n": 0}

    async def flaky_ingest(session_name, event, client=None):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return await original(session_name, event, client)

    monkeypatch.setattr(pipeline, "ingest", flaky_ingest)
    await client.emit_message(make_event())
    await client.emit_message(make_event())
    await supervisor.wait_idle(handle.session_name)

    assert db.query(Message).count() == 1
    assert not handle.consumer.done()
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_send_requires_ready_session(supervisor, client_factory):
    handle = await supervisor.provision("sales")
    with pytest.raises(SessionNotReady):
        await supervisor.send(handle.session_name, "5551234", "hello")
    with pytest.raises(SessionNotFound):
        await supervisor.send("agent_missing", "5551234", "hello")
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_send_normalizes_recipient_and_skips_ledger(
    supervisor, client_factory, db
):
    handle, client = await _provision_ready(supervisor, client_factory)

    result = await supervisor.send(
        handle.session_name, "+1 555 123 4567", "hello", reply_to="m1"
    )

    assert result.success is True
    assert result.recipient == "15551234567@c.us"
    assert result.message_id == client.next_message_id
    assert client.sent == [("15551234567@c.us", "hello", "m1")]
    assert db.query(Message).count() == 0

    with pytest.raises(InvalidRecipient):
        await supervisor.send(handle.session_name, "not a number", "hello")
    client.fail_send = True
    with pytest.raises(SendFailed):
        await supervisor.send(handle.session_name, "5551234", "hello")
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_sent_message_is_ingested_from_callback(supervisor, client_factory, db):
    handle, client = await _provision_ready(supervisor, client_factory)
    result = await supervisor.send(handle.session_name, "5551234", "hello")

    await client.emit_message(
        MessageEvent(
            id=result.message_id,
            from_="5550000@c.us",
            to="5551234@c.us",
            body="hello",
            from_me=True,
        )
    )
    await supervisor.wait_idle(handle.session_name)

    row = db.query(Message).one()
    assert row.is_from_me is True
    assert row.status == "sent"
    assert row.chat_id == "5551234@c.us"
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_startup_timeout_disconnects(pipeline, hub, db_manager):
    clients = {}

    def slow_factory(session_name):
        client = FakeWhatsAppClient(session_name)
        client.start_delay = 1.0
        clients[session_name] = client
        return client

    supervisor = SessionSupervisor(
        pipeline,
        hub,
        db_manager.db_session,
        client_factory=slow_factory,
        startup_timeout=0.05,
    )
    handle = await supervisor.provision("sales")
    await asyncio.sleep(0.2)
    await supervisor.wait_idle(handle.session_name)

    assert handle.state == SessionState.DISCONNECTED
    assert clients[handle.session_name].closed is True
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_auth_failure_is_terminal(supervisor, client_factory):
    handle = await supervisor.provision("sales")
    client = await _started_client(client_factory, handle)

    await client.emit_state(SessionState.AUTH_FAILED, "logged out from phone")
    await client.emit_state(SessionState.READY)
    await supervisor.wait_idle(handle.session_name)

    assert handle.state == SessionState.AUTH_FAILED
    assert client.closed is True
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_load_all_restores_persisted_sessions(supervisor, client_factory, db):
    svc = SessionService(db)
    names = [svc.create_session("sales").session_name, svc.create_session("support").session_name]

    started = await supervisor.load_all()

    assert set(started) == set(names)
    assert {h.session_name for h in supervisor.list_sessions()} == set(names)
    assert await supervisor.load_all() == []
    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_stop_session_closes_and_forgets(supervisor, client_factory, db):
    handle, client = await _provision_ready(supervisor, client_factory)

    await supervisor.stop_session(handle.session_name, forget=True)

    assert client.closed is True
    assert handle.state == SessionState.DISCONNECTED
    assert supervisor.registry.get(handle.session_name) is None
    assert handle.consumer.done()
    db.expire_all()
    assert SessionService(db).get_session(handle.session_name) is None
    with pytest.raises(SessionNotFound):
        await supervisor.stop_session(handle.session_name)


@pytest.mark.asyncio
async def test_shutdown_stops_every_session(supervisor, client_factory, db):
    first = await supervisor.provision("sales")
    second = await supervisor.provision("support")

    await supervisor.shutdown()

    assert supervisor.list_sessions() == []
    for handle in (first, second):
        assert client_factory.clients[handle.session_name].closed is True
    db.expire_all()
    assert {s.status for s in SessionService(db).get_all_sessions()} == {"disconnected"}
