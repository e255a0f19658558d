from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from community_chat.application.exceptions import AuthorizationError
from community_chat.domain.events.realtime import RealtimeEvent
from community_chat.services.presence import PresenceRegistry


class RecordingSink:
    def __init__(self) -> None:
        self.received: list[tuple[str, dict[str, Any]]] = []

    async def send(self, event: str, data: dict[str, Any]) -> None:
        self.received.append((event, data))

    def events(self) -> list[str]:
        return [event for event, _ in self.received]


class BrokenSink:
    async def send(self, event: str, data: dict[str, Any]) -> None:
        raise ConnectionResetError("peer gone")


@pytest.fixture
def registry(clock) -> PresenceRegistry:
    return PresenceRegistry(clock=clock)


@pytest.mark.asyncio
async def test_connect_marks_online_and_notifies_community(registry, clock):
    watcher = RecordingSink()
    await registry.connect("A1", "A1", "c-a1", watcher)

    entry = await registry.connect("U1", "A1", "c-u1", RecordingSink())

    assert entry.is_online is True
    assert entry.last_seen_at == clock.now()
    assert registry.is_online("U1")
    assert registry.online_users("A1") == ["A1", "U1"]
    assert (RealtimeEvent.USER_ONLINE, {"user_id": "U1"}) in watcher.received


@pytest.mark.asyncio
async def test_anonymous_connection_is_rejected(registry):
    with pytest.raises(AuthorizationError):
        await registry.connect("", "A1", "c-1", RecordingSink())
    with pytest.raises(AuthorizationError):
        await registry.connect("U1", "", "c-1", RecordingSink())

    assert registry.online_users("A1") == []


@pytest.mark.asyncio
async def test_second_connection_replaces_first(registry):
    old, new = RecordingSink(), RecordingSink()
    await registry.connect("U1", "A1", "c-old", old)
    await registry.connect("U1", "A1", "c-new", new)

    delivered = await registry.to_user("U1", RealtimeEvent.RECEIVE_MESSAGE, {"id": "m1"})

    assert delivered is True
    assert registry.get("U1").connection_id == "c-new"
    assert RealtimeEvent.RECEIVE_MESSAGE in new.events()
    assert RealtimeEvent.RECEIVE_MESSAGE not in old.events()


@pytest.mark.asyncio
async def test_stale_disconnect_is_a_no_op(registry):
    await registry.connect("U1", "A1", "c-old", RecordingSink())
    await registry.connect("U1", "A1", "c-new", RecordingSink())

    result = await registry.disconnect("c-old")

    assert result is None
    assert registry.is_online("U1")
    assert registry.online_users("A1") == ["U1"]


@pytest.mark.asyncio
async def test_disconnect_marks_offline_and_notifies(registry, clock):
    watcher = RecordingSink()
    await registry.connect("A1", "A1", "c-a1", watcher)
    await registry.connect("U1", "A1", "c-u1", RecordingSink())
    clock.advance(minutes=5)

    entry = await registry.disconnect("c-u1")

    assert entry is not None
    assert entry.is_online is False
    assert registry.last_seen("U1") == clock.now()
    assert registry.online_users("A1") == ["A1"]
    assert (RealtimeEvent.USER_OFFLINE, {"user_id": "U1"}) in watcher.received
    assert await registry.to_user("U1", RealtimeEvent.RECEIVE_MESSAGE, {}) is False


@pytest.mark.asyncio
async def test_unknown_connection_disconnect_is_ignored(registry):
    assert await registry.disconnect("nope") is None


@pytest.mark.asyncio
async def test_online_users_are_scoped_per_community(registry):
    await registry.connect("U1", "A1", "c-1", RecordingSink())
    await registry.connect("U3", "A2", "c-3", RecordingSink())

    assert registry.online_users("A1") == ["U1"]
    assert registry.online_users("A2") == ["U3"]


@pytest.mark.asyncio
async def test_reconnect_into_other_community_moves_user(registry):
    await registry.connect("U1", "A1", "c-1", RecordingSink())
    await registry.connect("U1", "A2", "c-2", RecordingSink())

    assert registry.online_users("A1") == []
    assert registry.online_users("A2") == ["U1"]


@pytest.mark.asyncio
async def test_failing_sink_is_logged_not_raised(registry, caplog):
    good = RecordingSink()
    await registry.connect("U1", "A1", "c-good", good)
    await registry.connect("U2", "A1", "c-bad", BrokenSink())

    with caplog.at_level(logging.WARNING, logger="community_chat.services.presence"):
        reached = await registry.to_community("A1", RealtimeEvent.RECEIVE_BROADCAST_MESSAGE, {})

    assert reached == 1
    assert RealtimeEvent.RECEIVE_BROADCAST_MESSAGE in good.events()
    assert any("c-bad" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_touch_refreshes_last_seen(registry, clock):
    await registry.connect("U1", "A1", "c-1", RecordingSink())
    clock.advance(seconds=42)

    registry.touch("U1")

    assert registry.last_seen("U1") == clock.now()


@pytest.mark.asyncio
async def test_concurrent_connects_leave_one_entry_per_user(registry):
    await asyncio.gather(*(
        registry.connect("U1", "A1", f"c-{i}", RecordingSink()) for i in range(10)
    ))

    assert registry.online_users("A1") == ["U1"]
    live = registry.get("U1").connection_id
    for i in range(10):
        if f"c-{i}" != live:
            assert await registry.disconnect(f"c-{i}") is None
    assert registry.is_online("U1")


@pytest.mark.asyncio
async def test_transitions_go_through_announcer(clock, events):
    registry = PresenceRegistry(clock=clock, announcer=events)
    local = RecordingSink()
    await registry.connect("A1", "A1", "c-a1", local)

    await registry.connect("U1", "A1", "c-u1", RecordingSink())
    await registry.disconnect("c-u1")

    assert events.sent == [
        ("community", "A1", RealtimeEvent.USER_ONLINE, {"user_id": "A1"}),
        ("community", "A1", RealtimeEvent.USER_ONLINE, {"user_id": "U1"}),
        ("community", "A1", RealtimeEvent.USER_OFFLINE, {"user_id": "U1"}),
    ]
    # the relay delivers back to this instance, so nothing is pushed twice
    assert local.received == []
