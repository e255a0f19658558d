from __future__ import annotations

import asyncio
import uuid

import pytest

from community_chat.application.dto.message import MessageBody
from community_chat.application.exceptions import AuthorizationError, NotFoundError
from community_chat.services import conversation_service, message_service
from community_chat.services._locks import KeyedLock
from tests.conftest import make_conversation, make_message


@pytest.mark.asyncio
async def test_get_or_create_creates_once(uow, clock):
    first = await conversation_service.get_or_create("A1", "U1", uow, clock=clock)
    second = await conversation_service.get_or_create("A1", "U1", uow, clock=clock)

    assert first.id == second.id
    assert first.abune_unread_count == 0
    assert first.user_unread_count == 0
    assert uow.conversations_w.created == 1
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_concurrent_get_or_create_same_pair_yields_one_conversation(uow, clock):
    locks = KeyedLock()

    results = await asyncio.gather(*(
        conversation_service.get_or_create("A1", "U1", uow, clock=clock, locks=locks)
        for _ in range(5)
    ))

    assert len({c.id for c in results}) == 1
    assert uow.conversations_w.created == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lost_create_race_rereads_winner(uow, clock):
    # independent lock tables stand in for two service instances
    results = await asyncio.gather(
        conversation_service.get_or_create("A1", "U1", uow, clock=clock, locks=KeyedLock()),
        conversation_service.get_or_create("A1", "U1", uow, clock=clock, locks=KeyedLock()),
    )

    assert results[0].id == results[1].id
    assert uow.conversations_w.created == 1
    # only the losing insert is undone; the surrounding transaction survives
    assert uow.savepoint_rollbacks == 1
    assert uow.rollbacks == 0


@pytest.mark.asyncio
async def test_deferred_create_is_undone_with_the_callers_transaction(uow, clock):
    with pytest.raises(RuntimeError):
        async with uow:
            conv = await conversation_service.get_or_create(
                "A1", "U1", uow, clock=clock, commit=False,
            )
            assert await uow.conversations.get_by_id(conv.id) is not None
            raise RuntimeError("message insert failed")

    assert uow.commits == 0
    assert uow.conversations._store == {}


@pytest.mark.asyncio
async def test_deferred_create_lost_race_rereads_winner_in_same_transaction(uow, clock):
    async with uow:
        results = await asyncio.gather(
            conversation_service.get_or_create(
                "A1", "U1", uow, clock=clock, locks=KeyedLock(), commit=False,
            ),
            conversation_service.get_or_create(
                "A1", "U1", uow, clock=clock, locks=KeyedLock(), commit=False,
            ),
        )
        await uow.commit()

    assert results[0].id == results[1].id
    assert uow.savepoint_rollbacks == 1
    assert uow.rollbacks == 0
    assert len(uow.conversations._store) == 1


@pytest.mark.asyncio
async def test_different_pairs_get_different_conversations(uow, clock):
    c1, c2 = await asyncio.gather(
        conversation_service.get_or_create("A1", "U1", uow, clock=clock),
        conversation_service.get_or_create("A1", "U2", uow, clock=clock),
    )
    assert c1.id != c2.id


@pytest.mark.asyncio
async def test_member_message_increments_only_abune_counter(uow, events, clock):
    msg = await message_service.send_direct(
        "U1", "A1", "A1", MessageBody.text("hi"), uow, events, clock=clock,
    )

    conv = await uow.conversations.get_by_id(msg.conversation_id)
    assert conv.abune_unread_count == 1
    assert conv.user_unread_count == 0
    assert conv.last_message_summary == "hi"
    assert conv.last_message_at == clock.now()

    await conversation_service.mark_conversation_read(conv.id, "A1", uow)

    conv = await uow.conversations.get_by_id(conv.id)
    assert conv.abune_unread_count == 0


@pytest.mark.asyncio
async def test_abune_message_increments_member_counter(uow, events, clock):
    msg = await message_service.send_direct(
        "A1", "U2", "A1", MessageBody.text("welcome"), uow, events, clock=clock,
    )
    await message_service.send_direct(
        "A1", "U2", "A1", MessageBody.text("again"), uow, events, clock=clock,
    )

    conv = await uow.conversations.get_by_id(msg.conversation_id)
    assert conv.abune_id == "A1"
    assert conv.user_id == "U2"
    assert conv.user_unread_count == 2
    assert conv.abune_unread_count == 0


@pytest.mark.asyncio
async def test_both_directions_share_one_conversation(uow, events, clock):
    a = await message_service.send_direct(
        "U1", "A1", "A1", MessageBody.text("q"), uow, events, clock=clock,
    )
    clock.advance(seconds=5)
    b = await message_service.send_direct(
        "A1", "U1", "A1", MessageBody.text("a"), uow, events, clock=clock,
    )
    assert a.conversation_id == b.conversation_id


@pytest.mark.asyncio
async def test_broadcast_leaves_conversations_untouched(uow, clock):
    broadcast = make_message(sender_id="A1", is_broadcast=True)
    result = await conversation_service.apply_new_message(broadcast, uow, clock=clock)

    assert result is None
    assert uow.conversations._store == {}


@pytest.mark.asyncio
async def test_mark_conversation_read_is_idempotent(uow):
    conv = make_conversation("A1", "U1", user_unread=3)
    uow.conversations._store[conv.id] = conv

    first = await conversation_service.mark_conversation_read(conv.id, "U1", uow)
    commits = uow.commits
    second = await conversation_service.mark_conversation_read(conv.id, "U1", uow)

    assert first.user_unread_count == 0
    assert second.user_unread_count == 0
    assert uow.commits == commits


@pytest.mark.asyncio
async def test_mark_conversation_read_keeps_other_party_counter(uow):
    conv = make_conversation("A1", "U1", abune_unread=2, user_unread=4)
    uow.conversations._store[conv.id] = conv

    updated = await conversation_service.mark_conversation_read(conv.id, "U1", uow)

    assert updated.user_unread_count == 0
    assert updated.abune_unread_count == 2


@pytest.mark.asyncio
async def test_mark_conversation_read_requires_party(uow):
    conv = make_conversation("A1", "U1", user_unread=1)
    uow.conversations._store[conv.id] = conv

    with pytest.raises(AuthorizationError):
        await conversation_service.mark_conversation_read(conv.id, "U2", uow)


@pytest.mark.asyncio
async def test_mark_conversation_read_unknown_conversation(uow):
    with pytest.raises(NotFoundError):
        await conversation_service.mark_conversation_read(uuid.uuid4(), "U1", uow)
