from __future__ import annotations

import logging
import uuid
from uuid import UUID

from community_chat.application.exceptions import ConflictError, NotFoundError, StorageError
from community_chat.application.policies.permissions import assert_conversation_party
from community_chat.application.ports.clock import Clock, SystemClock
from community_chat.application.uow import UnitOfWork
from community_chat.domain.entities.conversation import Conversation
from community_chat.domain.entities.message import Message
from community_chat.services._locks import KeyedLock

logger = logging.getLogger(__name__)

_clock: Clock = SystemClock()
_pair_locks = KeyedLock()


def conversation_pair(message: Message) -> tuple[str, str]:
    """Return the (abune_id, user_id) key a direct message belongs to.

    The community id is the Abune's id, so whichever side is not the
    community owner is the Regular member.
    """
    if message.sender_id == message.community_id:
        return message.community_id, message.recipient_id
    return message.community_id, message.sender_id


async def get_or_create(
    abune_id: str,
    user_id: str,
    uow: UnitOfWork,
    *,
    clock: Clock = _clock,
    locks: KeyedLock = _pair_locks,
    commit: bool = True,
) -> Conversation:
    """Return the single conversation for the pair, creating it if needed.

    Creation is serialized per pair inside this process; a race lost to
    another process surfaces as ConflictError from the store. The insert
    runs in a savepoint, so losing the race only undoes the insert and the
    winner's row is re-read inside the same transaction.

    With ``commit=False`` the new row is only flushed and the caller's
    transaction decides whether it survives.
    """
    async with locks.hold((abune_id, user_id)):
        existing = await uow.conversations.get_by_pair(abune_id, user_id)
        if existing is not None:
            return existing

        now = clock.now()
        conversation = Conversation(
            id=uuid.uuid4(),
            abune_id=abune_id,
            user_id=user_id,
            last_message_at=None,
            last_message_summary=None,
            last_message_kind=None,
            abune_unread_count=0,
            user_unread_count=0,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        try:
            async with uow.savepoint():
                conversation = await uow.conversations_w.create(conversation)
        except ConflictError:
            existing = await uow.conversations.get_by_pair(abune_id, user_id)
            if existing is None:
                raise StorageError("Conversation vanished after a create conflict") from None
            logger.debug("Conversation %s/%s created concurrently", abune_id, user_id)
            return existing
        if commit:
            await uow.commit()

    logger.info("Created conversation %s for %s/%s", conversation.id, abune_id, user_id)
    return conversation


async def apply_new_message(
    message: Message,
    uow: UnitOfWork,
    *,
    clock: Clock = _clock,
) -> Conversation | None:
    """Roll the conversation summary forward for a freshly stored message.

    Broadcasts are community-wide and leave conversations untouched. Does
    not commit: the caller commits together with the message itself.
    """
    if message.is_broadcast:
        return None

    if message.conversation_id is not None:
        conversation = await uow.conversations.get_by_id(message.conversation_id)
    else:
        conversation = None
    if conversation is None:
        abune_id, user_id = conversation_pair(message)
        conversation = await get_or_create(abune_id, user_id, uow, clock=clock, commit=False)

    unread_for = message.recipient_id if message.recipient_id != message.sender_id else None
    await uow.conversations_w.apply_message(
        conversation.id,
        ts=message.created_at,
        summary=message.summary,
        kind=message.kind,
        unread_for=unread_for,
    )
    return conversation


async def mark_conversation_read(
    conversation_id: UUID,
    user_id: str,
    uow: UnitOfWork,
) -> Conversation:
    """Reset ``user_id``'s unread counter. Message read receipts are left alone."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    assert_conversation_party(conversation, user_id)

    if conversation.unread_count_for(user_id) == 0:
        return conversation

    await uow.conversations_w.reset_unread(conversation_id, user_id)
    await uow.commit()
    return await uow.conversations.get_by_id(conversation_id)  # type: ignore[return-value]


async def unread_counts_for_user(
    user_id: str,
    community_id: str,
    uow: UnitOfWork,
) -> dict[UUID, int]:
    return await uow.conversations.unread_counts_for_user(user_id, community_id)
