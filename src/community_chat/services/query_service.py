from __future__ import annotations

from datetime import datetime
from uuid import UUID

from community_chat.application.dto.conversation import ConversationView, UnreadSummary
from community_chat.application.exceptions import AuthorizationError, NotFoundError
from community_chat.application.policies.permissions import assert_community_member
from community_chat.application.uow import UnitOfWork
from community_chat.domain.entities.message import Message


async def _require_member(user_id: str, community_id: str, uow: UnitOfWork) -> None:
    identity = await uow.identities.get_by_id(user_id)
    assert_community_member(identity, community_id)


async def list_conversations(
    user_id: str,
    community_id: str,
    uow: UnitOfWork,
) -> list[ConversationView]:
    await _require_member(user_id, community_id, uow)
    conversations = await uow.conversations.list_for_user(user_id, community_id)
    return [
        ConversationView(
            conversation=c,
            other_user_id=c.other_party(user_id),
            unread_count=c.unread_count_for(user_id),
        )
        for c in conversations
    ]


async def get_conversation_messages(
    user_id: str,
    other_user_id: str,
    community_id: str,
    uow: UnitOfWork,
    *,
    limit: int = 50,
    before: datetime | None = None,
) -> list[Message]:
    """Messages exchanged between the two users, newest first."""
    await _require_member(user_id, community_id, uow)
    await _require_member(other_user_id, community_id, uow)

    if user_id == community_id:
        abune_id, member_id = user_id, other_user_id
    else:
        abune_id, member_id = community_id, user_id
    if other_user_id not in (abune_id, member_id):
        raise AuthorizationError("Members can only read their conversation with their Abune")

    conversation = await uow.conversations.get_by_pair(abune_id, member_id)
    if conversation is None:
        return []
    return await uow.messages.list_conversation(conversation.id, limit=limit, before=before)


async def get_community_messages(
    user_id: str,
    community_id: str,
    uow: UnitOfWork,
    *,
    limit: int = 50,
    before: datetime | None = None,
) -> list[Message]:
    """Direct messages of the community. Only its Abune sees all of them."""
    await _require_member(user_id, community_id, uow)
    if user_id != community_id:
        raise AuthorizationError("Only the community's Abune can list community messages")
    return await uow.messages.list_community(community_id, limit=limit, before=before)


async def get_broadcast_messages(
    user_id: str,
    community_id: str,
    uow: UnitOfWork,
    *,
    limit: int = 50,
    before: datetime | None = None,
) -> list[Message]:
    await _require_member(user_id, community_id, uow)
    return await uow.messages.list_broadcasts(community_id, limit=limit, before=before)


async def search_messages(
    user_id: str,
    community_id: str,
    term: str,
    uow: UnitOfWork,
    *,
    limit: int = 20,
) -> list[Message]:
    await _require_member(user_id, community_id, uow)
    term = term.strip()
    if not term:
        return []
    return await uow.messages.search(user_id, community_id, term, limit=limit)


async def get_message_read_status(
    message_id: UUID,
    user_id: str,
    uow: UnitOfWork,
) -> dict[str, datetime]:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    await _require_member(user_id, message.community_id, uow)
    if not message.is_broadcast and user_id not in message.participants():
        raise AuthorizationError("Not a party of this message")
    return dict(message.read_by)


async def get_unread_summary(
    user_id: str,
    community_id: str,
    uow: UnitOfWork,
) -> UnreadSummary:
    await _require_member(user_id, community_id, uow)
    counts = await uow.conversations.unread_counts_for_user(user_id, community_id)
    return UnreadSummary(
        total=sum(counts.values()),
        per_conversation={str(k): v for k, v in counts.items()},
    )
