"""Mutating message operations.

Each operation checks the permission oracle, persists through the unit of
work and commits before pushing any realtime event about the message.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from uuid import UUID

from community_chat.application.dto.message import MessageBody
from community_chat.application.exceptions import (
    AuthorizationError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from community_chat.application.policies.permissions import (
    assert_can_broadcast,
    assert_can_send,
    assert_community_member,
)
from community_chat.application.ports.bus import EventDispatcher
from community_chat.application.ports.clock import Clock, SystemClock
from community_chat.application.uow import UnitOfWork
from community_chat.domain.entities.message import Message
from community_chat.domain.events.realtime import RealtimeEvent
from community_chat.domain.value_objects.enums import MessageKind, MessageStatus
from community_chat.services import conversation_service
from community_chat.services._payloads import message_payload, unread_payload

logger = logging.getLogger(__name__)

_clock: Clock = SystemClock()


def validate_body(body: MessageBody) -> None:
    if body.kind == MessageKind.TEXT:
        if body.file is not None:
            raise ValidationError("Text messages cannot carry a file")
        if not body.content or not body.content.strip():
            raise ValidationError("Message content is required")
    elif body.file is None:
        raise ValidationError(f"{body.kind.value} messages require a file")

    if body.file is not None and body.file.voice_duration is not None and body.kind != MessageKind.VOICE:
        raise ValidationError("Only voice messages carry a duration")


async def send_direct(
    sender_id: str,
    recipient_id: str,
    community_id: str,
    body: MessageBody,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    reply_to_id: UUID | None = None,
    clock: Clock = _clock,
) -> Message:
    validate_body(body)
    sender = await uow.identities.get_by_id(sender_id)
    recipient = await uow.identities.get_by_id(recipient_id)
    assert_can_send(sender, recipient, community_id)

    if reply_to_id is not None:
        await _load_thread_target(reply_to_id, community_id, uow)

    message = await _persist_direct(
        sender_id, recipient_id, community_id, body, uow,
        reply_to_id=reply_to_id, clock=clock,
    )
    return await _deliver_direct(message, uow, events, clock=clock)


async def reply(
    sender_id: str,
    recipient_id: str,
    community_id: str,
    body: MessageBody,
    reply_to_id: UUID,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock = _clock,
) -> Message:
    """Send a direct message threaded under ``reply_to_id``.

    The target may be soft-deleted; it only has to live in the same community.
    """
    return await send_direct(
        sender_id, recipient_id, community_id, body, uow, events,
        reply_to_id=reply_to_id, clock=clock,
    )


async def forward(
    sender_id: str,
    recipient_id: str,
    community_id: str,
    forward_from_id: UUID,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock = _clock,
) -> Message:
    """Copy an existing message's content into a new direct message."""
    sender = await uow.identities.get_by_id(sender_id)
    recipient = await uow.identities.get_by_id(recipient_id)
    assert_can_send(sender, recipient, community_id)

    source = await _load_thread_target(forward_from_id, community_id, uow)
    body = MessageBody(kind=source.kind, content=source.content, file=source.file)

    message = await _persist_direct(
        sender_id, recipient_id, community_id, body, uow,
        forwarded_from_id=source.id, clock=clock,
    )
    return await _deliver_direct(message, uow, events, clock=clock)


async def send_broadcast(
    sender_id: str,
    community_id: str,
    body: MessageBody,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock = _clock,
) -> Message:
    validate_body(body)
    sender = await uow.identities.get_by_id(sender_id)
    assert_can_broadcast(sender, community_id)

    message = Message(
        id=uuid.uuid4(),
        community_id=community_id,
        sender_id=sender_id,
        recipient_id="",
        conversation_id=None,
        kind=body.kind,
        content=body.content,
        file=body.file,
        created_at=clock.now(),
        is_broadcast=True,
    )
    async with uow:
        message = await uow.messages_w.create(message)
        await uow.commit()
    logger.info("Broadcast %s stored for community %s", message.id, community_id)

    event = (
        RealtimeEvent.RECEIVE_BROADCAST_MEDIA_MESSAGE
        if message.kind.is_media
        else RealtimeEvent.RECEIVE_BROADCAST_MESSAGE
    )
    await events.to_community(community_id, event, message_payload(message))
    await push_community_unread_counts(community_id, uow, events, clock=clock)
    return message


async def edit_message(
    message_id: UUID,
    editor_id: str,
    new_content: str,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock = _clock,
) -> Message:
    if not new_content or not new_content.strip():
        raise ValidationError("Message content is required")

    message = await _get_live_message(message_id, uow)
    if message.sender_id != editor_id:
        raise AuthorizationError("You can only edit your own messages")
    editor = await uow.identities.get_by_id(editor_id)
    assert_community_member(editor, message.community_id)
    if message.kind != MessageKind.TEXT:
        raise ValidationError("Only text messages can be edited")

    now = clock.now()
    if not message.is_editable_at(now):
        raise ValidationError("Message is too old to edit")

    # created_at stays put so the message keeps its place in the timeline
    edited = replace(
        message,
        content=new_content,
        is_edited=True,
        edited_at=now,
        edited_by=editor_id,
    )
    async with uow:
        await uow.messages_w.update(edited)
        await uow.commit()
    logger.info("Message %s edited by %s", message_id, editor_id)

    await _notify_parties(edited, RealtimeEvent.MESSAGE_EDITED, message_payload(edited), events)
    return edited


async def delete_message(
    message_id: UUID,
    requester_id: str,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock = _clock,
) -> Message:
    """Soft-delete. Content is kept so replies and forwards stay intact."""
    message = await _get_live_message(message_id, uow)
    if message.sender_id != requester_id:
        raise AuthorizationError("You can only delete your own messages")
    requester = await uow.identities.get_by_id(requester_id)
    assert_community_member(requester, message.community_id)

    now = clock.now()
    async with uow:
        await uow.messages_w.soft_delete(message_id, requester_id, now)
        await uow.commit()
    logger.info("Message %s deleted by %s", message_id, requester_id)

    deleted = replace(message, is_deleted=True, deleted_at=now, deleted_by=requester_id)
    await _notify_parties(
        deleted,
        RealtimeEvent.MESSAGE_DELETED,
        {
            "message_id": str(message_id),
            "conversation_id": str(message.conversation_id) if message.conversation_id else None,
            "deleted_by": requester_id,
            "timestamp": now.isoformat(),
        },
        events,
    )
    return deleted


async def mark_read(
    message_id: UUID,
    user_id: str,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock = _clock,
) -> Message:
    """Record a read receipt. Marking an already read message is a no-op."""
    message = await _get_live_message(message_id, uow)
    if message.recipient_id != user_id:
        raise AuthorizationError("User can only mark messages sent to them as read")
    reader = await uow.identities.get_by_id(user_id)
    assert_community_member(reader, message.community_id)

    if user_id in message.read_by:
        return message

    now = clock.now()
    async with uow:
        recorded = await uow.messages_w.mark_read(message_id, user_id, now)
        if recorded:
            await uow.messages_w.set_status(message_id, MessageStatus.READ)
        await uow.commit()
    if not recorded:
        return message

    read = replace(
        message,
        read_by={**message.read_by, user_id: now},
        status=MessageStatus.READ,
    )
    await events.to_user(
        message.sender_id,
        RealtimeEvent.MESSAGE_READ,
        {"message_id": str(message_id), "reader_id": user_id},
    )
    return read


async def add_reaction(
    message_id: UUID,
    user_id: str,
    emoji: str,
    uow: UnitOfWork,
    events: EventDispatcher,
) -> Message:
    if not emoji or not emoji.strip():
        raise ValidationError("Emoji is required")

    message = await _get_live_message(message_id, uow)
    identity = await uow.identities.get_by_id(user_id)
    assert_community_member(identity, message.community_id)

    async with uow:
        await uow.messages_w.set_reaction(message_id, user_id, emoji)
        await uow.commit()

    updated = replace(message, reactions={**message.reactions, user_id: emoji})
    await _notify_parties(
        updated,
        RealtimeEvent.REACTION_ADDED,
        {"message_id": str(message_id), "user_id": user_id, "emoji": emoji},
        events,
    )
    return updated


async def remove_reaction(
    message_id: UUID,
    user_id: str,
    uow: UnitOfWork,
    events: EventDispatcher,
) -> Message:
    message = await _get_live_message(message_id, uow)
    identity = await uow.identities.get_by_id(user_id)
    assert_community_member(identity, message.community_id)

    async with uow:
        removed = await uow.messages_w.remove_reaction(message_id, user_id)
        await uow.commit()
    if not removed:
        return message

    reactions = {uid: e for uid, e in message.reactions.items() if uid != user_id}
    updated = replace(message, reactions=reactions)
    await _notify_parties(
        updated,
        RealtimeEvent.REACTION_REMOVED,
        {"message_id": str(message_id), "user_id": user_id},
        events,
    )
    return updated


async def send_typing(
    sender_id: str,
    recipient_id: str,
    community_id: str,
    is_typing: bool,
    uow: UnitOfWork,
    events: EventDispatcher,
) -> None:
    sender = await uow.identities.get_by_id(sender_id)
    recipient = await uow.identities.get_by_id(recipient_id)
    assert_can_send(sender, recipient, community_id)
    await events.to_user(
        recipient_id,
        RealtimeEvent.TYPING_INDICATOR,
        {"sender_id": sender_id, "is_typing": is_typing},
    )


async def push_unread_counts(
    user_id: str,
    community_id: str,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock = _clock,
) -> None:
    try:
        counts = await conversation_service.unread_counts_for_user(user_id, community_id, uow)
    except StorageError:
        logger.warning("Could not load unread counts for %s", user_id, exc_info=True)
        return
    await events.to_user(
        user_id, RealtimeEvent.UNREAD_COUNT_UPDATE, unread_payload(counts, clock.now()),
    )


async def push_community_unread_counts(
    community_id: str,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock = _clock,
) -> None:
    try:
        member_ids = await uow.identities.list_community_member_ids(community_id)
        by_user = await uow.conversations.unread_counts_for_community(community_id)
    except StorageError:
        logger.warning("Could not load community unread counts for %s", community_id, exc_info=True)
        return
    per_user = {}
    for member_id in member_ids:
        counts = by_user.get(member_id, {})
        per_user[member_id] = {
            "total_unread_count": sum(counts.values()),
            "conversation_unread_counts": {str(k): v for k, v in counts.items()},
        }
    await events.to_community(
        community_id,
        RealtimeEvent.COMMUNITY_UNREAD_COUNT_UPDATE,
        {"user_unread_counts": per_user, "timestamp": clock.now().isoformat()},
    )


async def _get_live_message(message_id: UUID, uow: UnitOfWork) -> Message:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    return message


async def _load_thread_target(target_id: UUID, community_id: str, uow: UnitOfWork) -> Message:
    target = await uow.messages.get_by_id_including_deleted(target_id)
    if target is None or target.community_id != community_id:
        raise ValidationError("Target message not found or belongs to another community")
    return target


async def _persist_direct(
    sender_id: str,
    recipient_id: str,
    community_id: str,
    body: MessageBody,
    uow: UnitOfWork,
    *,
    reply_to_id: UUID | None = None,
    forwarded_from_id: UUID | None = None,
    clock: Clock,
) -> Message:
    user_id = recipient_id if sender_id == community_id else sender_id
    async with uow:
        # conversation and message commit together; a failed send leaves neither
        conversation = await conversation_service.get_or_create(
            community_id, user_id, uow, clock=clock, commit=False,
        )
        message = await uow.messages_w.create(_new_direct_message(
            sender_id, recipient_id, community_id, conversation.id, body,
            reply_to_id=reply_to_id, forwarded_from_id=forwarded_from_id, clock=clock,
        ))
        await conversation_service.apply_new_message(message, uow, clock=clock)
        await uow.commit()
    logger.info("Message %s stored in conversation %s", message.id, conversation.id)
    return message


def _new_direct_message(
    sender_id: str,
    recipient_id: str,
    community_id: str,
    conversation_id: UUID,
    body: MessageBody,
    *,
    reply_to_id: UUID | None,
    forwarded_from_id: UUID | None,
    clock: Clock,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        community_id=community_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        conversation_id=conversation_id,
        kind=body.kind,
        content=body.content,
        file=body.file,
        created_at=clock.now(),
        reply_to_id=reply_to_id,
        forwarded_from_id=forwarded_from_id,
    )


async def _deliver_direct(
    message: Message,
    uow: UnitOfWork,
    events: EventDispatcher,
    *,
    clock: Clock,
) -> Message:
    event = RealtimeEvent.RECEIVE_MEDIA_MESSAGE if message.kind.is_media else RealtimeEvent.RECEIVE_MESSAGE
    delivered = await events.to_user(message.recipient_id, event, message_payload(message))
    await events.to_user(
        message.sender_id,
        RealtimeEvent.MESSAGE_DELIVERED,
        {"message_id": str(message.id), "recipient_id": message.recipient_id},
    )

    if delivered:
        try:
            async with uow:
                await uow.messages_w.set_status(message.id, MessageStatus.DELIVERED)
                await uow.commit()
            message = replace(message, status=MessageStatus.DELIVERED)
        except StorageError:
            logger.warning("Could not mark message %s delivered", message.id, exc_info=True)

    await push_unread_counts(message.recipient_id, message.community_id, uow, events, clock=clock)
    return message


async def _notify_parties(
    message: Message,
    event: RealtimeEvent,
    data: dict,
    events: EventDispatcher,
) -> None:
    if message.is_broadcast:
        await events.to_community(message.community_id, event, data)
        return
    for user_id in message.participants():
        await events.to_user(user_id, event, data)
