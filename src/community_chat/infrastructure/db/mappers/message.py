from __future__ import annotations

from datetime import datetime
from typing import Any

from community_chat.domain.entities.message import FileRef, Message
from community_chat.domain.value_objects.enums import MessageKind, MessageStatus
from community_chat.infrastructure.db.models.message import MessageModel


def dump_read_by(read_by: dict[str, datetime]) -> dict[str, Any]:
    return {uid: ts.isoformat() for uid, ts in read_by.items()}


def load_read_by(raw: dict[str, Any] | None) -> dict[str, datetime]:
    return {uid: datetime.fromisoformat(ts) for uid, ts in (raw or {}).items()}


def model_to_entity(model: MessageModel) -> Message:
    file = None
    if model.file_url is not None:
        file = FileRef(
            url=model.file_url,
            name=model.file_name or "",
            size=model.file_size or 0,
            mime_type=model.file_type or "",
            voice_duration=model.voice_duration,
        )
    return Message(
        id=model.id,
        community_id=model.community_id,
        sender_id=model.sender_id,
        recipient_id=model.recipient_id,
        conversation_id=model.conversation_id,
        kind=MessageKind(model.kind),
        content=model.content,
        file=file,
        created_at=model.created_at,
        is_broadcast=model.is_broadcast,
        reply_to_id=model.reply_to_id,
        forwarded_from_id=model.forwarded_from_id,
        reactions=dict(model.reactions or {}),
        read_by=load_read_by(model.read_by),
        status=MessageStatus(model.status),
        is_deleted=model.is_deleted,
        deleted_at=model.deleted_at,
        deleted_by=model.deleted_by,
        is_edited=model.is_edited,
        edited_at=model.edited_at,
        edited_by=model.edited_by,
    )


def entity_to_model(entity: Message) -> MessageModel:
    file = entity.file
    return MessageModel(
        id=entity.id,
        community_id=entity.community_id,
        sender_id=entity.sender_id,
        recipient_id=entity.recipient_id,
        conversation_id=entity.conversation_id,
        kind=entity.kind.value,
        content=entity.content,
        file_url=file.url if file else None,
        file_name=file.name if file else None,
        file_size=file.size if file else None,
        file_type=file.mime_type if file else None,
        voice_duration=file.voice_duration if file else None,
        created_at=entity.created_at,
        is_broadcast=entity.is_broadcast,
        reply_to_id=entity.reply_to_id,
        forwarded_from_id=entity.forwarded_from_id,
        reactions=dict(entity.reactions),
        read_by=dump_read_by(entity.read_by),
        status=entity.status.value,
        is_deleted=entity.is_deleted,
        deleted_at=entity.deleted_at,
        deleted_by=entity.deleted_by,
        is_edited=entity.is_edited,
        edited_at=entity.edited_at,
        edited_by=entity.edited_by,
    )
