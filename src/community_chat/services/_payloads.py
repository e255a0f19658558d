"""JSON-ready event payloads built from domain objects."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from community_chat.domain.entities.message import Message


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def message_payload(message: Message) -> dict[str, Any]:
    file = message.file
    return {
        "id": str(message.id),
        "community_id": message.community_id,
        "sender_id": message.sender_id,
        "recipient_id": message.recipient_id,
        "conversation_id": str(message.conversation_id) if message.conversation_id else None,
        "kind": message.kind.value,
        "content": message.content,
        "file": (
            {
                "url": file.url,
                "name": file.name,
                "size": file.size,
                "mime_type": file.mime_type,
                "voice_duration": file.voice_duration,
            }
            if file is not None
            else None
        ),
        "created_at": message.created_at.isoformat(),
        "is_broadcast": message.is_broadcast,
        "reply_to_id": str(message.reply_to_id) if message.reply_to_id else None,
        "forwarded_from_id": str(message.forwarded_from_id) if message.forwarded_from_id else None,
        "reactions": dict(message.reactions),
        "read_by": {uid: ts.isoformat() for uid, ts in message.read_by.items()},
        "status": message.status.value,
        "is_deleted": message.is_deleted,
        "deleted_at": _ts(message.deleted_at),
        "deleted_by": message.deleted_by,
        "is_edited": message.is_edited,
        "edited_at": _ts(message.edited_at),
        "edited_by": message.edited_by,
    }


def unread_payload(counts: dict[Any, int], now: datetime) -> dict[str, Any]:
    return {
        "total_unread_count": sum(counts.values()),
        "conversation_unread_counts": {str(k): v for k, v in counts.items()},
        "timestamp": now.isoformat(),
    }
