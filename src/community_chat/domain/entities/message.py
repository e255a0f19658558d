from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from community_chat.domain.value_objects.enums import MessageKind, MessageStatus

EDIT_WINDOW = timedelta(seconds=86400)


@dataclass(frozen=True, slots=True)
class FileRef:
    url: str
    name: str
    size: int
    mime_type: str
    voice_duration: int | None = None


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    community_id: str
    sender_id: str
    recipient_id: str
    conversation_id: UUID | None
    kind: MessageKind
    content: str | None
    file: FileRef | None
    created_at: datetime
    is_broadcast: bool = False
    reply_to_id: UUID | None = None
    forwarded_from_id: UUID | None = None
    reactions: dict[str, str] = field(default_factory=dict)
    read_by: dict[str, datetime] = field(default_factory=dict)
    status: MessageStatus = MessageStatus.SENT
    is_deleted: bool = False
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    is_edited: bool = False
    edited_at: datetime | None = None
    edited_by: str | None = None

    def participants(self) -> tuple[str, ...]:
        """User ids a direct message belongs to (empty recipient for broadcasts)."""
        if self.is_broadcast:
            return (self.sender_id,)
        return (self.sender_id, self.recipient_id)

    def is_editable_at(self, now: datetime) -> bool:
        return now - self.created_at <= EDIT_WINDOW

    @property
    def summary(self) -> str:
        """Short preview used for conversation listings."""
        if self.kind == MessageKind.TEXT or self.file is None:
            return self.content or ""
        return f"[{self.kind}] {self.file.name}"
