from __future__ import annotations

from dataclasses import dataclass

from community_chat.domain.entities.message import FileRef
from community_chat.domain.value_objects.enums import MessageKind


@dataclass(frozen=True, slots=True)
class MessageBody:
    """Payload of a new message: text content or a file reference."""

    kind: MessageKind = MessageKind.TEXT
    content: str | None = None
    file: FileRef | None = None

    @classmethod
    def text(cls, content: str) -> MessageBody:
        return cls(kind=MessageKind.TEXT, content=content)

    @classmethod
    def media(cls, kind: MessageKind, file: FileRef, caption: str | None = None) -> MessageBody:
        return cls(kind=kind, content=caption, file=file)
