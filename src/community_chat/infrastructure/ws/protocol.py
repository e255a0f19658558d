"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from community_chat.application.dto.message import MessageBody
from community_chat.domain.entities.message import FileRef
from community_chat.domain.value_objects.enums import MessageKind


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # send_message | reply | mark_read | typing | ping | ...
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # ReceiveMessage | UserOnline | ErrorMessage | Pong | ...
    data: dict[str, Any] = {}


class FileIn(BaseModel):
    url: str = Field(min_length=1)
    name: str = Field(min_length=1)
    size: int = Field(ge=0)
    mime_type: str
    voice_duration: int | None = Field(default=None, ge=0)

    def to_ref(self) -> FileRef:
        return FileRef(
            url=self.url,
            name=self.name,
            size=self.size,
            mime_type=self.mime_type,
            voice_duration=self.voice_duration,
        )


class BodyIn(BaseModel):
    """Message body shared by WS commands and REST requests."""

    kind: MessageKind = MessageKind.TEXT
    content: str | None = None
    file: FileIn | None = None

    def to_body(self) -> MessageBody:
        return MessageBody(
            kind=self.kind,
            content=self.content,
            file=self.file.to_ref() if self.file else None,
        )


class SendMessageData(BodyIn):
    recipient_id: str


class BroadcastData(BodyIn):
    pass


class ReplyData(BodyIn):
    recipient_id: str
    reply_to_id: UUID


class ForwardData(BaseModel):
    recipient_id: str
    forward_from_id: UUID


class EditData(BaseModel):
    message_id: UUID
    content: str


class MessageRefData(BaseModel):
    message_id: UUID


class ReactionData(BaseModel):
    message_id: UUID
    emoji: str = Field(min_length=1)


class ConversationRefData(BaseModel):
    conversation_id: UUID


class TypingData(BaseModel):
    recipient_id: str
    is_typing: bool = True
