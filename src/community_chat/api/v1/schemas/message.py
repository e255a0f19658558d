from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from community_chat.domain.value_objects.enums import MessageKind, MessageStatus
from community_chat.infrastructure.ws.protocol import (
    BroadcastData,
    ForwardData,
    ReplyData,
    SendMessageData,
)


class SendMessageRequest(SendMessageData):
    pass


class BroadcastRequest(BroadcastData):
    pass


class ReplyRequest(ReplyData):
    pass


class ForwardRequest(ForwardData):
    pass


class EditMessageRequest(BaseModel):
    content: str = Field(min_length=1)


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1)


class FileResponse(BaseModel):
    url: str
    name: str
    size: int
    mime_type: str
    voice_duration: int | None = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: UUID
    community_id: str
    sender_id: str
    recipient_id: str
    conversation_id: UUID | None
    kind: MessageKind
    content: str | None
    file: FileResponse | None
    created_at: datetime
    is_broadcast: bool
    reply_to_id: UUID | None
    forwarded_from_id: UUID | None
    reactions: dict[str, str]
    read_by: dict[str, datetime]
    status: MessageStatus
    is_edited: bool
    edited_at: datetime | None

    model_config = {"from_attributes": True}


class ReadStatusResponse(BaseModel):
    message_id: UUID
    read_by: dict[str, datetime]
