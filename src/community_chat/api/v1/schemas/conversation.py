from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from community_chat.application.dto.conversation import ConversationView
from community_chat.domain.value_objects.enums import MessageKind


class ConversationResponse(BaseModel):
    id: UUID
    abune_id: str
    user_id: str
    other_user_id: str
    last_message_at: datetime | None
    last_message_summary: str | None
    last_message_kind: MessageKind | None
    unread_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_view(cls, view: ConversationView) -> ConversationResponse:
        c = view.conversation
        return cls(
            id=c.id,
            abune_id=c.abune_id,
            user_id=c.user_id,
            other_user_id=view.other_user_id,
            last_message_at=c.last_message_at,
            last_message_summary=c.last_message_summary,
            last_message_kind=c.last_message_kind,
            unread_count=view.unread_count,
            created_at=c.created_at,
            updated_at=c.updated_at,
        )


class ConversationReadResponse(BaseModel):
    conversation_id: UUID
    unread_count: int
