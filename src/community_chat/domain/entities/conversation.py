from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from community_chat.domain.value_objects.enums import MessageKind


@dataclass(frozen=True, slots=True)
class Conversation:
    """Pairwise thread between an Abune and one Regular member.

    The community id of a conversation is always its ``abune_id``.
    Each party keeps its own unread counter.
    """

    id: UUID
    abune_id: str
    user_id: str
    last_message_at: datetime | None
    last_message_summary: str | None
    last_message_kind: MessageKind | None
    abune_unread_count: int
    user_unread_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @property
    def community_id(self) -> str:
        return self.abune_id

    def has_party(self, user_id: str) -> bool:
        return user_id in (self.abune_id, self.user_id)

    def unread_count_for(self, user_id: str) -> int:
        if user_id == self.abune_id:
            return self.abune_unread_count
        if user_id == self.user_id:
            return self.user_unread_count
        return 0

    def other_party(self, user_id: str) -> str:
        return self.user_id if user_id == self.abune_id else self.abune_id
