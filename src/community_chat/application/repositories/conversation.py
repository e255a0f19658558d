from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from community_chat.domain.entities.conversation import Conversation
from community_chat.domain.value_objects.enums import MessageKind


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_by_pair(self, abune_id: str, user_id: str) -> Conversation | None: ...

    async def list_for_user(self, user_id: str, community_id: str) -> list[Conversation]:
        """Conversations of ``user_id`` in ``community_id``, most recent first."""
        ...

    async def unread_counts_for_user(
        self, user_id: str, community_id: str
    ) -> dict[UUID, int]: ...

    async def unread_counts_for_community(
        self, community_id: str
    ) -> dict[str, dict[UUID, int]]:
        """Every party's per-conversation unread counters, keyed by user id."""
        ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation:
        """Insert a conversation. Raise ConflictError if the pair already exists."""
        ...

    async def apply_message(
        self,
        conversation_id: UUID,
        *,
        ts: datetime,
        summary: str,
        kind: MessageKind,
        unread_for: str | None,
    ) -> None:
        """Roll the last-message summary forward and bump ``unread_for``'s counter."""
        ...

    async def reset_unread(self, conversation_id: UUID, user_id: str) -> None: ...
