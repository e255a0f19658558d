from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from community_chat.domain.entities.message import Message
from community_chat.domain.value_objects.enums import MessageStatus


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None:
        """Return a message unless it is soft-deleted."""
        ...

    async def get_by_id_including_deleted(self, message_id: UUID) -> Message | None: ...

    async def list_conversation(
        self,
        conversation_id: UUID,
        *,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[Message]:
        """Newest first, deleted messages excluded."""
        ...

    async def list_community(
        self,
        community_id: str,
        *,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[Message]: ...

    async def list_broadcasts(
        self,
        community_id: str,
        *,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[Message]: ...

    async def search(
        self,
        user_id: str,
        community_id: str,
        term: str,
        *,
        limit: int = 20,
    ) -> list[Message]: ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message: ...

    async def update(self, message: Message) -> None:
        """Persist content and edit markers of an existing message."""
        ...

    async def soft_delete(self, message_id: UUID, deleted_by: str, ts: datetime) -> None: ...

    async def set_reaction(self, message_id: UUID, user_id: str, emoji: str) -> None: ...

    async def remove_reaction(self, message_id: UUID, user_id: str) -> bool:
        """Return False if the user had no reaction on the message."""
        ...

    async def mark_read(self, message_id: UUID, user_id: str, ts: datetime) -> bool:
        """Record a read receipt. Return False if one already existed."""
        ...

    async def set_status(self, message_id: UUID, status: MessageStatus) -> None: ...
