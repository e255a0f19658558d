from __future__ import annotations

from typing import Protocol

from community_chat.domain.entities.identity import IdentityFact


class IdentityReader(Protocol):
    async def get_by_id(self, user_id: str) -> IdentityFact | None: ...

    async def list_community_member_ids(self, community_id: str) -> list[str]:
        """Ids of active members of a community, the Abune included."""
        ...
