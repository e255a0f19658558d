from __future__ import annotations

from pydantic import BaseModel


class UnreadCountsResponse(BaseModel):
    total_unread_count: int
    conversation_unread_counts: dict[str, int]


class OnlineUsersResponse(BaseModel):
    community_id: str
    user_ids: list[str]
