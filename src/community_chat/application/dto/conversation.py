from __future__ import annotations

from dataclasses import dataclass

from community_chat.domain.entities.conversation import Conversation


@dataclass(frozen=True, slots=True)
class ConversationView:
    """A conversation as seen by one of its parties."""

    conversation: Conversation
    other_user_id: str
    unread_count: int


@dataclass(frozen=True, slots=True)
class UnreadSummary:
    total: int
    per_conversation: dict[str, int]
