from __future__ import annotations

from typing import Any, Protocol


class EventDispatcher(Protocol):
    """Pushes realtime events to connected clients.

    Implementations must never raise on an unreachable recipient: fan-out is
    best-effort and runs after the triggering mutation is committed.
    """

    async def to_user(self, user_id: str, event: str, data: dict[str, Any]) -> bool:
        """Return True if at least one live connection received the event."""
        ...

    async def to_community(
        self, community_id: str, event: str, data: dict[str, Any]
    ) -> int:
        """Return the number of connections reached."""
        ...
