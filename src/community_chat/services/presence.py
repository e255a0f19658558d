"""In-memory registry of live connections, grouped by community and by user."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol

from community_chat.application.exceptions import AuthorizationError
from community_chat.application.ports.bus import EventDispatcher
from community_chat.application.ports.clock import Clock, SystemClock
from community_chat.domain.entities.presence import PresenceEntry
from community_chat.domain.events.realtime import RealtimeEvent
from community_chat.services._locks import KeyedLock

logger = logging.getLogger(__name__)


class ConnectionSink(Protocol):
    """Transport-side handle of a single live connection."""

    async def send(self, event: str, data: dict[str, Any]) -> None: ...


class PresenceRegistry:
    """Tracks which users are connected and pushes events to them.

    One authoritative entry per user: a second connection from the same user
    replaces the first, and a late disconnect of the replaced connection is
    ignored. State lives only as long as this object; nothing is persisted,
    so ``online_users`` only knows this process's connections.
    Implements ``EventDispatcher``.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        announcer: EventDispatcher | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        # where UserOnline/UserOffline go; a relay reaches other instances too
        self._announcer: EventDispatcher = announcer or self
        self._entries: dict[str, PresenceEntry] = {}
        self._by_connection: dict[str, str] = {}
        self._sinks: dict[str, ConnectionSink] = {}
        self._communities: dict[str, set[str]] = {}
        self._locks = KeyedLock()

    async def connect(
        self,
        user_id: str,
        community_id: str,
        connection_id: str,
        sink: ConnectionSink,
    ) -> PresenceEntry:
        if not user_id or not community_id:
            raise AuthorizationError("Anonymous connections are not allowed")

        async with self._locks.hold(user_id):
            previous = self._entries.get(user_id)
            if previous is not None and previous.connection_id != connection_id:
                self._by_connection.pop(previous.connection_id, None)
                self._sinks.pop(previous.connection_id, None)
                if previous.community_id != community_id:
                    self._leave_community(previous.community_id, user_id)
                logger.info(
                    "Connection %s of %s replaced by %s",
                    previous.connection_id, user_id, connection_id,
                )

            entry = PresenceEntry(
                user_id=user_id,
                community_id=community_id,
                connection_id=connection_id,
                last_seen_at=self._clock.now(),
                is_online=True,
            )
            self._entries[user_id] = entry
            self._by_connection[connection_id] = user_id
            self._sinks[connection_id] = sink
            self._communities.setdefault(community_id, set()).add(user_id)

        logger.debug("User %s online in %s (conn=%s)", user_id, community_id, connection_id)
        await self._announcer.to_community(community_id, RealtimeEvent.USER_ONLINE, {"user_id": user_id})
        return entry

    async def disconnect(self, connection_id: str) -> PresenceEntry | None:
        """Mark the owner of ``connection_id`` offline.

        Returns None when the connection is unknown or was already replaced
        by a newer one, in which case nothing changes.
        """
        user_id = self._by_connection.get(connection_id)
        if user_id is None:
            logger.debug("Disconnect of unknown or replaced connection %s", connection_id)
            return None

        async with self._locks.hold(user_id):
            entry = self._entries.get(user_id)
            if entry is None or entry.connection_id != connection_id:
                return None
            entry.is_online = False
            entry.last_seen_at = self._clock.now()
            self._by_connection.pop(connection_id, None)
            self._sinks.pop(connection_id, None)
            self._leave_community(entry.community_id, user_id)

        logger.debug("User %s offline (conn=%s)", user_id, connection_id)
        await self._announcer.to_community(entry.community_id, RealtimeEvent.USER_OFFLINE, {"user_id": user_id})
        return entry

    def online_users(self, community_id: str) -> list[str]:
        members = self._communities.get(community_id, set())
        return sorted(
            uid for uid in members
            if (entry := self._entries.get(uid)) is not None and entry.is_online
        )

    def last_seen(self, user_id: str) -> datetime | None:
        entry = self._entries.get(user_id)
        return entry.last_seen_at if entry is not None else None

    def is_online(self, user_id: str) -> bool:
        entry = self._entries.get(user_id)
        return entry is not None and entry.is_online

    def get(self, user_id: str) -> PresenceEntry | None:
        return self._entries.get(user_id)

    def touch(self, user_id: str) -> None:
        entry = self._entries.get(user_id)
        if entry is not None and entry.is_online:
            entry.last_seen_at = self._clock.now()

    async def to_user(self, user_id: str, event: str, data: dict[str, Any]) -> bool:
        entry = self._entries.get(user_id)
        if entry is None or not entry.is_online:
            return False
        return await self.to_connection(entry.connection_id, event, data)

    async def to_community(self, community_id: str, event: str, data: dict[str, Any]) -> int:
        connection_ids = [
            entry.connection_id
            for uid in list(self._communities.get(community_id, ()))
            if (entry := self._entries.get(uid)) is not None and entry.is_online
        ]
        if not connection_ids:
            return 0
        results = await asyncio.gather(
            *(self.to_connection(cid, event, data) for cid in connection_ids)
        )
        return sum(1 for ok in results if ok)

    async def to_connection(self, connection_id: str, event: str, data: dict[str, Any]) -> bool:
        sink = self._sinks.get(connection_id)
        if sink is None:
            return False
        try:
            await sink.send(str(event), data)
        except Exception:
            logger.warning("Failed to push %s to connection %s", event, connection_id, exc_info=True)
            return False
        return True

    def _leave_community(self, community_id: str, user_id: str) -> None:
        members = self._communities.get(community_id)
        if members is None:
            return
        members.discard(user_id)
        if not members:
            del self._communities[community_id]
