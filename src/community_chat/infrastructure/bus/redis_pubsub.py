"""Redis Pub/Sub fan-out across service instances."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as aioredis

from community_chat.infrastructure.bus.serializer import (
    FanoutEnvelope,
    deserialize_envelope,
    serialize_envelope,
)
from community_chat.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)


class RedisFanoutPublisher:
    """Implements application.ports.bus.EventDispatcher over a Redis channel.

    Delivery happens on whichever instance holds the connection, so the
    publisher cannot tell whether a user was reached: ``to_user`` reports
    False and ``to_community`` reports 0.
    """

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def to_user(self, user_id: str, event: str, data: dict[str, Any]) -> bool:
        await self._publish(FanoutEnvelope("user", user_id, str(event), data))
        return False

    async def to_community(self, community_id: str, event: str, data: dict[str, Any]) -> int:
        await self._publish(FanoutEnvelope("community", community_id, str(event), data))
        return 0

    async def _publish(self, envelope: FanoutEnvelope) -> None:
        try:
            await self._redis.publish(self._channel, serialize_envelope(envelope))
        except aioredis.RedisError:
            logger.warning(
                "Failed to publish %s for %s %s",
                envelope.event, envelope.target, envelope.key, exc_info=True,
            )


class RedisFanoutSubscriber:
    """Background task relaying channel messages to the local PresenceRegistry."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        registry: PresenceRegistry,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._registry = registry
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-fanout-subscriber")
        logger.info("Redis fan-out subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis fan-out subscriber stopped")

    async def relay(self, raw: str | bytes) -> None:
        envelope = deserialize_envelope(raw)
        if envelope.target == "user":
            await self._registry.to_user(envelope.key, envelope.event, envelope.data)
        else:
            await self._registry.to_community(envelope.key, envelope.event, envelope.data)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    await self.relay(message["data"])
                except Exception:
                    logger.exception("Error relaying fan-out message")
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
