"""Transport-agnostic WebSocket command handler."""
from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as PydanticValidationError

from community_chat.application.dto.principal import Principal
from community_chat.application.exceptions import AppError, AuthorizationError
from community_chat.application.policies.permissions import assert_community_member
from community_chat.application.ports.bus import EventDispatcher
from community_chat.application.ports.clock import Clock, SystemClock
from community_chat.application.uow import UnitOfWork
from community_chat.domain.events.realtime import RealtimeEvent
from community_chat.infrastructure.ws.protocol import (
    BroadcastData,
    ConversationRefData,
    EditData,
    ForwardData,
    MessageRefData,
    ReactionData,
    ReplyData,
    SendMessageData,
    TypingData,
    WsInbound,
)
from community_chat.services import conversation_service, message_service, query_service
from community_chat.services._payloads import unread_payload
from community_chat.services.presence import ConnectionSink, PresenceRegistry

logger = logging.getLogger(__name__)

UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
Handler = Callable[[Principal, str, dict[str, Any]], Awaitable[None]]


class ChatHub:
    """Drives one process's live connections.

    ``registry`` owns local connections; ``events`` is where service-level
    fan-out goes (the registry itself, or a cross-instance relay).
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        events: EventDispatcher,
        uow_factory: UoWFactory,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._events = events
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()
        self._handlers: dict[str, Handler] = {
            "ping": self._ping,
            "send_message": self._send_message,
            "send_broadcast": self._send_broadcast,
            "reply": self._reply,
            "forward": self._forward,
            "edit_message": self._edit_message,
            "delete_message": self._delete_message,
            "mark_read": self._mark_read,
            "mark_conversation_read": self._mark_conversation_read,
            "add_reaction": self._add_reaction,
            "remove_reaction": self._remove_reaction,
            "typing": self._typing,
            "get_online_users": self._get_online_users,
            "get_unread_count": self._get_unread_count,
            "update_last_seen": self._update_last_seen,
        }

    async def on_connect(self, principal: Principal, connection_id: str, sink: ConnectionSink) -> None:
        if not principal.is_complete:
            raise AuthorizationError("Session is missing user or community claims")
        async with self._uow_factory() as uow:
            identity = await uow.identities.get_by_id(principal.user_id)
        # pending, suspended or foreign users never join the community group
        assert_community_member(identity, principal.community_id)
        await self._registry.connect(principal.user_id, principal.community_id, connection_id, sink)
        await self._get_online_users(principal, connection_id, {})
        try:
            await self._get_unread_count(principal, connection_id, {})
        except AppError as exc:
            await self._error(connection_id, type(exc).__name__, exc.detail)

    async def on_disconnect(self, connection_id: str) -> None:
        await self._registry.disconnect(connection_id)

    async def on_event(self, principal: Principal, connection_id: str, raw: str) -> None:
        try:
            inbound = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await self._error(connection_id, "invalid_payload", "Malformed message envelope")
            return

        handler = self._handlers.get(inbound.type)
        if handler is None:
            await self._error(connection_id, "unknown_type", f"Unknown command: {inbound.type}")
            return

        try:
            await handler(principal, connection_id, inbound.data)
        except PydanticValidationError as exc:
            await self._error(connection_id, "invalid_data", str(exc.errors(include_url=False)))
        except AppError as exc:
            logger.info("Command %s from %s rejected: %s", inbound.type, principal.user_id, exc.detail)
            await self._error(connection_id, type(exc).__name__, exc.detail)
        except Exception:
            logger.exception("Command %s from %s failed", inbound.type, principal.user_id)
            await self._error(connection_id, "internal_error", "Unexpected server error")

    async def _error(self, connection_id: str, code: str, detail: str) -> None:
        await self._registry.to_connection(
            connection_id, RealtimeEvent.ERROR_MESSAGE, {"code": code, "detail": detail},
        )

    async def _ping(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        self._registry.touch(principal.user_id)
        await self._registry.to_connection(connection_id, RealtimeEvent.PONG, {})

    async def _send_message(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = SendMessageData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.send_direct(
                principal.user_id, cmd.recipient_id, principal.community_id,
                cmd.to_body(), uow, self._events, clock=self._clock,
            )

    async def _send_broadcast(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = BroadcastData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.send_broadcast(
                principal.user_id, principal.community_id, cmd.to_body(),
                uow, self._events, clock=self._clock,
            )

    async def _reply(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = ReplyData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.reply(
                principal.user_id, cmd.recipient_id, principal.community_id,
                cmd.to_body(), cmd.reply_to_id, uow, self._events, clock=self._clock,
            )

    async def _forward(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = ForwardData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.forward(
                principal.user_id, cmd.recipient_id, principal.community_id,
                cmd.forward_from_id, uow, self._events, clock=self._clock,
            )

    async def _edit_message(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = EditData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.edit_message(
                cmd.message_id, principal.user_id, cmd.content, uow, self._events, clock=self._clock,
            )

    async def _delete_message(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = MessageRefData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.delete_message(
                cmd.message_id, principal.user_id, uow, self._events, clock=self._clock,
            )

    async def _mark_read(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = MessageRefData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.mark_read(
                cmd.message_id, principal.user_id, uow, self._events, clock=self._clock,
            )

    async def _mark_conversation_read(
        self, principal: Principal, connection_id: str, data: dict[str, Any],
    ) -> None:
        cmd = ConversationRefData.model_validate(data)
        async with self._uow_factory() as uow:
            await conversation_service.mark_conversation_read(cmd.conversation_id, principal.user_id, uow)
            await message_service.push_unread_counts(
                principal.user_id, principal.community_id, uow, self._events, clock=self._clock,
            )

    async def _add_reaction(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = ReactionData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.add_reaction(cmd.message_id, principal.user_id, cmd.emoji, uow, self._events)

    async def _remove_reaction(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = MessageRefData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.remove_reaction(cmd.message_id, principal.user_id, uow, self._events)

    async def _typing(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        cmd = TypingData.model_validate(data)
        async with self._uow_factory() as uow:
            await message_service.send_typing(
                principal.user_id, cmd.recipient_id, principal.community_id,
                cmd.is_typing, uow, self._events,
            )

    async def _get_online_users(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        await self._registry.to_connection(
            connection_id,
            RealtimeEvent.ONLINE_USERS,
            {"user_ids": self._registry.online_users(principal.community_id)},
        )

    async def _get_unread_count(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        async with self._uow_factory() as uow:
            summary = await query_service.get_unread_summary(principal.user_id, principal.community_id, uow)
        await self._registry.to_connection(
            connection_id,
            RealtimeEvent.UNREAD_COUNT_UPDATE,
            unread_payload(summary.per_conversation, self._clock.now()),
        )

    async def _update_last_seen(self, principal: Principal, connection_id: str, data: dict[str, Any]) -> None:
        self._registry.touch(principal.user_id)
