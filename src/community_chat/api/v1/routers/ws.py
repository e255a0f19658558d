from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from community_chat.api.deps import get_verifier
from community_chat.api.v1.hub import ChatHub
from community_chat.application.dto.principal import Principal
from community_chat.application.exceptions import (
    AuthenticationError,
    AuthorizationError,
    StorageError,
)
from community_chat.config import settings
from community_chat.domain.events.realtime import RealtimeEvent
from community_chat.infrastructure.ws.protocol import WsOutbound
from community_chat.infrastructure.ws.sink import WebSocketSink

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

UNAUTHORIZED_CLOSE_CODE = 4001


async def _authenticate(token: str) -> Principal | None:
    try:
        principal = await get_verifier().verify(token)
    except AuthenticationError as exc:
        logger.debug("WS auth failed: %s", exc.detail)
        return None
    return principal if principal.is_complete else None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason="Authentication failed")
        return

    hub: ChatHub = websocket.app.state.hub
    connection_id = uuid.uuid4().hex
    await websocket.accept()
    try:
        await hub.on_connect(principal, connection_id, WebSocketSink(websocket))
    except AuthorizationError as exc:
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason=exc.detail)
        return
    except StorageError as exc:
        logger.error("WS connect of %s failed: %s", principal.user_id, exc.detail)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{connection_id}",
    )
    try:
        while True:
            raw = await websocket.receive_text()
            await hub.on_event(principal, connection_id, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s (conn=%s)", principal.user_id, connection_id)
    finally:
        heartbeat_task.cancel()
        await hub.on_disconnect(connection_id)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    frame = WsOutbound(type=RealtimeEvent.PONG, data={}).model_dump_json()
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(frame)
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Heartbeat stopped", exc_info=True)
