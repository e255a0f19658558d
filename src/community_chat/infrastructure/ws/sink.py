from __future__ import annotations

from typing import Any

from fastapi import WebSocket

from community_chat.infrastructure.ws.protocol import WsOutbound


class WebSocketSink:
    """ConnectionSink that writes JSON envelopes to a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def send(self, event: str, data: dict[str, Any]) -> None:
        payload = WsOutbound(type=event, data=data)
        await self._websocket.send_text(payload.model_dump_json())
