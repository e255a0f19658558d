from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

Target = Literal["user", "community"]


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


@dataclass(frozen=True, slots=True)
class FanoutEnvelope:
    target: Target
    key: str
    event: str
    data: dict[str, Any]


def serialize_envelope(envelope: FanoutEnvelope) -> str:
    return json.dumps(
        {
            "target": envelope.target,
            "key": envelope.key,
            "event": envelope.event,
            "data": envelope.data,
        },
        cls=_Encoder,
    )


def deserialize_envelope(raw: str | bytes) -> FanoutEnvelope:
    data = json.loads(raw)
    if data.get("target") not in ("user", "community"):
        raise ValueError(f"Unknown fan-out target: {data.get('target')!r}")
    return FanoutEnvelope(
        target=data["target"],
        key=str(data["key"]),
        event=str(data["event"]),
        data=data.get("data") or {},
    )
