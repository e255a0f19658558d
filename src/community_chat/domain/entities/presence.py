from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class PresenceEntry:
    user_id: str
    community_id: str
    connection_id: str
    last_seen_at: datetime
    is_online: bool = True
