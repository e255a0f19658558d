from __future__ import annotations

from typing import Any

from community_chat.application.dto.principal import Principal


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a Principal from session claims.

    Accepts ``sub`` or ``user_id`` for the user and ``community_id`` or
    ``abune_id`` for the community. Missing claims yield empty ids; callers
    decide whether an incomplete principal is acceptable.
    """
    user_id = payload.get("sub") or payload.get("user_id") or ""
    community_id = payload.get("community_id") or payload.get("abune_id") or ""
    return Principal(user_id=str(user_id), community_id=str(community_id))
