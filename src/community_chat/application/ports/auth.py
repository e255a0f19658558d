from __future__ import annotations

from typing import Protocol

from community_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    """Turns a bearer token into the session principal.

    Raises ``AuthenticationError`` for any invalid token. A valid token
    that lacks the user or community claim still returns a principal; use
    ``Principal.is_complete`` to reject it.
    """

    async def verify(self, token: str) -> Principal: ...
