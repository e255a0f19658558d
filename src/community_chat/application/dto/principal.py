from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated session identity extracted from JWT.

    Only ids are carried here; authorization always re-reads the identity
    facts from the user directory.
    """

    user_id: str
    community_id: str

    @property
    def is_complete(self) -> bool:
        return bool(self.user_id) and bool(self.community_id)
