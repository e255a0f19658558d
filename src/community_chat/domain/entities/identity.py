from __future__ import annotations

from dataclasses import dataclass

from community_chat.domain.value_objects.enums import UserStatus, UserType


@dataclass(frozen=True, slots=True)
class IdentityFact:
    """Read-only view of a user record supplied by the user directory."""

    id: str
    type: UserType
    owner_abune_id: str | None
    is_approved: bool
    status: UserStatus

    @property
    def is_abune(self) -> bool:
        return self.type == UserType.ABUNE

    @property
    def is_regular(self) -> bool:
        return self.type == UserType.REGULAR
