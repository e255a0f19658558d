from __future__ import annotations

from community_chat.domain.entities.identity import IdentityFact
from community_chat.domain.value_objects.enums import UserStatus, UserType
from community_chat.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> IdentityFact:
    return IdentityFact(
        id=model.id,
        type=UserType(model.user_type),
        owner_abune_id=model.abune_id if model.user_type == UserType.REGULAR else None,
        is_approved=model.is_approved,
        status=UserStatus(model.status),
    )
