from __future__ import annotations

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from community_chat.domain.entities.identity import IdentityFact
from community_chat.domain.value_objects.enums import UserStatus, UserType
from community_chat.infrastructure.db.mappers import identity as mapper
from community_chat.infrastructure.db.models.user import UserModel
from community_chat.infrastructure.db.repositories._errors import storage_errors


class IdentityReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @storage_errors
    async def get_by_id(self, user_id: str) -> IdentityFact | None:
        result = await self._session.get(UserModel, user_id)
        return mapper.model_to_entity(result) if result else None

    @storage_errors
    async def list_community_member_ids(self, community_id: str) -> list[str]:
        stmt = select(UserModel.id).where(
            or_(
                and_(UserModel.id == community_id, UserModel.user_type == UserType.ABUNE),
                and_(
                    UserModel.abune_id == community_id,
                    UserModel.user_type == UserType.REGULAR,
                    UserModel.is_approved.is_(True),
                    UserModel.status == UserStatus.ACTIVE,
                ),
            )
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
