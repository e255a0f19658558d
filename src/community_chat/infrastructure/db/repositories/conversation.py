from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from community_chat.application.exceptions import ConflictError
from community_chat.domain.entities.conversation import Conversation
from community_chat.domain.value_objects.enums import MessageKind
from community_chat.infrastructure.db.mappers import conversation as mapper
from community_chat.infrastructure.db.models.conversation import ConversationModel
from community_chat.infrastructure.db.repositories._errors import storage_errors


def _unread_column_for(user_id: str):
    return case(
        (ConversationModel.abune_id == user_id, ConversationModel.abune_unread_count),
        else_=ConversationModel.user_unread_count,
    )


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @storage_errors
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id, populate_existing=True)
        return mapper.model_to_entity(result) if result else None

    @storage_errors
    async def get_by_pair(self, abune_id: str, user_id: str) -> Conversation | None:
        stmt = select(ConversationModel).where(
            ConversationModel.abune_id == abune_id,
            ConversationModel.user_id == user_id,
        ).execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    @storage_errors
    async def list_for_user(self, user_id: str, community_id: str) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                ConversationModel.abune_id == community_id,
                ConversationModel.is_active.is_(True),
                or_(
                    ConversationModel.abune_id == user_id,
                    ConversationModel.user_id == user_id,
                ),
            )
            .order_by(
                ConversationModel.last_message_at.desc().nullslast(),
                ConversationModel.id,
            )
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    @storage_errors
    async def unread_counts_for_user(self, user_id: str, community_id: str) -> dict[UUID, int]:
        stmt = select(ConversationModel.id, _unread_column_for(user_id)).where(
            ConversationModel.abune_id == community_id,
            or_(
                ConversationModel.abune_id == user_id,
                ConversationModel.user_id == user_id,
            ),
        )
        result = await self._session.execute(stmt)
        return {row[0]: int(row[1]) for row in result.all()}

    @storage_errors
    async def unread_counts_for_community(self, community_id: str) -> dict[str, dict[UUID, int]]:
        stmt = select(
            ConversationModel.id,
            ConversationModel.abune_id,
            ConversationModel.user_id,
            ConversationModel.abune_unread_count,
            ConversationModel.user_unread_count,
        ).where(ConversationModel.abune_id == community_id)
        result = await self._session.execute(stmt)
        counts: dict[str, dict[UUID, int]] = {}
        for conv_id, abune_id, user_id, abune_unread, user_unread in result.all():
            counts.setdefault(abune_id, {})[conv_id] = int(abune_unread)
            counts.setdefault(user_id, {})[conv_id] = int(user_unread)
        return counts


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @storage_errors
    async def create(self, conversation: Conversation) -> Conversation:
        model = mapper.entity_to_model(conversation)
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError("Conversation already exists for this pair") from exc
        return mapper.model_to_entity(model)

    @storage_errors
    async def apply_message(
        self,
        conversation_id: UUID,
        *,
        ts: datetime,
        summary: str,
        kind: MessageKind,
        unread_for: str | None,
    ) -> None:
        values = {
            "last_message_at": ts,
            "last_message_summary": summary,
            "last_message_kind": kind.value,
            "updated_at": func.now(),
        }
        if unread_for is not None:
            values["abune_unread_count"] = case(
                (
                    ConversationModel.abune_id == unread_for,
                    ConversationModel.abune_unread_count + 1,
                ),
                else_=ConversationModel.abune_unread_count,
            )
            values["user_unread_count"] = case(
                (
                    ConversationModel.user_id == unread_for,
                    ConversationModel.user_unread_count + 1,
                ),
                else_=ConversationModel.user_unread_count,
            )
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(**values)
        )
        await self._session.execute(stmt)

    @storage_errors
    async def reset_unread(self, conversation_id: UUID, user_id: str) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(
                abune_unread_count=case(
                    (ConversationModel.abune_id == user_id, 0),
                    else_=ConversationModel.abune_unread_count,
                ),
                user_unread_count=case(
                    (ConversationModel.user_id == user_id, 0),
                    else_=ConversationModel.user_unread_count,
                ),
                updated_at=func.now(),
            )
        )
        await self._session.execute(stmt)
