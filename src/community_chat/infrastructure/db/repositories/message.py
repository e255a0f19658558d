from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from community_chat.domain.entities.message import Message
from community_chat.domain.value_objects.enums import MessageStatus
from community_chat.infrastructure.db.mappers import message as mapper
from community_chat.infrastructure.db.models.message import MessageModel
from community_chat.infrastructure.db.repositories._errors import storage_errors


def _page(stmt: Select, limit: int, before: datetime | None) -> Select:
    if before is not None:
        stmt = stmt.where(MessageModel.created_at < before)
    return stmt.order_by(MessageModel.created_at.desc(), MessageModel.id.desc()).limit(limit)


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @storage_errors
    async def get_by_id(self, message_id: UUID) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.id == message_id,
            MessageModel.is_deleted.is_(False),
        ).execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    @storage_errors
    async def get_by_id_including_deleted(self, message_id: UUID) -> Message | None:
        model = await self._session.get(MessageModel, message_id, populate_existing=True)
        return mapper.model_to_entity(model) if model else None

    @storage_errors
    async def list_conversation(
        self,
        conversation_id: UUID,
        *,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[Message]:
        stmt = select(MessageModel).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.is_deleted.is_(False),
        )
        result = await self._session.execute(_page(stmt, limit, before))
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    @storage_errors
    async def list_community(
        self,
        community_id: str,
        *,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[Message]:
        stmt = select(MessageModel).where(
            MessageModel.community_id == community_id,
            MessageModel.is_broadcast.is_(False),
            MessageModel.is_deleted.is_(False),
        )
        result = await self._session.execute(_page(stmt, limit, before))
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    @storage_errors
    async def list_broadcasts(
        self,
        community_id: str,
        *,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[Message]:
        stmt = select(MessageModel).where(
            MessageModel.community_id == community_id,
            MessageModel.is_broadcast.is_(True),
            MessageModel.is_deleted.is_(False),
        )
        result = await self._session.execute(_page(stmt, limit, before))
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    @storage_errors
    async def search(
        self,
        user_id: str,
        community_id: str,
        term: str,
        *,
        limit: int = 20,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(
                MessageModel.community_id == community_id,
                MessageModel.is_deleted.is_(False),
                or_(
                    MessageModel.sender_id == user_id,
                    MessageModel.recipient_id == user_id,
                    MessageModel.is_broadcast.is_(True),
                ),
                or_(
                    MessageModel.content.icontains(term, autoescape=True),
                    MessageModel.file_name.icontains(term, autoescape=True),
                ),
            )
            .order_by(MessageModel.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @storage_errors
    async def create(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    @storage_errors
    async def update(self, message: Message) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message.id)
            .values(
                content=message.content,
                is_edited=message.is_edited,
                edited_at=message.edited_at,
                edited_by=message.edited_by,
            )
        )
        await self._session.execute(stmt)

    @storage_errors
    async def soft_delete(self, message_id: UUID, deleted_by: str, ts: datetime) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(is_deleted=True, deleted_at=ts, deleted_by=deleted_by)
        )
        await self._session.execute(stmt)

    @storage_errors
    async def set_reaction(self, message_id: UUID, user_id: str, emoji: str) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(
                reactions=MessageModel.reactions.op("||")(
                    func.jsonb_build_object(user_id, emoji)
                )
            )
        )
        await self._session.execute(stmt)

    @storage_errors
    async def remove_reaction(self, message_id: UUID, user_id: str) -> bool:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.reactions.has_key(user_id),
            )
            .values(reactions=MessageModel.reactions.op("-")(user_id))
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    @storage_errors
    async def mark_read(self, message_id: UUID, user_id: str, ts: datetime) -> bool:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                ~MessageModel.read_by.has_key(user_id),
            )
            .values(
                read_by=MessageModel.read_by.op("||")(
                    func.jsonb_build_object(user_id, ts.isoformat())
                )
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    @storage_errors
    async def set_status(self, message_id: UUID, status: MessageStatus) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(status=status.value)
        )
        await self._session.execute(stmt)
