from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Self

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from community_chat.application.exceptions import StorageError
from community_chat.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from community_chat.infrastructure.db.repositories.identity import IdentityReaderRepo
from community_chat.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)

logger = logging.getLogger(__name__)


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.identities = IdentityReaderRepo(session)
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)

    async def flush(self) -> None:
        try:
            await self._session.flush()
        except SQLAlchemyError as exc:
            logger.error("Flush failed: %s", exc)
            raise StorageError("Storage operation failed") from exc

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            logger.error("Commit failed: %s", exc)
            await self._session.rollback()
            raise StorageError("Storage operation failed") from exc

    async def rollback(self) -> None:
        await self._session.rollback()

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Nested transaction: an error inside undoes only what ran inside."""
        async with self._session.begin_nested():
            yield

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()
