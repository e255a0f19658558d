from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from community_chat.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from community_chat.application.repositories.identity import IdentityReader
from community_chat.application.repositories.message import MessageReader, MessageWriter


class UnitOfWork(Protocol):
    identities: IdentityReader
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
    def savepoint(self) -> AbstractAsyncContextManager[None]: ...
    async def __aenter__(self) -> UnitOfWork: ...
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
