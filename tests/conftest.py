"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import pytest

from community_chat.application.exceptions import ConflictError
from community_chat.application.policies.permissions import is_community_member
from community_chat.application.ports.clock import FrozenClock
from community_chat.domain.entities.conversation import Conversation
from community_chat.domain.entities.identity import IdentityFact
from community_chat.domain.entities.message import Message
from community_chat.domain.value_objects.enums import (
    MessageKind,
    MessageStatus,
    UserStatus,
    UserType,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_abune(user_id: str) -> IdentityFact:
    return IdentityFact(
        id=user_id,
        type=UserType.ABUNE,
        owner_abune_id=None,
        is_approved=True,
        status=UserStatus.ACTIVE,
    )


def make_regular(
    user_id: str,
    owner: str,
    *,
    approved: bool = True,
    status: UserStatus = UserStatus.ACTIVE,
) -> IdentityFact:
    return IdentityFact(
        id=user_id,
        type=UserType.REGULAR,
        owner_abune_id=owner,
        is_approved=approved,
        status=status,
    )


def make_message(
    *,
    sender_id: str = "U1",
    recipient_id: str = "A1",
    community_id: str = "A1",
    conversation_id: UUID | None = None,
    content: str = "hello",
    created_at: datetime = T0,
    is_broadcast: bool = False,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        community_id=community_id,
        sender_id=sender_id,
        recipient_id="" if is_broadcast else recipient_id,
        conversation_id=conversation_id,
        kind=MessageKind.TEXT,
        content=content,
        file=None,
        created_at=created_at,
        is_broadcast=is_broadcast,
    )


def make_conversation(
    abune_id: str = "A1",
    user_id: str = "U1",
    *,
    abune_unread: int = 0,
    user_unread: int = 0,
) -> Conversation:
    return Conversation(
        id=uuid.uuid4(),
        abune_id=abune_id,
        user_id=user_id,
        last_message_at=None,
        last_message_summary=None,
        last_message_kind=None,
        abune_unread_count=abune_unread,
        user_unread_count=user_unread,
        is_active=True,
        created_at=T0,
        updated_at=T0,
    )


@dataclass
class FakeIdentityReader:
    _users: dict[str, IdentityFact] = field(default_factory=dict)

    def add(self, *identities: IdentityFact) -> None:
        for identity in identities:
            self._users[identity.id] = identity

    async def get_by_id(self, user_id: str) -> IdentityFact | None:
        return self._users.get(user_id)

    async def list_community_member_ids(self, community_id: str) -> list[str]:
        return sorted(
            uid for uid, identity in self._users.items()
            if is_community_member(identity, community_id)
        )


@dataclass
class FakeConversationReader:
    _store: dict[UUID, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.get(conversation_id)

    async def get_by_pair(self, abune_id: str, user_id: str) -> Conversation | None:
        found = next(
            (c for c in self._store.values() if c.abune_id == abune_id and c.user_id == user_id),
            None,
        )
        # yield after the lookup so concurrent callers can both miss, like real I/O
        await asyncio.sleep(0)
        return found

    async def list_for_user(self, user_id: str, community_id: str) -> list[Conversation]:
        convs = [
            c for c in self._store.values()
            if c.abune_id == community_id and c.has_party(user_id)
        ]
        return sorted(
            convs,
            key=lambda c: c.last_message_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )

    async def unread_counts_for_user(self, user_id: str, community_id: str) -> dict[UUID, int]:
        return {
            c.id: c.unread_count_for(user_id)
            for c in self._store.values()
            if c.abune_id == community_id and c.has_party(user_id)
        }

    async def unread_counts_for_community(self, community_id: str) -> dict[str, dict[UUID, int]]:
        counts: dict[str, dict[UUID, int]] = {}
        for c in self._store.values():
            if c.abune_id != community_id:
                continue
            counts.setdefault(c.abune_id, {})[c.id] = c.abune_unread_count
            counts.setdefault(c.user_id, {})[c.id] = c.user_unread_count
        return counts


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader
    created: int = 0

    async def create(self, conversation: Conversation) -> Conversation:
        for c in self._reader._store.values():
            if c.abune_id == conversation.abune_id and c.user_id == conversation.user_id:
                raise ConflictError("duplicate pair")
        self._reader._store[conversation.id] = conversation
        self.created += 1
        return conversation

    async def apply_message(
        self,
        conversation_id: UUID,
        *,
        ts: datetime,
        summary: str,
        kind: MessageKind,
        unread_for: str | None,
    ) -> None:
        c = self._reader._store[conversation_id]
        c = replace(
            c,
            last_message_at=ts,
            last_message_summary=summary,
            last_message_kind=kind,
            abune_unread_count=c.abune_unread_count + (unread_for == c.abune_id),
            user_unread_count=c.user_unread_count + (unread_for == c.user_id),
        )
        self._reader._store[conversation_id] = c

    async def reset_unread(self, conversation_id: UUID, user_id: str) -> None:
        c = self._reader._store[conversation_id]
        if user_id == c.abune_id:
            c = replace(c, abune_unread_count=0)
        elif user_id == c.user_id:
            c = replace(c, user_unread_count=0)
        self._reader._store[conversation_id] = c


@dataclass
class FakeMessageReader:
    _store: dict[UUID, Message] = field(default_factory=dict)

    def _live(self) -> list[Message]:
        return sorted(
            (m for m in self._store.values() if not m.is_deleted),
            key=lambda m: m.created_at,
            reverse=True,
        )

    @staticmethod
    def _page(messages: list[Message], limit: int, before: datetime | None) -> list[Message]:
        if before is not None:
            messages = [m for m in messages if m.created_at < before]
        return messages[:limit]

    async def get_by_id(self, message_id: UUID) -> Message | None:
        m = self._store.get(message_id)
        return m if m is not None and not m.is_deleted else None

    async def get_by_id_including_deleted(self, message_id: UUID) -> Message | None:
        return self._store.get(message_id)

    async def list_conversation(
        self, conversation_id: UUID, *, limit: int = 50, before: datetime | None = None,
    ) -> list[Message]:
        return self._page(
            [m for m in self._live() if m.conversation_id == conversation_id], limit, before,
        )

    async def list_community(
        self, community_id: str, *, limit: int = 50, before: datetime | None = None,
    ) -> list[Message]:
        return self._page(
            [m for m in self._live() if m.community_id == community_id and not m.is_broadcast],
            limit, before,
        )

    async def list_broadcasts(
        self, community_id: str, *, limit: int = 50, before: datetime | None = None,
    ) -> list[Message]:
        return self._page(
            [m for m in self._live() if m.community_id == community_id and m.is_broadcast],
            limit, before,
        )

    async def search(
        self, user_id: str, community_id: str, term: str, *, limit: int = 20,
    ) -> list[Message]:
        needle = term.lower()
        return [
            m for m in self._live()
            if m.community_id == community_id
            and (m.is_broadcast or user_id in m.participants())
            and (
                needle in (m.content or "").lower()
                or (m.file is not None and needle in m.file.name.lower())
            )
        ][:limit]


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    def _put(self, message_id: UUID, **changes: Any) -> None:
        self._reader._store[message_id] = replace(self._reader._store[message_id], **changes)

    async def create(self, message: Message) -> Message:
        self._reader._store[message.id] = message
        return message

    async def update(self, message: Message) -> None:
        self._put(
            message.id,
            content=message.content,
            is_edited=message.is_edited,
            edited_at=message.edited_at,
            edited_by=message.edited_by,
        )

    async def soft_delete(self, message_id: UUID, deleted_by: str, ts: datetime) -> None:
        self._put(message_id, is_deleted=True, deleted_at=ts, deleted_by=deleted_by)

    async def set_reaction(self, message_id: UUID, user_id: str, emoji: str) -> None:
        reactions = {**self._reader._store[message_id].reactions, user_id: emoji}
        self._put(message_id, reactions=reactions)

    async def remove_reaction(self, message_id: UUID, user_id: str) -> bool:
        reactions = dict(self._reader._store[message_id].reactions)
        if reactions.pop(user_id, None) is None:
            return False
        self._put(message_id, reactions=reactions)
        return True

    async def mark_read(self, message_id: UUID, user_id: str, ts: datetime) -> bool:
        read_by = self._reader._store[message_id].read_by
        if user_id in read_by:
            return False
        self._put(message_id, read_by={**read_by, user_id: ts})
        return True

    async def set_status(self, message_id: UUID, status: MessageStatus) -> None:
        self._put(message_id, status=status)


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests.

    Entering ``async with uow`` snapshots the message and conversation
    stores; ``rollback`` restores the snapshot, ``commit`` drops it.
    """
    identities: FakeIdentityReader = field(default_factory=FakeIdentityReader)
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    commits: int = 0
    rollbacks: int = 0
    savepoint_rollbacks: int = 0
    _snapshot: tuple[dict, dict] | None = None

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    def _take_snapshot(self) -> tuple[dict, dict]:
        return dict(self.conversations._store), dict(self.messages._store)

    def _restore(self, snapshot: tuple[dict, dict]) -> None:
        conversations, messages = snapshot
        self.conversations._store.clear()
        self.conversations._store.update(conversations)
        self.messages._store.clear()
        self.messages._store.update(messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1
        self._snapshot = None

    async def rollback(self) -> None:
        self.rollbacks += 1
        if self._snapshot is not None:
            self._restore(self._snapshot)
            self._snapshot = None

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        snapshot = self._take_snapshot()
        try:
            yield
        except Exception:
            self.savepoint_rollbacks += 1
            self._restore(snapshot)
            raise

    async def __aenter__(self) -> FakeUoW:
        if self._snapshot is None:
            self._snapshot = self._take_snapshot()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            await self.rollback()


@dataclass
class FakeDispatcher:
    """Records fan-out; users in ``online`` count as reachable."""
    online: set[str] = field(default_factory=set)
    sent: list[tuple[str, str, str, dict[str, Any]]] = field(default_factory=list)

    async def to_user(self, user_id: str, event: str, data: dict[str, Any]) -> bool:
        self.sent.append(("user", user_id, str(event), data))
        return user_id in self.online

    async def to_community(self, community_id: str, event: str, data: dict[str, Any]) -> int:
        self.sent.append(("community", community_id, str(event), data))
        return len(self.online)

    def events_for(self, user_id: str) -> list[str]:
        return [event for kind, key, event, _ in self.sent if kind == "user" and key == user_id]

    def community_events(self, community_id: str) -> list[str]:
        return [
            event for kind, key, event, _ in self.sent
            if kind == "community" and key == community_id
        ]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
def uow() -> FakeUoW:
    """Two communities: A1 with members U1, U2 and pending U4; A2 with U3."""
    uow = FakeUoW()
    uow.identities.add(
        make_abune("A1"),
        make_abune("A2"),
        make_regular("U1", "A1"),
        make_regular("U2", "A1"),
        make_regular("U3", "A2"),
        make_regular("U4", "A1", approved=False, status=UserStatus.PENDING_APPROVAL),
    )
    return uow


@pytest.fixture
def events() -> FakeDispatcher:
    return FakeDispatcher()
