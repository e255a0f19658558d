"""Seed development data: creates the schema, a sample community and a few messages."""
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.dialects.postgresql import insert

from community_chat.application.dto.message import MessageBody
from community_chat.infrastructure.db.models import UserModel
from community_chat.infrastructure.db.session import AsyncSessionLocal, create_schema
from community_chat.infrastructure.db.uow import SqlAlchemyUoW
from community_chat.services import message_service
from community_chat.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)

ABUNE_ID = "abune-1"
MEMBERS = ("member-1", "member-2")


async def seed() -> None:
    await create_schema()

    users = [{"id": ABUNE_ID, "user_type": "abune", "abune_id": None, "is_approved": True, "status": "active"}]
    users += [
        {"id": uid, "user_type": "regular", "abune_id": ABUNE_ID, "is_approved": True, "status": "active"}
        for uid in MEMBERS
    ]

    # nobody is connected; events go nowhere
    events = PresenceRegistry()
    async with AsyncSessionLocal() as session:
        await session.execute(insert(UserModel).values(users).on_conflict_do_nothing())
        await session.commit()

        uow = SqlAlchemyUoW(session)
        await message_service.send_broadcast(
            ABUNE_ID, ABUNE_ID, MessageBody.text("Welcome to the community"), uow, events,
        )
        for member_id in MEMBERS:
            await message_service.send_direct(
                member_id, ABUNE_ID, ABUNE_ID, MessageBody.text(f"Hello from {member_id}"), uow, events,
            )
            await message_service.send_direct(
                ABUNE_ID, member_id, ABUNE_ID, MessageBody.text("Blessings, welcome"), uow, events,
            )

    logger.info("Seeded community %s with members %s", ABUNE_ID, ", ".join(MEMBERS))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
