from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Index, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from community_chat.infrastructure.db.base import Base


class UserModel(Base):
    """Directory table owned by the user service; this service only reads it."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False)  # abune | regular
    abune_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending_approval")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    __table_args__ = (
        Index("ix_users_abune_status", "abune_id", "status"),
    )
