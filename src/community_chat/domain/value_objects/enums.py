from __future__ import annotations

from enum import StrEnum


class UserType(StrEnum):
    ABUNE = "abune"
    REGULAR = "regular"


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING_APPROVAL = "pending_approval"


class MessageKind(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    VOICE = "voice"

    @property
    def is_media(self) -> bool:
        return self is not MessageKind.TEXT


class MessageStatus(StrEnum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
