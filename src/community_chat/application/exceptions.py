from __future__ import annotations


class AppError(Exception):
    """Base application error. ``detail`` is safe to show to the client."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class AuthenticationError(AppError):
    """The session token is missing, malformed, expired or badly signed."""


class AuthorizationError(AppError):
    """The permission oracle denied the operation."""


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    """Malformed message body, stale edit or a bad reply/forward target."""


class ConflictError(AppError):
    """A unique key was taken concurrently (conversation pair)."""


class StorageError(AppError):
    pass
