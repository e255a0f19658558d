"""FastAPI dependency injection helpers."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from community_chat.application.dto.principal import Principal
from community_chat.application.exceptions import AuthenticationError
from community_chat.application.ports.auth import TokenVerifier
from community_chat.application.ports.bus import EventDispatcher
from community_chat.config import settings
from community_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from community_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from community_chat.infrastructure.db.session import AsyncSessionLocal
from community_chat.infrastructure.db.uow import SqlAlchemyUoW
from community_chat.services.presence import PresenceRegistry

_bearer_scheme = HTTPBearer()


@asynccontextmanager
async def uow_scope() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        yield SqlAlchemyUoW(session)


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with uow_scope() as uow:
        yield uow


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
) -> Principal:
    try:
        principal = await verifier.verify(credentials.credentials)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.detail,
        ) from exc
    if not principal.is_complete:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing user or community claims",
        )
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_registry(request: Request) -> PresenceRegistry:
    return request.app.state.registry


def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


RegistryDep = Annotated[PresenceRegistry, Depends(get_registry)]
DispatcherDep = Annotated[EventDispatcher, Depends(get_dispatcher)]
