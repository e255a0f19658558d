from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from community_chat.api.deps import uow_scope
from community_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from community_chat.api.middleware.timing import RequestTimingMiddleware
from community_chat.api.v1.hub import ChatHub, UoWFactory
from community_chat.api.v1.routers import (
    conversations,
    health,
    messages,
    presence,
    ws,
)
from community_chat.application.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from community_chat.config import settings
from community_chat.infrastructure.bus.redis_pubsub import (
    RedisFanoutPublisher,
    RedisFanoutSubscriber,
)
from community_chat.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)


def _lifespan(uow_factory: UoWFactory):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup / shutdown lifecycle."""
        app.state.redis = None
        publisher: RedisFanoutPublisher | None = None
        subscriber: RedisFanoutSubscriber | None = None

        if settings.FANOUT_MODE == "redis":
            app.state.redis = aioredis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
            )
            logger.info("Redis connection pool created")
            publisher = RedisFanoutPublisher(app.state.redis, settings.REDIS_PUBSUB_CHANNEL)

        # presence transitions follow the same path as every other event
        registry = PresenceRegistry(announcer=publisher)
        app.state.registry = registry
        app.state.dispatcher = publisher or registry

        if app.state.redis is not None:
            subscriber = RedisFanoutSubscriber(
                app.state.redis,
                settings.REDIS_PUBSUB_CHANNEL,
                registry,
            )
            await subscriber.start()

        app.state.hub = ChatHub(registry, app.state.dispatcher, uow_factory)
        logger.info("Chat hub ready (fanout=%s)", settings.FANOUT_MODE)

        yield

        if subscriber is not None:
            await subscriber.stop()
        if app.state.redis is not None:
            await app.state.redis.aclose()
            logger.info("Redis connection pool closed")

    return lifespan


def create_app(uow_factory: UoWFactory | None = None) -> FastAPI:
    app = FastAPI(
        title="Community Chat Service",
        version="0.1.0",
        lifespan=_lifespan(uow_factory or uow_scope),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(presence.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(AuthorizationError)
    async def _forbidden(_req: Request, exc: AuthorizationError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(StorageError)
    async def _storage(_req: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage unavailable: %s", exc.detail)
        return JSONResponse(status_code=503, content={"detail": exc.detail})
