from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from community_chat.config import settings
from community_chat.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


async def _check_postgres() -> str | None:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        return f"postgres: {exc}"
    return None


async def _check_fanout(request: Request) -> str | None:
    # local fan-out has no external dependency
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return None
    try:
        await redis.ping()
    except Exception as exc:  # noqa: BLE001
        return f"redis: {exc}"
    return None


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    errors = [
        err for err in (await _check_postgres(), await _check_fanout(request))
        if err is not None
    ]
    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "fanout": settings.FANOUT_MODE, "errors": errors},
        )
    return JSONResponse(content={"status": "ready", "fanout": settings.FANOUT_MODE})
