"""Entrypoint: python -m community_chat"""
from __future__ import annotations

import logging

import uvicorn

from community_chat.api.middleware.correlation_id import CorrelationIdFilter
from community_chat.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(CorrelationIdFilter())
    uvicorn.run(
        "community_chat.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
