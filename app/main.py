from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.web import router as web_router
from logging_config import configure_logging
from services.coordinator import build_default_coordinator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    coordinator = build_default_coordinator()
    handle = coordinator.start()
    logger.info("Refresh loop started for %d devices", len(coordinator.catalog))
    try:
        yield
    finally:
        handle.cancel()
        await coordinator.aclose()
        build_default_coordinator.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="SenseBox Monitor",
        description="Polls SenseBox sensor readings and serves map markers with history charts.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(web_router)
    return app

app = create_app()
