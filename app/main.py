from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.engine import build_default_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    service = build_default_service()
    session, _ = service.snapshot()
    logger.info(
        "Shift service ready",
        extra={"stage": session.stage.name, "operator": session.operator_name or None},
    )
    try:
        yield
    finally:
        service.shutdown()
        build_default_service.cache_clear()
        logger.info("Shift service stopped")


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Fuel Shift Reconciliation",
        description="End-of-shift meter and cash reconciliation for a fuel outlet.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
