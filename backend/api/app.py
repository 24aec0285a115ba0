"""
FastAPI application factory for the tracker read API.

Creates the app with:
- REST routes (games, results)
- Middleware stack
- Health check endpoints
- Lifespan management (connect/disconnect Postgres)
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Union

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_db, init_dependencies
from api.middleware import setup_middleware
from api.routes.games import router as games_router

logger = get_logger(__name__)

CONNECT_RETRY_ATTEMPTS = 10
CONNECT_RETRY_BASE_DELAY_S = 2.0


async def _connect_with_retry(db: DatabaseManager) -> None:
    for attempt in range(1, CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await db.connect()
            return
        except (SQLAlchemyError, OSError) as exc:
            if attempt == CONNECT_RETRY_ATTEMPTS:
                raise
            delay = CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning("connect_retry", name="Database", attempt=attempt, delay_s=delay, error=str(exc))
            await asyncio.sleep(delay)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without a database."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Connect to Postgres on startup, dispose the pool on shutdown."""
    settings = get_settings()
    setup_logging("api")
    start_metrics_server(settings.metrics_port)

    db = DatabaseManager(settings)
    await _connect_with_retry(db)
    init_dependencies(db)

    logger.info("api_service_started", host=settings.api_host, port=settings.api_port)

    yield

    await db.disconnect()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without a DB."""
    app = FastAPI(
        title="Live Chess Tracker API",
        description="Live tournament games, commentary and results",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)
    app.include_router(games_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> Dict[str, Union[str, bool]]:
        """Readiness check against the database."""
        db_ok = False
        try:
            async with get_db().read_session() as session:
                await session.execute(text("SELECT 1"))
                db_ok = True
        except (RuntimeError, SQLAlchemyError, OSError) as exc:
            logger.warning("readiness_db_failed", error=str(exc))

        return {"status": "ok" if db_ok else "degraded", "database": db_ok}

    return app


app = create_app()
