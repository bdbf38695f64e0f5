"""FastAPI application entry point — wires everything together.

Usage:
    python -m quotedesk.main

Starts the database, the quote event bus and the quote expiration loop. The
quote HTTP routes are mounted by the API layer on top of this app.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from quotedesk.config import settings
from quotedesk.db.engine import db_lifespan
from quotedesk.events import start_event_bus, stop_event_bus
from quotedesk.quotes.expiration import run_expiration_loop

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting quotedesk (env=%s)", settings.environment)

    # 1. Database
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event bus
        await start_event_bus()

        # 3. Expiration sweep
        sweep_task: asyncio.Task[None] | None = None
        if settings.quotes.expiration_sweep_enabled:
            sweep_task = asyncio.create_task(
                run_expiration_loop(settings.quotes.expiration_sweep_interval_seconds)
            )
        else:
            logger.warning("Quote expiration sweep disabled")

        try:
            yield
        finally:
            logger.info("Shutting down quotedesk...")

            if sweep_task is not None:
                sweep_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweep_task
                logger.info("Expiration loop stopped")

            await stop_event_bus()

    logger.info("quotedesk shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="quotedesk API",
    description="Quote lifecycle and pricing engine for the home-services marketplace",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "quotedesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
