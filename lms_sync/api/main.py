"""
FastAPI application for lms-catalog-sync.

Provides REST API for:
- Connecting a Canvas account (verify + store access token)
- Canvas course/file catalog sync
- Listing the synced catalog
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from lms_sync import __version__
from lms_sync.api.routers import sync_router
from lms_sync.core.logging import configure_logging
from lms_sync.db.database import dispose_engine, get_engine, init_db

settings = get_settings()


async def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    configure_logging(settings)
    logger.info("Starting lms-catalog-sync service...")
    await init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    logger.info("Shutting down lms-catalog-sync service...")
    await dispose_engine()


app = FastAPI(
    title="LMS Catalog Sync",
    description="""
    Incremental import of Canvas LMS courses and lecture files.

    ## Data Flow

    ```
    Canvas (courses, files)
        ↓ paginated REST, bearer token
    Eligibility window (available, created within the window)
        ↓ external-id reconciliation
    Catalog store (courses, files → remote download URLs)
    ```
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync_router.router, prefix="/api/sync", tags=["Sync"])


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "lms-catalog-sync",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = await _check_database_health()

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "database": db_status,
            "canvas": "configured" if settings.has_canvas_configured() else "not_configured",
        },
        "config": {
            "canvas_base_url": settings.canvas_base_url,
            "sync_window_months": settings.sync_window_months,
        },
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result
