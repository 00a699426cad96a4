"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from src.config import get_settings

router = APIRouter(tags=["system"])
logger = logging.getLogger("adhera.health")


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also performs a lightweight DB connectivity check when a database is
    configured, and reports how many schedules the engine holds.
    """
    settings = get_settings()
    pool = getattr(request.app.state, "pool", None)
    coordinator = getattr(request.app.state, "coordinator", None)

    if pool is None:
        database = "in-memory"
        db_ok = True
    else:
        db_ok = False
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            db_ok = True
        except Exception as exc:
            logger.warning("Health check DB probe failed: %s", exc)
        database = "connected" if db_ok else "unreachable"

    return {
        "status": "healthy" if db_ok and coordinator is not None else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": database,
        "schedules": len(coordinator.schedules) if coordinator is not None else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
