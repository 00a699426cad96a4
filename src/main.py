"""Adhera API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000

Without ``DATABASE_URL`` the API runs on in-memory repositories.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config import Settings, get_settings
from src.routers import analytics, doses, health, history, schedules, subjects, tracking
from src.services.database import close_pool, create_pool
from src.tracking.config_loader import get_tracking_config, reload_tracking_config
from src.tracking.coordinator import TrackingCoordinator
from src.tracking.errors import RepositoryFailure
from src.tracking.repositories import (
    InMemoryDoseEventRepository,
    InMemoryHistoryRepository,
    InMemoryScheduleRepository,
    InMemorySubjectRepository,
)
from src.tracking.repositories.postgres import (
    PostgresDoseEventRepository,
    PostgresHistoryRepository,
    PostgresScheduleRepository,
    PostgresSubjectRepository,
    ensure_schema,
)

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("adhera")


# ---------- Wiring ----------

async def build_tracking(app: FastAPI, settings: Settings) -> None:
    """Create repositories and the coordinator, and attach them to ``app.state``."""
    config = (
        reload_tracking_config(Path(settings.tracking_config_path))
        if settings.tracking_config_path
        else get_tracking_config()
    )

    app.state.pool = None
    if settings.database_url:
        pool = await create_pool(settings)
        await ensure_schema(pool)
        app.state.pool = pool
        subject_store = PostgresSubjectRepository(pool)
        repositories = (
            PostgresScheduleRepository(pool),
            PostgresDoseEventRepository(pool),
            PostgresHistoryRepository(pool),
        )
    else:
        logger.warning("DATABASE_URL not set; using in-memory repositories")
        subject_store = InMemorySubjectRepository()
        repositories = (
            InMemoryScheduleRepository(),
            InMemoryDoseEventRepository(),
            InMemoryHistoryRepository(),
        )

    coordinator = TrackingCoordinator(subject_store, *repositories, config=config)
    await coordinator.load()
    app.state.subjects = subject_store
    app.state.coordinator = coordinator


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logging.getLogger("adhera").setLevel(settings.log_level.upper())
    logger.info(
        "Starting Adhera API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    await build_tracking(app, settings)
    yield
    await close_pool(app.state.pool)
    logger.info("Adhera API shut down")


# ---------- Error handlers ----------

async def repository_failure_handler(request: Request, exc: RepositoryFailure) -> JSONResponse:
    logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": f"Storage unavailable during {exc.operation}"},
    )


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Adhera API",
        description=(
            "Medication adherence tracking — schedules, dose logging, "
            "due-slot views and adherence analytics."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_exception_handler(RepositoryFailure, repository_failure_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix — always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(subjects.router, prefix=v1_prefix)
    app.include_router(schedules.router, prefix=v1_prefix)
    app.include_router(doses.router, prefix=v1_prefix)
    app.include_router(tracking.router, prefix=v1_prefix)
    app.include_router(analytics.router, prefix=v1_prefix)
    app.include_router(history.router, prefix=v1_prefix)

    return app


app = create_app()
