"""asyncpg connection pool for the PostgreSQL-backed repositories.

The pool is created once at application startup (only when
``DATABASE_URL`` is configured) and handed to the repositories explicitly.
Every repository call runs inside its own transaction.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import asyncpg

from src.config import Settings, get_settings

logger = logging.getLogger("adhera.db")


async def create_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create the asyncpg connection pool.  Call once at app startup."""
    s = settings or get_settings()
    if not s.database_url:
        raise RuntimeError("DATABASE_URL is not configured")
    pool = await asyncpg.create_pool(
        s.database_url,
        min_size=s.database_pool_min_size,
        max_size=s.database_pool_max_size,
        command_timeout=30,
    )
    logger.info(
        "Database pool initialized (min=%d, max=%d)",
        s.database_pool_min_size,
        s.database_pool_max_size,
    )
    return pool


async def close_pool(pool: asyncpg.Pool | None) -> None:
    """Drain the pool.  Call at app shutdown."""
    if pool is not None:
        await pool.close()
        logger.info("Database pool closed")


@asynccontextmanager
async def transaction(pool: asyncpg.Pool) -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a connection and open a transaction on it.

    Usage::

        async with transaction(pool) as conn:
            await conn.execute("DELETE FROM dose_events WHERE subject_id = $1", subject_id)
    """
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def execute(pool: asyncpg.Pool, query: str, *args: Any) -> str:
    """Execute a single statement and return its status string."""
    async with transaction(pool) as conn:
        return await conn.execute(query, *args)


async def fetch(pool: asyncpg.Pool, query: str, *args: Any) -> list[asyncpg.Record]:
    """Fetch rows."""
    async with transaction(pool) as conn:
        return await conn.fetch(query, *args)


async def fetchrow(pool: asyncpg.Pool, query: str, *args: Any) -> asyncpg.Record | None:
    """Fetch a single row."""
    async with transaction(pool) as conn:
        return await conn.fetchrow(query, *args)


def affected_rows(status: str) -> int:
    """Parse the row count out of an asyncpg status string like ``'DELETE 3'``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, IndexError):
        return 0
