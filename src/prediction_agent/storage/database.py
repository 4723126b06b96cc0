"""
Async PostgreSQL connection management.

asyncpg pool with automatic reconnection (exponential backoff) and
retry of transient connection errors.
"""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional

import asyncpg
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# Errors that mean the connection, not the query, is broken
TRANSIENT_ERRORS = (
    asyncpg.InterfaceError,
    asyncpg.ConnectionDoesNotExistError,
    asyncpg.ConnectionFailureError,
    ConnectionResetError,
    ConnectionRefusedError,
    OSError,
)


class DatabaseConfig(BaseModel):
    """PostgreSQL database configuration."""

    model_config = ConfigDict(frozen=True)

    url: str
    min_connections: int = 1
    max_connections: int = 5
    command_timeout: float = 30.0

    # Reconnection
    reconnect_max_attempts: int = 5
    reconnect_initial_delay: float = 1.0
    reconnect_max_delay: float = 60.0

    # Per-operation retry
    retry_max_attempts: int = 3
    retry_initial_delay: float = 0.1
    retry_max_delay: float = 2.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> Optional["DatabaseConfig"]:
        """Config from DATABASE_URL, or None when it is unset."""
        source = os.environ if env is None else env
        url = (source.get("DATABASE_URL") or "").strip()
        if not url:
            return None
        return cls(url=url)


class Database:
    """
    Async PostgreSQL connection manager.

    Usage:
        db = Database(DatabaseConfig(url="postgresql://..."))
        await db.initialize()

        row = await db.fetchrow("SELECT * FROM agent_wallets WHERE agent_id = $1", agent_id)

        async with db.transaction() as conn:
            await conn.execute("INSERT INTO agent_fills ...")
            # Commits on success, rolls back on exception

        await db.close()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._reconnect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._pool is not None and not self._pool._closed

    async def _create_pool(self) -> asyncpg.Pool:
        return await asyncpg.create_pool(
            self.config.url,
            min_size=self.config.min_connections,
            max_size=self.config.max_connections,
            command_timeout=self.config.command_timeout,
        )

    async def _drop_pool(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        try:
            await pool.close()
        except TRANSIENT_ERRORS as e:
            logger.debug(f"Ignoring error while closing pool: {e}")

    async def initialize(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return
        self._pool = await self._create_pool()
        logger.info(
            f"Database pool initialized "
            f"(min={self.config.min_connections}, max={self.config.max_connections})"
        )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")

    async def _ensure_connected(self) -> None:
        if self.is_connected:
            return

        async with self._reconnect_lock:
            if self.is_connected:
                return

            delay = self.config.reconnect_initial_delay
            attempts = self.config.reconnect_max_attempts
            for attempt in range(1, attempts + 1):
                try:
                    await self._drop_pool()
                    self._pool = await self._create_pool()
                    async with self._pool.acquire() as conn:
                        await conn.fetchval("SELECT 1")
                    logger.info("Database reconnected")
                    return
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning(f"Database reconnect attempt {attempt}/{attempts} failed: {e}")
                    if attempt < attempts:
                        await asyncio.sleep(delay)
                        delay = min(delay * 2, self.config.reconnect_max_delay)

            raise RuntimeError(f"Database reconnect failed after {attempts} attempts")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Pooled connection; a broken connection drops the pool for the next caller."""
        await self._ensure_connected()
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Database connection error: {e}")
            await self._drop_pool()
            raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Connection inside a transaction: commit on exit, rollback on exception."""
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    async def _with_retry(self, method: str, query: str, *args):
        delay = self.config.retry_initial_delay
        attempts = self.config.retry_max_attempts

        for attempt in range(1, attempts + 1):
            try:
                async with self.connection() as conn:
                    return await getattr(conn, method)(query, *args)
            except TRANSIENT_ERRORS as e:
                if attempt == attempts:
                    logger.error(f"DB {method} failed after {attempts} attempts: {e}")
                    raise
                logger.warning(f"Transient DB error (attempt {attempt}): {e}. Retrying in {delay:.2f}s")
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.config.retry_max_delay)

    async def execute(self, query: str, *args) -> str:
        return await self._with_retry("execute", query, *args)

    async def fetch(self, query: str, *args) -> list[asyncpg.Record]:
        return await self._with_retry("fetch", query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        return await self._with_retry("fetchrow", query, *args)

    async def fetchval(self, query: str, *args):
        return await self._with_retry("fetchval", query, *args)
