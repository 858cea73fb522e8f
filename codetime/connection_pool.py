"""
CODETIME — Async Connection Pool.

asyncio connection pool for the SQLite store. Handles connection
lifecycle, health checks and WAL mode. Connections run in autocommit
mode; multi-statement writes go through ``transaction()`` so that they
are applied as one ``BEGIN IMMEDIATE … COMMIT`` unit.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import aiosqlite

logger = logging.getLogger("codetime.pool")


class ConnectionPool:
    """
    Bounded connection pool for CODETIME.

    Features:
    - Min/max connection bounds
    - Connection health checks
    - Automatic reconnection
    - WAL mode, so readers see committed snapshots only
    """

    def __init__(
        self,
        db_path: str,
        min_connections: int = 1,
        max_connections: int = 5,
    ):
        self.db_path = db_path
        self.min_connections = min_connections
        self.max_connections = max_connections

        self._pool: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        self._active_count = 0
        self._lock = asyncio.Lock()
        # Semaphore limits concurrent acquisitions
        self._semaphore = asyncio.Semaphore(max_connections)
        self._initialized = False

    async def initialize(self) -> None:
        """Pre-warm pool with min_connections."""
        if self._initialized:
            return

        logger.info(
            "Initializing connection pool (min=%d, max=%d) at %s",
            self.min_connections,
            self.max_connections,
            self.db_path,
        )

        async with self._lock:
            if self._initialized:
                return

            for _ in range(self.min_connections):
                conn = await self._create_connection()
                await self._pool.put(conn)
                self._active_count += 1
            self._initialized = True

    async def _create_connection(self) -> aiosqlite.Connection:
        """Create a WAL-enabled async connection in autocommit mode."""
        try:
            conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        except (sqlite3.Error, OSError) as e:
            logger.critical("Failed to create DB connection: %s", e)
            raise

        await conn.execute("PRAGMA journal_mode=WAL;")
        await conn.execute("PRAGMA synchronous=NORMAL;")
        await conn.execute("PRAGMA foreign_keys=ON;")
        await conn.execute("PRAGMA busy_timeout=5000;")
        return conn

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Acquire a connection from the pool."""
        if not self._initialized:
            await self.initialize()

        await self._semaphore.acquire()
        conn: Optional[aiosqlite.Connection] = None

        try:
            try:
                conn = self._pool.get_nowait()
            except asyncio.QueueEmpty:
                conn = await self._create_connection()
                async with self._lock:
                    self._active_count += 1

            if not await self._is_healthy(conn):
                logger.warning("Connection unhealthy, replacing.")
                await self._close_conn(conn)
                conn = await self._create_connection()
                async with self._lock:
                    self._active_count += 1

            yield conn

        except Exception:
            # A connection that saw an error is not trusted back into the pool
            if conn:
                await self._close_conn(conn)
                conn = None
            raise

        finally:
            self._semaphore.release()
            if conn:
                await self._pool.put(conn)

    @asynccontextmanager
    async def transaction(
        self, immediate: bool = True
    ) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Acquire a connection inside a transaction.

        ``immediate`` takes the write lock up front; a deferred transaction
        gives multi-statement reads one consistent snapshot. Commits when
        the block exits normally, rolls back otherwise.
        """
        async with self.acquire() as conn:
            await conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")

    async def _is_healthy(self, conn: aiosqlite.Connection) -> bool:
        """Check if connection is alive."""
        try:
            async with conn.execute("SELECT 1") as cursor:
                await cursor.fetchone()
            return True
        except (sqlite3.Error, ValueError):
            return False

    async def _close_conn(self, conn: aiosqlite.Connection) -> None:
        """Safely close a connection."""
        try:
            await conn.close()
        except (sqlite3.Error, ValueError) as e:
            logger.warning("Error closing connection: %s", e)
        async with self._lock:
            self._active_count = max(0, self._active_count - 1)

    async def close(self) -> None:
        """Close all connections in the pool."""
        logger.info("Closing connection pool...")
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                await self._close_conn(conn)
            except asyncio.QueueEmpty:
                break
        self._initialized = False
