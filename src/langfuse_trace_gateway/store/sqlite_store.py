"""SQLite-backed trace cache.

One row per trace ID holding the JSON snapshot.  Writes use
``INSERT OR REPLACE`` inside a single transaction so readers only ever see the
previous snapshot or the new one.
"""

import asyncio
import json
import logging
import os
import sqlite3
import tempfile
import time
from typing import Any

import aiosqlite

from langfuse_trace_gateway.errors import CacheWriteError

logger = logging.getLogger(__name__)


class SqliteTraceCache:
    """Persistent trace cache backed by a single SQLite file.

    Uses a single persistent connection for the lifetime of the cache.  The
    connection is opened lazily on first use and closed explicitly via
    :meth:`close`.
    """

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            db_dir = os.path.expanduser("~/.langfuse-trace-gateway")
            if not os.path.exists(db_dir):
                try:
                    os.makedirs(db_dir, exist_ok=True)
                except (OSError, PermissionError):
                    db_dir = tempfile.gettempdir()
            db_path = os.path.join(db_dir, "trace_cache.db")
        else:
            db_path = os.path.expanduser(db_path)
            db_dir = os.path.dirname(db_path)
            if db_dir and not os.path.exists(db_dir):
                try:
                    os.makedirs(db_dir, exist_ok=True)
                except (OSError, PermissionError) as exc:
                    logger.warning("Failed to create directory %s: %s", db_dir, exc)

        self.db_path = db_path
        self._busy_timeout_ms = 20_000
        self._conn: aiosqlite.Connection | None = None
        self._conn_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def _get_conn(self) -> aiosqlite.Connection:
        """Return the persistent connection, initializing on first call."""
        if self._conn is not None:
            return self._conn
        async with self._conn_lock:
            if self._conn is None:
                conn = await aiosqlite.connect(self.db_path, timeout=self._busy_timeout_ms / 1000.0)
                for pragma in (
                    "PRAGMA journal_mode=DELETE",
                    "PRAGMA synchronous=NORMAL",
                    f"PRAGMA busy_timeout={self._busy_timeout_ms}",
                ):
                    try:
                        await conn.execute(pragma)
                    except Exception as exc:  # noqa: BLE001
                        logger.warning("SQLite pragma failed (%s): %s", pragma, exc)

                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS trace_cache (
                        trace_id   TEXT PRIMARY KEY,
                        data       TEXT NOT NULL,
                        fetched_at REAL NOT NULL
                    )
                    """
                )
                await conn.commit()
                self._conn = conn
        return self._conn

    async def close(self) -> None:
        """Close the persistent connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # TraceCache protocol
    # ------------------------------------------------------------------

    async def get_trace(self, trace_id: str) -> dict[str, Any] | None:
        conn = await self._get_conn()
        async with conn.execute("SELECT data FROM trace_cache WHERE trace_id = ?", (trace_id,)) as cur:
            row = await cur.fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def store_trace(self, trace_id: str, data: dict[str, Any]) -> None:
        try:
            payload = json.dumps(data)
            conn = await self._get_conn()
            await conn.execute(
                "INSERT OR REPLACE INTO trace_cache (trace_id, data, fetched_at) VALUES (?, ?, ?)",
                (trace_id, payload, time.time()),
            )
            await conn.commit()
        except (TypeError, ValueError, sqlite3.Error, OSError) as exc:
            if self._conn is not None:
                await self._conn.rollback()
            raise CacheWriteError(f"Failed to cache trace {trace_id}: {exc}") from exc

    async def delete_trace(self, trace_id: str) -> bool:
        conn = await self._get_conn()
        cur = await conn.execute("DELETE FROM trace_cache WHERE trace_id = ?", (trace_id,))
        await conn.commit()
        return cur.rowcount > 0

    async def flush(self) -> None:
        """No-op for SQLite (writes are synchronous within transactions)."""
