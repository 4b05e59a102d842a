from __future__ import annotations

import asyncio
import itertools
import logging
import re
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiosqlite
import asyncpg

LOGGER = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\?")


@dataclass(frozen=True, slots=True)
class DatabaseDsn:
    driver: str
    value: str


def parse_database_dsn(url: str) -> DatabaseDsn:
    if url.startswith("sqlite:///"):
        return DatabaseDsn(driver="sqlite", value=url.removeprefix("sqlite:///"))
    if url.startswith(("postgresql://", "postgres://")):
        return DatabaseDsn(driver="postgresql", value=url)
    raise ValueError(f"Unsupported database URL {url!r}. Use sqlite:/// or postgresql://")


def qmark_to_dollar(query: str) -> str:
    counter = itertools.count(1)
    return _PLACEHOLDER.sub(lambda _: f"${next(counter)}", query)


def _status_rowcount(status: str) -> int:
    # asyncpg returns command tags such as "UPDATE 3" or "INSERT 0 1".
    tail = status.rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else 0


class Database:
    """Thin async facade over SQLite and PostgreSQL.

    Queries are written once with ``?`` placeholders; they are rewritten to
    ``$n`` for asyncpg. SQLite access is serialized through a lock because a
    single aiosqlite connection is shared by every caller.
    """

    def __init__(self, url: str, timeout_seconds: int = 30, pool_min_size: int = 2, pool_max_size: int = 10) -> None:
        self.dsn = parse_database_dsn(url)
        self.timeout_seconds = timeout_seconds
        self.pool_min_size = pool_min_size
        self.pool_max_size = pool_max_size
        self._sqlite: aiosqlite.Connection | None = None
        self._pool: asyncpg.Pool | None = None
        self._sqlite_lock = asyncio.Lock()

    @property
    def driver(self) -> str:
        return self.dsn.driver

    @property
    def is_sqlite(self) -> bool:
        return self.dsn.driver == "sqlite"

    async def connect(self) -> None:
        if not self.is_sqlite:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn.value,
                min_size=self.pool_min_size,
                max_size=self.pool_max_size,
                timeout=self.timeout_seconds,
            )
            LOGGER.info("Connected to PostgreSQL (pool %s-%s)", self.pool_min_size, self.pool_max_size)
            return

        path = Path(self.dsn.value)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._sqlite = await aiosqlite.connect(path, timeout=self.timeout_seconds)
        self._sqlite.row_factory = aiosqlite.Row
        await self._sqlite.execute("PRAGMA journal_mode = WAL;")
        await self._sqlite.commit()
        LOGGER.info("Connected to SQLite: %s", path)

    async def close(self) -> None:
        if self._sqlite is not None:
            await self._sqlite.close()
            self._sqlite = None
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def _sqlite_conn(self) -> AsyncIterator[aiosqlite.Connection]:
        if self._sqlite is None:
            raise RuntimeError("Database.connect() has not been awaited")
        async with self._sqlite_lock:
            yield self._sqlite

    @asynccontextmanager
    async def _pg_conn(self) -> AsyncIterator[asyncpg.Connection]:
        if self._pool is None:
            raise RuntimeError("Database.connect() has not been awaited")
        async with self._pool.acquire() as conn:
            yield conn

    async def execute(self, query: str, params: Sequence[Any] | None = None) -> int:
        """Run a write statement and return the number of affected rows."""
        args = tuple(params or ())
        if self.is_sqlite:
            async with self._sqlite_conn() as conn:
                cursor = await conn.execute(query, args)
                await conn.commit()
                return cursor.rowcount
        async with self._pg_conn() as conn:
            status = await conn.execute(qmark_to_dollar(query), *args)
        return _status_rowcount(status)

    async def execute_returning(self, query: str, params: Sequence[Any] | None = None) -> dict[str, Any] | None:
        """Run a write statement with a ``RETURNING`` clause and commit it."""
        args = tuple(params or ())
        if self.is_sqlite:
            async with self._sqlite_conn() as conn:
                cursor = await conn.execute(query, args)
                row = await cursor.fetchone()
                await conn.commit()
        else:
            async with self._pg_conn() as conn:
                row = await conn.fetchrow(qmark_to_dollar(query), *args)
        return dict(row) if row is not None else None

    async def fetchone(self, query: str, params: Sequence[Any] | None = None) -> dict[str, Any] | None:
        args = tuple(params or ())
        if self.is_sqlite:
            async with self._sqlite_conn() as conn:
                cursor = await conn.execute(query, args)
                row = await cursor.fetchone()
        else:
            async with self._pg_conn() as conn:
                row = await conn.fetchrow(qmark_to_dollar(query), *args)
        return dict(row) if row is not None else None

    async def fetchall(self, query: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        args = tuple(params or ())
        if self.is_sqlite:
            async with self._sqlite_conn() as conn:
                cursor = await conn.execute(query, args)
                rows = await cursor.fetchall()
        else:
            async with self._pg_conn() as conn:
                rows = await conn.fetch(qmark_to_dollar(query), *args)
        return [dict(row) for row in rows]

    async def executescript(self, sql_script: str) -> None:
        if self.is_sqlite:
            async with self._sqlite_conn() as conn:
                await conn.executescript(sql_script)
                await conn.commit()
            return
        async with self._pg_conn() as conn:
            await conn.execute(sql_script)
