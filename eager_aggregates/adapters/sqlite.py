"""SQLite adapter using stdlib sqlite3."""

from __future__ import annotations

import queue
import sqlite3
from typing import Any

from eager_aggregates.core.connection import ConnectionConfig
from eager_aggregates.core.exceptions import PoolError

_MEMORY = ":memory:"


class SqlitePool:
    """Blocking, thread-safe pool of sqlite3 connections."""

    def __init__(self, connections: list[sqlite3.Connection], timeout: float) -> None:
        self.timeout = timeout
        self._idle: queue.Queue[sqlite3.Connection] = queue.Queue()
        for conn in connections:
            self._idle.put(conn)

    def __len__(self) -> int:
        """Number of idle connections."""
        return self._idle.qsize()

    def get(self) -> sqlite3.Connection:
        try:
            return self._idle.get(timeout=self.timeout)
        except queue.Empty:
            raise PoolError(f"No connection became available within {self.timeout}s") from None

    def put(self, connection: sqlite3.Connection) -> None:
        self._idle.put(connection)

    def drain(self) -> list[sqlite3.Connection]:
        drained: list[sqlite3.Connection] = []
        while True:
            try:
                drained.append(self._idle.get_nowait())
            except queue.Empty:
                return drained


class SqliteAdapter:
    """SQLite adapter using stdlib sqlite3.

    Every ``:memory:`` connection is a separate database, so an in-memory
    pool always holds exactly one connection shared by all threads.
    """

    @property
    def paramstyle(self) -> str:
        return "named"

    def create_pool(self, config: ConnectionConfig) -> SqlitePool:
        size = 1 if config.database == _MEMORY else max(config.pool_size, 1)
        connections: list[sqlite3.Connection] = []
        for _ in range(size):
            conn = sqlite3.connect(config.database, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if config.database != _MEMORY:
                conn.execute("PRAGMA journal_mode=WAL")
            connections.append(conn)
        return SqlitePool(connections, timeout=config.pool_timeout)

    def acquire_connection(self, pool: SqlitePool) -> sqlite3.Connection:
        return pool.get()

    def release_connection(self, connection: sqlite3.Connection, pool: SqlitePool) -> None:
        pool.put(connection)

    def close_pool(self, pool: SqlitePool) -> None:
        for conn in pool.drain():
            conn.close()

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> sqlite3.Cursor:
        """Execute SQL and return a cursor."""
        return connection.execute(sql, params or {})
