"""PostgreSQL adapter using psycopg (v3+)."""

from __future__ import annotations

import queue
from typing import Any

from eager_aggregates.core.connection import ConnectionConfig
from eager_aggregates.core.exceptions import ConnectionError, PoolError  # noqa: A004


def _build_conninfo(config: ConnectionConfig) -> str:
    """Build a libpq connection string from config fields."""
    parts: list[str] = []
    if config.host is not None:
        parts.append(f"host={config.host}")
    if config.port is not None:
        parts.append(f"port={config.port}")
    if config.user is not None:
        parts.append(f"user={config.user}")
    if config.password is not None:
        parts.append(f"password={config.password}")
    parts.append(f"dbname={config.database}")
    for key, value in config.extra.items():
        parts.append(f"{key}={value}")
    return " ".join(parts)


class PostgresqlAdapter:
    """PostgreSQL adapter using psycopg (v3+) with dict rows."""

    def __init__(self) -> None:
        self._timeout: float = 30

    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def create_pool(self, config: ConnectionConfig) -> queue.Queue[Any]:
        import psycopg
        import psycopg.rows

        self._timeout = config.pool_timeout
        conninfo = _build_conninfo(config)
        pool: queue.Queue[Any] = queue.Queue()
        for _ in range(max(config.pool_size, 1)):
            try:
                conn = psycopg.connect(conninfo, row_factory=psycopg.rows.dict_row)
            except psycopg.OperationalError as e:
                raise ConnectionError(f"Cannot connect to PostgreSQL: {e}") from e
            pool.put(conn)
        return pool

    def acquire_connection(self, pool: queue.Queue[Any]) -> Any:
        try:
            return pool.get(timeout=self._timeout)
        except queue.Empty:
            raise PoolError(f"No connection became available within {self._timeout}s") from None

    def release_connection(self, connection: Any, pool: queue.Queue[Any]) -> None:
        pool.put(connection)

    def close_pool(self, pool: queue.Queue[Any]) -> None:
        while True:
            try:
                pool.get_nowait().close()
            except queue.Empty:
                return

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return connection.execute(sql, params)
