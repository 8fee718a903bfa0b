"""
Relational connection collaborator backed by a psycopg3 connection pool

The engine only needs ``open()``, ``close()``, ``execute(sql)`` and
``query(sql)``; anything with that shape can stand in for the pool (see
``RelationalConnection``).
"""
import os
import time
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from psycopg import OperationalError
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from framepipe.db.dialect import POSTGRESQL
from framepipe.observability.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class RelationalConnection(Protocol):
    """What the engine consumes from a database connection."""

    product: str

    def open(self) -> None: ...

    def close(self) -> None: ...

    def execute(self, sql: str, params: tuple | None = None) -> int: ...

    def query(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]: ...


class DatabaseConnectionPool:
    """
    PostgreSQL connection pool manager using psycopg3

    Each context or writer owns one pool, opened in its ``open()`` and
    closed in its ``close()``.
    """

    product = POSTGRESQL

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        min_size: int = 1,
        max_size: int = 4,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize database connection pool

        Args:
            host: Database host (defaults to env var DB_HOST)
            port: Database port (defaults to env var DB_PORT)
            database: Database name (defaults to env var DB_NAME)
            user: Database user (defaults to env var DB_USER)
            password: Database password (defaults to env var DB_PASSWORD)
            min_size: Minimum pool size
            max_size: Maximum pool size
            timeout: Connection timeout in seconds
        """
        self.host = host or os.getenv("DB_HOST", "localhost")
        self.port = port or int(os.getenv("DB_PORT", "5432"))
        self.database = database or os.getenv("DB_NAME", "framepipe")
        self.user = user or os.getenv("DB_USER", "framepipe")
        self.password = password or os.getenv("DB_PASSWORD")

        if not self.password:
            raise ValueError(
                "Database password must be provided. "
                "Set DB_PASSWORD environment variable or pass to constructor."
            )

        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout

        self.conninfo = (
            f"host={self.host} "
            f"port={self.port} "
            f"dbname={self.database} "
            f"user={self.user} "
            f"password={self.password} "
            f"connect_timeout={int(self.timeout)}"
        )

        self._pool: ConnectionPool | None = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic. No-op when already open.

        Raises:
            OperationalError: If connection fails after all retries
        """
        if self._pool is not None:
            return

        self._pool = ConnectionPool(
            conninfo=self.conninfo,
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.timeout,
            kwargs={"row_factory": dict_row},
            open=False,
        )

        for attempt in range(1, max_retries + 1):
            try:
                self._pool.open(wait=True, timeout=self.timeout)
                logger.debug(f"Connected to {self.host}:{self.port}/{self.database}")
                return
            except OperationalError as e:
                if attempt < max_retries:
                    logger.warning(f"Connection attempt {attempt} failed: {e}")
                    time.sleep(retry_delay)
                else:
                    self._pool = None
                    raise OperationalError(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    ) from e

    def close(self) -> None:
        """Close the connection pool"""
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self):
        """
        Get a connection from the pool

        Raises:
            RuntimeError: If pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection() as conn:
            yield conn

    def query(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]:
        """
        Execute a SELECT statement and return its rows as dictionaries
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall() if cur.description else []

    def execute(self, sql: str, params: tuple | None = None) -> int:
        """
        Execute a DDL or DML statement and commit

        Returns:
            Number of rows affected (-1 for statements without a row count)
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rowcount = cur.rowcount
            conn.commit()
            return rowcount

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
