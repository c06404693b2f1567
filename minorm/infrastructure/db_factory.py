"""
Database connection providers for minorm.

A session owns exactly one connection for its lifetime and hands it back through
the provider that gave it out. Two providers are offered:

- PooledConnectionProvider: a psycopg_pool ConnectionPool, opened lazily.
- DirectConnectionProvider: one dedicated psycopg connection per acquire, with
  retry on transient connection failures using tenacity.

Connections are configured with autocommit on; sessions switch it off for the
span of an explicit transaction. A configured statement timeout is applied as a
server-side ``statement_timeout`` option.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from minorm.config import Settings, get_settings
from minorm.errors import DatabaseConnectionError
from minorm.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def connection_kwargs(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Keyword arguments applied to every connection a provider opens."""
    settings = settings or get_settings()
    kwargs: Dict[str, Any] = {"autocommit": True}
    if settings.db_statement_timeout_ms > 0:
        kwargs["options"] = f"-c statement_timeout={settings.db_statement_timeout_ms}"
    return kwargs


@runtime_checkable
class ConnectionProvider(Protocol):
    """
    Source of raw connections for sessions.

    ``acquire`` raises DatabaseConnectionError when no usable connection can be
    obtained; ``release`` must be called exactly once per acquired connection.
    """

    def acquire(self) -> Connection: ...

    def release(self, connection: Connection) -> None: ...

    def close(self) -> None: ...


class PooledConnectionProvider:
    """
    Connection provider backed by a psycopg ConnectionPool.

    Thread-safe: the pool is created once, under a lock, on first acquire.
    """

    def __init__(
        self,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        timeout: Optional[float] = None,
        dsn_override: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self.min_size = min_size or settings.db_pool_min_size
        self.max_size = max_size or settings.db_pool_max_size
        self.timeout = timeout or settings.db_pool_timeout_seconds
        self._dsn = dsn_override or build_dsn(settings)
        self._kwargs = connection_kwargs(settings)
        self._pool_instance: Optional[ConnectionPool] = None
        self._lock = threading.Lock()

    def _get_pool(self) -> ConnectionPool:
        with self._lock:
            if self._pool_instance is None:
                self._pool_instance = ConnectionPool(
                    conninfo=self._dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    kwargs=self._kwargs,
                    open=False,
                )
                self._pool_instance.open()
            return self._pool_instance

    def acquire(self) -> Connection:
        """
        Check a connection out of the pool.

        Raises
        ------
        DatabaseConnectionError
            If the pool cannot hand out a connection within ``timeout`` seconds.
        """
        try:
            return self._get_pool().getconn(timeout=self.timeout)
        except (PoolTimeout, psycopg.Error) as exc:
            message = f"Unable to acquire a pooled connection: {exc}"
            log.error(message, extra={"operation": "acquire"})
            raise DatabaseConnectionError(message, operation="acquire") from exc

    def release(self, connection: Connection) -> None:
        if self._pool_instance is None:
            connection.close()
            return
        self._pool_instance.putconn(connection)

    def close(self) -> None:
        """Close the pool and every connection it owns."""
        with self._lock:
            if self._pool_instance is not None:
                try:
                    self._pool_instance.close()
                except psycopg.Error as exc:
                    log.warning("Error closing connection pool", extra={"error": str(exc)})
                finally:
                    self._pool_instance = None

    def __enter__(self) -> "PooledConnectionProvider":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def _connect(dsn: str, **kwargs: Any) -> Connection:
    return psycopg.connect(dsn, **kwargs)


class DirectConnectionProvider:
    """
    Open a dedicated connection per acquire and close it on release.

    Connection attempts are retried with exponential backoff for transient
    errors; once attempts are exhausted the failure surfaces as
    DatabaseConnectionError.
    """

    def __init__(self, attempts: Optional[int] = None, dsn_override: Optional[str] = None) -> None:
        settings = get_settings()
        self.attempts = attempts or settings.db_connect_attempts
        self._dsn = dsn_override or build_dsn(settings)
        self._kwargs = connection_kwargs(settings)

    def acquire(self) -> Connection:
        connect = _connect.retry_with(stop=stop_after_attempt(self.attempts))
        try:
            return connect(self._dsn, **self._kwargs)
        except psycopg.Error as exc:
            message = f"Unable to connect after {self.attempts} attempt(s): {exc}"
            log.error(message, extra={"operation": "acquire"})
            raise DatabaseConnectionError(message, operation="acquire") from exc

    def release(self, connection: Connection) -> None:
        connection.close()

    def close(self) -> None:
        return None


__all__ = [
    "ConnectionProvider",
    "PooledConnectionProvider",
    "DirectConnectionProvider",
    "build_dsn",
    "connection_kwargs",
]
