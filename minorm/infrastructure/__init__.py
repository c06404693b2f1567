"""
Infrastructure package for minorm.

Centralizes database connectivity concerns (connection providers, pooling, DSN
building). Keep this layer focused on I/O and resource management, decoupled
from SQL generation and mapping logic.
"""

from minorm.infrastructure.db_factory import (
    ConnectionProvider,
    DirectConnectionProvider,
    PooledConnectionProvider,
    build_dsn,
)

__all__ = [
    "ConnectionProvider",
    "DirectConnectionProvider",
    "PooledConnectionProvider",
    "build_dsn",
]
