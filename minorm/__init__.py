"""
minorm - a minimal object-relational mapping runtime for PostgreSQL.

Turns dataclass records into table rows and back without hand-written SQL:

- Record types are declared as dataclasses and registered in a MappingRegistry,
  which derives each type's descriptor once.
- A mapping strategy renders SQL text (create table, insert, select, update,
  delete) from those descriptors.
- A Session executes the SQL on one connection, hydrates records, resolves
  one-to-one and one-to-many associations and keeps a per-session identity cache.
- A SessionRegistry hands sessions out on connections from a psycopg pool.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from minorm.config import Settings, get_settings
from minorm.errors import (
    CacheError,
    DatabaseConnectionError,
    MappingError,
    MetadataError,
    MinormError,
    QueryError,
    RollbackError,
)
from minorm.infrastructure.db_factory import (
    ConnectionProvider,
    DirectConnectionProvider,
    PooledConnectionProvider,
)
from minorm.mapping import (
    MappingRegistry,
    RelationKind,
    ScalarKind,
    SortDirection,
    TypeDescriptor,
    column,
    one_to_many,
    one_to_one,
    primary_key,
)
from minorm.persistence import IdentityCache, Session, SessionRegistry, WrappedRecord
from minorm.strategies import MappingStrategy, PostgresMappingStrategy
from minorm.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "MinormError",
    "DatabaseConnectionError",
    "QueryError",
    "MetadataError",
    "MappingError",
    "CacheError",
    "RollbackError",
    # Mapping
    "MappingRegistry",
    "TypeDescriptor",
    "RelationKind",
    "ScalarKind",
    "SortDirection",
    "column",
    "primary_key",
    "one_to_one",
    "one_to_many",
    # SQL generation
    "MappingStrategy",
    "PostgresMappingStrategy",
    # Sessions
    "IdentityCache",
    "Session",
    "SessionRegistry",
    "WrappedRecord",
    # Connections
    "ConnectionProvider",
    "DirectConnectionProvider",
    "PooledConnectionProvider",
    # Logging
    "configure_logging",
    "get_logger",
]
