"""
Error hierarchy for minorm.

Every failure surfaced by the mapping engine derives from MinormError and carries
the record type and operation it happened in, so callers can log and act on it
without parsing messages. Nothing in the engine retries on these errors.
"""

from __future__ import annotations

from typing import Optional


class MinormError(Exception):
    """
    Base class for all minorm errors.

    Parameters
    ----------
    message : str
        Human-readable description of the failure.
    record_type : type | None
        Record type the operation was working on, if known.
    operation : str | None
        Short name of the failing operation (e.g. "get", "persist").
    """

    def __init__(
        self,
        message: str,
        *,
        record_type: Optional[type] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.record_type = record_type
        self.operation = operation

    @property
    def record_type_name(self) -> Optional[str]:
        return self.record_type.__name__ if self.record_type is not None else None

    def __str__(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.record_type is not None:
            context.append(f"record_type={self.record_type_name}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class DatabaseConnectionError(MinormError):
    """A connection could not be obtained or is no longer usable."""


class QueryError(MinormError):
    """
    Statement preparation or execution failed.

    The driver exception is chained as ``__cause__``; the attempted SQL is kept
    on ``sql``.
    """

    def __init__(
        self,
        message: str,
        *,
        sql: Optional[str] = None,
        record_type: Optional[type] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message, record_type=record_type, operation=operation)
        self.sql = sql


class MetadataError(MinormError):
    """A record type lacks structure an operation requires."""


class MappingError(MinormError):
    """Hydration, association assignment or primary-key lookup failed."""


class CacheError(MinormError):
    """The identity cache was asked to hold a record it cannot key."""


class RollbackError(MinormError):
    """Commit failed; the caller is expected to call ``rollback()``."""


__all__ = [
    "MinormError",
    "DatabaseConnectionError",
    "QueryError",
    "MetadataError",
    "MappingError",
    "CacheError",
    "RollbackError",
]
