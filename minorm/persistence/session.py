"""
Session: the unit-of-work engine that executes mapping SQL and hydrates records.

A session owns one connection, one SQL strategy and one identity cache for the
duration of a caller-defined unit of work. Every public operation is atomic end
to end and blocks on the connection; sessions are not safe for concurrent use.

Association resolution runs in two phases. Rows are first hydrated into wrapped
records carrying their raw foreign-key columns; then each association field is
filled by loading the target type once per top-level call and matching foreign
keys against the owner's primary key. Targets are hydrated without resolving
their own associations, so resolution never recurses.

Usage:
    with Session(conn, PostgresMappingStrategy(), registry) as session:
        owner = session.get(Owner, 1)
        session.persist(Pet(name="Rex"), foreign_keys={"owner_id": owner.id})
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

import psycopg
from psycopg.rows import dict_row

from minorm.errors import (
    DatabaseConnectionError,
    MappingError,
    QueryError,
    RollbackError,
)
from minorm.infrastructure.db_factory import ConnectionProvider
from minorm.mapping.descriptor import AssociationField, ScalarField, TypeDescriptor, as_integer
from minorm.mapping.fields import RelationKind, ScalarKind
from minorm.mapping.registry import MappingRegistry
from minorm.persistence.cache import IdentityCache
from minorm.persistence.result import WrappedRecord
from minorm.strategies.abstract import MappingStrategy
from minorm.utils.logging import get_logger

log = get_logger(__name__)


class Session:
    """
    Entity manager bound to a single connection.

    Parameters
    ----------
    connection : psycopg.Connection
        Exclusively owned connection, expected in autocommit mode.
    strategy : MappingStrategy
        SQL generation strategy.
    mappings : MappingRegistry
        Registry describing every record type the session may touch.
    cache : IdentityCache | None
        Identity cache; a fresh one is created when omitted.
    provider : ConnectionProvider | None
        Provider the connection is released to on close. Without one the
        connection is closed directly.
    """

    def __init__(
        self,
        connection: Any,
        strategy: MappingStrategy,
        mappings: MappingRegistry,
        cache: Optional[IdentityCache] = None,
        provider: Optional[ConnectionProvider] = None,
    ) -> None:
        self._connection = connection
        self._strategy = strategy
        self._mappings = mappings
        self._cache = cache if cache is not None else IdentityCache()
        self._provider = provider
        self._closed = False
        self._in_transaction = False

    @property
    def cache(self) -> IdentityCache:
        return self._cache

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- public operations ---------------------------------------------------

    def get(self, record_type: type, identifier: int) -> Optional[Any]:
        """
        Fetch one record by primary key, from the cache when possible.

        Returns None when no row matches. A record loaded from the database is
        cached before its associations are resolved.
        """
        descriptor = self._describe(record_type)
        descriptor.require_primary_key("get")
        key = self._coerce_key(descriptor, identifier, "get")

        if self._cache.contains(record_type, key):
            log.debug(
                "Cache hit",
                extra={"record_type": descriptor.type_name, "operation": "get", "id": key},
            )
            return self._cache.get(record_type, key).record

        rows = self._execute(self._strategy.get(descriptor, key), descriptor, "get")
        if not rows:
            return None
        if len(rows) > 1:
            raise self._mapping_error(
                f"Expected at most one {descriptor.type_name} row for id {key}, got {len(rows)}",
                descriptor,
                "get",
            )

        wrapped = self._hydrate(descriptor, rows[0], "get")
        self._cache.store(wrapped)
        self._resolve(descriptor, [wrapped], "get")
        return wrapped.record

    def get_all(self, record_type: type) -> List[Any]:
        """Fetch every record of a type, in row order, with associations resolved."""
        descriptor = self._describe(record_type)
        rows = self._execute(self._strategy.get_all(descriptor), descriptor, "get_all")
        wrapped = [self._hydrate(descriptor, row, "get_all") for row in rows]
        if descriptor.primary_key is not None:
            self._cache.store(wrapped)
        self._resolve(descriptor, wrapped, "get_all")
        return [w.record for w in wrapped]

    def persist(self, record: Any, foreign_keys: Optional[Mapping[str, int]] = None) -> None:
        """
        Insert a new record and cache it.

        ``foreign_keys`` sets columns of the record's table that point at owning
        records (e.g. ``{"owner_id": 1}``). When the record's primary key is unset,
        the key generated by the server is copied onto it.
        """
        descriptor = self._describe(type(record))
        keys = self._normalize_keys(descriptor, foreign_keys, "persist")
        rows = self._execute(self._strategy.insert(descriptor, record, keys), descriptor, "persist")

        pk = descriptor.primary_key
        if pk is None:
            return
        if descriptor.primary_key_value(record) is None and rows:
            generated = self._column(rows[0], pk.name)
            if generated is not None:
                self._assign(record, pk.name, generated, descriptor, "persist")
        self._cache.store(WrappedRecord(record, descriptor, keys))

    def update(self, record: Any, foreign_keys: Optional[Mapping[str, int]] = None) -> None:
        """Write every non-key column of ``record`` and overwrite its cache entry."""
        descriptor = self._describe(type(record))
        keys = self._normalize_keys(descriptor, foreign_keys, "update")
        self._execute(self._strategy.update(descriptor, record, keys), descriptor, "update")

        previous = self._cache.get(type(record), descriptor.primary_key_value(record))
        merged = dict(previous.foreign_keys) if previous is not None else {}
        merged.update(keys)
        self._cache.store(WrappedRecord(record, descriptor, merged))

    def delete(self, record: Any) -> None:
        """
        Delete a record by its primary key and drop it from the cache.

        Raises
        ------
        MetadataError
            If the record type has no primary key.
        MappingError
            If the record's primary-key value is unset; no SQL is issued.
        """
        descriptor = self._describe(type(record))
        pk = descriptor.require_primary_key("delete")
        try:
            identifier = descriptor.primary_key_value(record)
        except MappingError as exc:
            raise self._mapping_error(exc.message, descriptor, "delete") from exc
        if identifier is None:
            raise self._mapping_error(
                f"Cannot delete {descriptor.type_name}: primary key {pk.name} is not set",
                descriptor,
                "delete",
            )

        self._execute(self._strategy.delete(descriptor, identifier), descriptor, "delete")
        self._cache.remove(WrappedRecord(record, descriptor))

    def begin_transaction(self) -> None:
        """Leave autocommit so following statements run in one transaction."""
        self._ensure_open("begin_transaction")
        try:
            self._connection.autocommit = False
        except psycopg.Error as exc:
            raise self._query_error("begin_transaction", exc) from exc
        self._in_transaction = True
        log.debug("Transaction started", extra={"operation": "begin_transaction"})

    def commit(self) -> None:
        """
        Commit the current transaction.

        Raises
        ------
        RollbackError
            If the commit fails; call ``rollback()`` in response.
        """
        self._ensure_open("commit")
        try:
            self._connection.commit()
        except psycopg.Error as exc:
            message = f"Commit failed, transaction must be rolled back: {exc}"
            log.error(message, extra={"operation": "commit"})
            raise RollbackError(message, operation="commit") from exc
        self._end_transaction("commit")

    def rollback(self) -> None:
        self._ensure_open("rollback")
        try:
            self._connection.rollback()
        except psycopg.Error as exc:
            raise self._query_error("rollback", exc) from exc
        self._end_transaction("rollback")

    def close(self) -> None:
        """
        Release the connection to its provider. Safe to call more than once; the
        connection is released exactly once and the session is unusable afterwards.
        """
        if self._closed:
            return
        try:
            if self._in_transaction:
                log.warning(
                    "Closing session with an open transaction; rolling back",
                    extra={"operation": "close"},
                )
                self.rollback()
        finally:
            self._closed = True
            self._cache.clear()
            if self._provider is not None:
                self._provider.release(self._connection)
            else:
                self._connection.close()

    def create_schema(self) -> None:
        """Create the tables of every registered record type."""
        foreign_keys = self._mappings.foreign_key_map()
        for descriptor in self._mappings.descriptors():
            sql = self._strategy.create_table(descriptor, foreign_keys[descriptor.record_type])
            self._execute(sql, descriptor, "create_table")

    def drop_schema(self) -> None:
        """Drop the tables of every registered record type, in reverse order."""
        for descriptor in reversed(self._mappings.descriptors()):
            self._execute(self._strategy.drop_table(descriptor), descriptor, "drop_table")

    # -- execution -----------------------------------------------------------

    def _ensure_open(self, operation: str, record_type: Optional[type] = None) -> None:
        if self._closed:
            raise DatabaseConnectionError(
                "Session is closed", record_type=record_type, operation=operation
            )

    def _execute(self, sql: str, descriptor: TypeDescriptor, operation: str) -> List[Dict[str, Any]]:
        self._ensure_open(operation, descriptor.record_type)
        log.debug(
            sql,
            extra={"record_type": descriptor.type_name, "operation": operation},
        )
        try:
            with self._connection.cursor(row_factory=dict_row) as cur:
                cur.execute(sql)
                if cur.description is None:
                    return []
                return list(cur.fetchall())
        except psycopg.Error as exc:
            message = (
                f"Error performing {operation} for entity type {descriptor.type_name}: {exc}"
            )
            log.error(message, extra={"record_type": descriptor.type_name, "operation": operation})
            if getattr(self._connection, "closed", False) or getattr(self._connection, "broken", False):
                raise DatabaseConnectionError(
                    message, record_type=descriptor.record_type, operation=operation
                ) from exc
            raise QueryError(
                message, sql=sql, record_type=descriptor.record_type, operation=operation
            ) from exc

    def _end_transaction(self, operation: str) -> None:
        if not self._in_transaction:
            return
        self._in_transaction = False
        try:
            self._connection.autocommit = True
        except psycopg.Error as exc:
            raise self._query_error(operation, exc) from exc

    def _query_error(self, operation: str, exc: Exception) -> QueryError:
        message = f"Error during {operation}: {exc}"
        log.error(message, extra={"operation": operation})
        return QueryError(message, operation=operation)

    # -- hydration -----------------------------------------------------------

    def _describe(self, record_type: type) -> TypeDescriptor:
        return self._mappings.describe(record_type)

    def _hydrate(self, descriptor: TypeDescriptor, row: Mapping[str, Any], operation: str) -> WrappedRecord:
        """Build a record from a result row and capture its foreign-key columns."""
        columns = {name.lower(): value for name, value in row.items()}
        init_values: Dict[str, Any] = {}
        late_values: Dict[str, Any] = {}
        for field in descriptor.scalar_fields:
            key = field.name.lower()
            if key not in columns:
                continue
            target = init_values if field.name in descriptor.init_fields else late_values
            target[field.name] = self._coerce(field, columns[key])

        try:
            record = descriptor.record_type(**init_values)
        except (TypeError, ValueError) as exc:
            raise self._mapping_error(
                f"Tried initializing an entity of type {descriptor.type_name} and failed: {exc}",
                descriptor,
                operation,
            ) from exc
        for name, value in late_values.items():
            self._assign(record, name, value, descriptor, operation)

        wrapped = WrappedRecord(record, descriptor)
        wrapped.capture_foreign_keys(row)
        return wrapped

    @staticmethod
    def _coerce(field: ScalarField, value: Any) -> Any:
        if value is None:
            return None
        if field.kind is ScalarKind.FLOAT and isinstance(value, Decimal):
            return float(value)
        if field.kind is ScalarKind.DECIMAL and isinstance(value, float):
            return Decimal(str(value))
        return value

    @staticmethod
    def _column(row: Mapping[str, Any], name: str) -> Any:
        lowered = name.lower()
        for column, value in row.items():
            if column.lower() == lowered:
                return value
        return None

    def _normalize_keys(
        self,
        descriptor: TypeDescriptor,
        foreign_keys: Optional[Mapping[str, int]],
        operation: str,
    ) -> Dict[str, int]:
        """Lower-case foreign-key column names; none may name a scalar field."""
        keys = {column.lower(): value for column, value in (foreign_keys or {}).items()}
        declared = sorted(set(keys) & set(descriptor.scalar_by_column()))
        if declared:
            raise self._mapping_error(
                f"Foreign-key columns {', '.join(declared)} are fields of {descriptor.type_name}; "
                "set them on the record instead",
                descriptor,
                operation,
            )
        return keys

    def _coerce_key(self, descriptor: TypeDescriptor, identifier: Any, operation: str) -> int:
        try:
            return as_integer(identifier)
        except (TypeError, ValueError) as exc:
            raise self._mapping_error(
                f"Primary key {identifier!r} for {descriptor.type_name} is not an integer",
                descriptor,
                operation,
            ) from exc

    def _assign(self, record: Any, name: str, value: Any, descriptor: TypeDescriptor, operation: str) -> None:
        try:
            setattr(record, name, value)
        except (AttributeError, TypeError) as exc:
            raise self._mapping_error(
                f"Unable to set field {name} of entity {descriptor.type_name}: {exc}",
                descriptor,
                operation,
            ) from exc

    def _mapping_error(self, message: str, descriptor: TypeDescriptor, operation: str) -> MappingError:
        log.error(message, extra={"record_type": descriptor.type_name, "operation": operation})
        return MappingError(message, record_type=descriptor.record_type, operation=operation)

    # -- association resolution ---------------------------------------------

    def _resolve(self, descriptor: TypeDescriptor, owners: Sequence[WrappedRecord], operation: str) -> None:
        """
        Fill the association fields of ``owners``.

        Each target type is loaded once for the whole batch.
        """
        if not owners or not descriptor.association_fields:
            return
        descriptor.require_primary_key(operation)

        for association in descriptor.association_fields:
            candidates = self._load_targets(association, operation)
            for owner in owners:
                if association.relation is RelationKind.ONE_TO_MANY:
                    value: Any = [c.record for c in self._match_many(candidates, association, owner)]
                else:
                    match = self._match_one(candidates, association, owner)
                    if match is None and association.required:
                        raise self._mapping_error(
                            f"Dependent entity {descriptor.type_name} (id={owner.primary_key}) has no "
                            f"related {association.target.__name__} through {association.foreign_key}; "
                            "make sure the foreign keys are set properly in the database",
                            descriptor,
                            operation,
                        )
                    value = match.record if match is not None else None
                self._assign(owner.record, association.name, value, descriptor, operation)

    def _load_targets(self, association: AssociationField, operation: str) -> List[WrappedRecord]:
        """
        Load every record of an association's target type.

        Records already in the cache are reused rather than replaced, so objects
        handed out earlier in the session keep their identity; their foreign keys
        are refreshed from the rows just read.
        """
        target = self._describe(association.target)
        rows = self._execute(self._strategy.get_all(target), target, operation)
        wrapped = [self._hydrate(target, row, operation) for row in rows]
        # Only fully resolved records may live in the cache.
        if target.primary_key is None or target.has_associations():
            return wrapped

        candidates: List[WrappedRecord] = []
        for fresh in wrapped:
            cached = self._cache.get(target.record_type, fresh.primary_key)
            if cached is None:
                self._cache.store(fresh)
                candidates.append(fresh)
            else:
                cached.foreign_keys.update(fresh.foreign_keys)
                candidates.append(cached)
        return candidates

    @staticmethod
    def _match_one(
        candidates: Sequence[WrappedRecord], association: AssociationField, owner: WrappedRecord
    ) -> Optional[WrappedRecord]:
        """First candidate pointing at ``owner``, or None when there is none."""
        for candidate in candidates:
            if candidate.foreign_key(association.foreign_key) == owner.primary_key:
                return candidate
        return None

    @staticmethod
    def _match_many(
        candidates: Sequence[WrappedRecord], association: AssociationField, owner: WrappedRecord
    ) -> List[WrappedRecord]:
        return [
            c for c in candidates if c.foreign_key(association.foreign_key) == owner.primary_key
        ]


__all__ = ["Session"]
