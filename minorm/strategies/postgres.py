"""
PostgreSQL SQL generation strategy.

Renders SQL text from type descriptors. Values are inlined as literals: string
and char kinds are single-quoted (embedded quotes doubled), booleans render as
``true``/``false``, None as ``NULL`` and numeric kinds as their literal text.
Numeric values must be finite numbers of a matching Python type; anything else
is a MappingError rather than SQL text.
Primary keys are always server-generated (``serial`` / ``default``).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

from minorm.config import get_settings
from minorm.errors import MappingError, MetadataError
from minorm.mapping.descriptor import ScalarField, TypeDescriptor, as_integer, is_finite
from minorm.mapping.fields import ScalarKind
from minorm.strategies.abstract import AbstractMappingStrategy

DEFAULT_CHAR_LENGTH = 1

_SQL_TYPES = {
    ScalarKind.INTEGER: "INTEGER",
    ScalarKind.BOOLEAN: "BOOL",
    ScalarKind.FLOAT: "DECIMAL(10,2)",
    ScalarKind.DECIMAL: "DECIMAL(10,2)",
}


class PostgresMappingStrategy(AbstractMappingStrategy):
    """
    Generate PostgreSQL statements for mapped record types.

    Stateless apart from the default VARCHAR length, so one instance can be
    shared by every session.
    """

    name: str = "postgres"

    def __init__(self, default_string_length: Optional[int] = None) -> None:
        settings = get_settings()
        self.default_string_length = default_string_length or settings.default_string_length

    # -- rendering helpers ---------------------------------------------------

    def column_type(self, field: ScalarField) -> str:
        if field.primary_key:
            return "serial"
        if field.kind is ScalarKind.STRING:
            return f"VARCHAR({field.length or self.default_string_length})"
        if field.kind is ScalarKind.CHAR:
            return f"CHAR({field.length or DEFAULT_CHAR_LENGTH})"
        return _SQL_TYPES[field.kind]

    def render_value(
        self, descriptor: TypeDescriptor, field: ScalarField, value: Any, operation: str
    ) -> str:
        """
        Render a Python value as a SQL literal according to the field's kind.

        Unquoted kinds only accept values of a matching Python type, so nothing
        but a number or a boolean literal is ever inlined without quotes.

        Raises
        ------
        MappingError
            If the value does not fit the field's kind.
        """
        if value is None:
            return "NULL"
        if field.kind.quoted:
            return "'" + str(value).replace("'", "''") + "'"
        if field.kind is ScalarKind.BOOLEAN:
            return "true" if value else "false"
        try:
            if field.kind is ScalarKind.INTEGER:
                return str(as_integer(value))
            return str(self._finite_number(value))
        except (TypeError, ValueError) as exc:
            raise MappingError(
                f"Value {value!r} of field {field.name} does not fit column kind {field.kind.value}",
                record_type=descriptor.record_type,
                operation=operation,
            ) from exc

    @staticmethod
    def _finite_number(value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            raise TypeError(f"{value!r} is not a number")
        if not is_finite(value):
            raise ValueError(f"{value!r} is not finite")
        return value

    @staticmethod
    def _render_key(descriptor: TypeDescriptor, value: Any, operation: str) -> str:
        if value is None:
            return "NULL"
        try:
            return str(as_integer(value))
        except (TypeError, ValueError) as exc:
            raise MappingError(
                f"Key value {value!r} for {descriptor.table_name} is not an integer",
                record_type=descriptor.record_type,
                operation=operation,
            ) from exc

    @staticmethod
    def _check_record(descriptor: TypeDescriptor, record: Any, operation: str) -> None:
        if not isinstance(record, descriptor.record_type):
            raise MappingError(
                f"Expected a {descriptor.type_name} record, got {type(record).__name__}",
                record_type=descriptor.record_type,
                operation=operation,
            )

    # -- statements ----------------------------------------------------------

    def create_table(self, descriptor: TypeDescriptor, foreign_keys: Sequence[str] = ()) -> str:
        if not descriptor.scalar_fields:
            raise MetadataError(
                f"Record type {descriptor.type_name} has no columns",
                record_type=descriptor.record_type,
                operation="create_table",
            )
        lines: List[str] = [f"  {f.name} {self.column_type(f)}" for f in descriptor.scalar_fields]
        lines.extend(f"  {column} INTEGER" for column in foreign_keys)
        if descriptor.primary_key is not None:
            lines.append(f"  primary key ({descriptor.primary_key.name})")
        return f"CREATE TABLE {descriptor.table_name} (\n" + ",\n".join(lines) + "\n);"

    def drop_table(self, descriptor: TypeDescriptor) -> str:
        return f"DROP TABLE IF EXISTS {descriptor.table_name};"

    def insert(
        self,
        descriptor: TypeDescriptor,
        record: Any,
        foreign_keys: Optional[Mapping[str, int]] = None,
    ) -> str:
        self._check_record(descriptor, record, "insert")
        values = [
            "default"
            if f.primary_key
            else self.render_value(descriptor, f, getattr(record, f.name, None), "insert")
            for f in descriptor.scalar_fields
        ]
        if not foreign_keys:
            return f"INSERT INTO {descriptor.table_name} VALUES ({', '.join(values)}) RETURNING *;"

        # Foreign-key columns are not part of the record, so name every column.
        columns = [f.name for f in descriptor.scalar_fields] + list(foreign_keys)
        values.extend(self._render_key(descriptor, v, "insert") for v in foreign_keys.values())
        return (
            f"INSERT INTO {descriptor.table_name} ({', '.join(columns)}) "
            f"VALUES ({', '.join(values)}) RETURNING *;"
        )

    def get(self, descriptor: TypeDescriptor, identifier: Any) -> str:
        pk = descriptor.require_primary_key("get")
        key = self._render_key(descriptor, identifier, "get")
        return f"SELECT * FROM {descriptor.table_name} WHERE {pk.name} = {key};"

    def get_all(self, descriptor: TypeDescriptor) -> str:
        sql = f"SELECT * FROM {descriptor.table_name}"
        if descriptor.order_fields:
            sql += " ORDER BY " + ", ".join(
                f"{o.name} {o.direction.value}" for o in descriptor.order_fields
            )
        return sql + ";"

    def update(
        self,
        descriptor: TypeDescriptor,
        record: Any,
        foreign_keys: Optional[Mapping[str, int]] = None,
    ) -> str:
        pk = descriptor.require_primary_key("update")
        self._check_record(descriptor, record, "update")
        pk_value = descriptor.primary_key_value(record)
        if pk_value is None:
            raise MappingError(
                f"Cannot update {descriptor.type_name}: primary key {pk.name} is not set",
                record_type=descriptor.record_type,
                operation="update",
            )

        assignments = [
            f"{f.name} = {self.render_value(descriptor, f, getattr(record, f.name, None), 'update')}"
            for f in descriptor.scalar_fields
            if not f.primary_key
        ]
        for column, value in (foreign_keys or {}).items():
            assignments.append(f"{column} = {self._render_key(descriptor, value, 'update')}")
        if not assignments:
            raise MetadataError(
                f"Record type {descriptor.type_name} has no columns to update",
                record_type=descriptor.record_type,
                operation="update",
            )
        return (
            f"UPDATE {descriptor.table_name} SET {', '.join(assignments)} "
            f"WHERE {pk.name} = {pk_value} RETURNING *;"
        )

    def delete(self, descriptor: TypeDescriptor, identifier: Any) -> str:
        pk = descriptor.require_primary_key("delete")
        key = self._render_key(descriptor, identifier, "delete")
        return f"DELETE FROM {descriptor.table_name} WHERE {pk.name} = {key} RETURNING *;"


__all__ = ["PostgresMappingStrategy"]
