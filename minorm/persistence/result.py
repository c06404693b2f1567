"""
Wrapped records: a record instance plus the raw foreign-key values of its row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from minorm.mapping.descriptor import TypeDescriptor


@dataclass
class WrappedRecord:
    """
    Result envelope owned by the session and its identity cache.

    ``foreign_keys`` maps a column name to its integer value for every column
    of the row that is not a scalar field of the record. It is filled once, when
    the record is hydrated or handed to persist/update.
    """

    record: Any
    descriptor: TypeDescriptor
    foreign_keys: Dict[str, int] = field(default_factory=dict)

    @property
    def record_type(self) -> type:
        return self.descriptor.record_type

    @property
    def primary_key(self) -> Optional[int]:
        if self.record is None:
            return None
        return self.descriptor.primary_key_value(self.record)

    def capture_foreign_keys(self, row: Mapping[str, Any]) -> None:
        """
        Keep every integer-valued column of ``row`` that no scalar field covers.
        """
        scalar_columns = self.descriptor.scalar_by_column()
        for column, value in row.items():
            if column.lower() in scalar_columns or value is None or isinstance(value, bool):
                continue
            if isinstance(value, int):
                self.foreign_keys[column.lower()] = value

    def foreign_key(self, column: str) -> Optional[int]:
        """
        Value of a foreign-key column. Falls back to a scalar field of the same
        name when the record type declares the column itself.
        """
        value = self.foreign_keys.get(column.lower())
        if value is not None:
            return value
        scalar = self.descriptor.scalar_by_column().get(column.lower())
        if scalar is not None and self.record is not None:
            attr = getattr(self.record, scalar.name, None)
            return int(attr) if attr is not None else None
        return None


__all__ = ["WrappedRecord"]
