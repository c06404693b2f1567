"""
Session-scoped identity cache.

Maps (record type, primary key) to the wrapped record a session already loaded
or wrote. It is an identity map, not a performance cache: nothing expires and
entries only leave through ``remove`` or ``clear``. Not safe for concurrent use.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Union

from minorm.errors import CacheError
from minorm.persistence.result import WrappedRecord


class IdentityCache:
    def __init__(self) -> None:
        self._entries: Dict[type, Dict[int, WrappedRecord]] = {}

    def contains(self, record_type: type, identifier: int) -> bool:
        return identifier in self._entries.get(record_type, {})

    def get(self, record_type: type, identifier: int) -> Optional[WrappedRecord]:
        return self._entries.get(record_type, {}).get(identifier)

    def store(self, records: Union[WrappedRecord, Iterable[WrappedRecord]]) -> None:
        """
        Store one wrapped record or a batch of them, overwriting existing entries.

        Raises
        ------
        CacheError
            If a record has no primary-key value to key it by.
        """
        if isinstance(records, WrappedRecord):
            records = (records,)
        for wrapped in records:
            identifier = self._key(wrapped, "store")
            self._entries.setdefault(wrapped.record_type, {})[identifier] = wrapped

    def remove(self, wrapped: WrappedRecord) -> None:
        """Drop the entry for ``wrapped``; a no-op if its type was never stored."""
        bucket = self._entries.get(wrapped.record_type)
        if bucket is None:
            return
        bucket.pop(self._key(wrapped, "remove"), None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._entries.values())

    @staticmethod
    def _key(wrapped: WrappedRecord, operation: str) -> int:
        identifier = wrapped.primary_key
        if identifier is None:
            raise CacheError(
                f"The primary key of {wrapped.record_type.__name__} record is empty",
                record_type=wrapped.record_type,
                operation=operation,
            )
        return identifier


__all__ = ["IdentityCache"]
