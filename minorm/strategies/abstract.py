"""
Abstract SQL generation interfaces for minorm.

A mapping strategy is a pure, stateless translation from type descriptors (plus a
record for mutations) to SQL text. The session engine only talks to this
interface, so dialects can be swapped without touching hydration or resolution.
"""

from __future__ import annotations

import abc
from typing import Any, Mapping, Optional, Protocol, Sequence, runtime_checkable

from minorm.mapping.descriptor import ScalarField, TypeDescriptor


@runtime_checkable
class MappingStrategy(Protocol):
    """
    Common interface all SQL generation strategies must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier of the dialect.
    """

    name: str

    def column_type(self, field: ScalarField) -> str: ...

    def create_table(self, descriptor: TypeDescriptor, foreign_keys: Sequence[str] = ()) -> str: ...

    def drop_table(self, descriptor: TypeDescriptor) -> str: ...

    def insert(
        self,
        descriptor: TypeDescriptor,
        record: Any,
        foreign_keys: Optional[Mapping[str, int]] = None,
    ) -> str: ...

    def get(self, descriptor: TypeDescriptor, identifier: Any) -> str: ...

    def get_all(self, descriptor: TypeDescriptor) -> str: ...

    def update(
        self,
        descriptor: TypeDescriptor,
        record: Any,
        foreign_keys: Optional[Mapping[str, int]] = None,
    ) -> str: ...

    def delete(self, descriptor: TypeDescriptor, identifier: Any) -> str: ...

    def build_schema(
        self,
        descriptors: Sequence[TypeDescriptor],
        foreign_keys: Optional[Mapping[type, Sequence[str]]] = None,
    ) -> str: ...


class AbstractMappingStrategy(abc.ABC):
    """
    Optional ABC helper for class-based implementations.

    Subclasses implement the per-statement methods; ``build_schema`` is shared.
    """

    name: str

    @abc.abstractmethod
    def column_type(self, field: ScalarField) -> str:  # pragma: no cover - interface only
        """SQL column type of a scalar field."""
        raise NotImplementedError

    @abc.abstractmethod
    def create_table(self, descriptor: TypeDescriptor, foreign_keys: Sequence[str] = ()) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def drop_table(self, descriptor: TypeDescriptor) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def insert(
        self,
        descriptor: TypeDescriptor,
        record: Any,
        foreign_keys: Optional[Mapping[str, int]] = None,
    ) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, descriptor: TypeDescriptor, identifier: Any) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def get_all(self, descriptor: TypeDescriptor) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def update(
        self,
        descriptor: TypeDescriptor,
        record: Any,
        foreign_keys: Optional[Mapping[str, int]] = None,
    ) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, descriptor: TypeDescriptor, identifier: Any) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    def build_schema(
        self,
        descriptors: Sequence[TypeDescriptor],
        foreign_keys: Optional[Mapping[type, Sequence[str]]] = None,
    ) -> str:
        """
        Concatenate the create-table statements of several record types.

        Parameters
        ----------
        descriptors : sequence of TypeDescriptor
            Types to create, in order.
        foreign_keys : mapping | None
            Extra foreign-key columns per record type (see
            ``MappingRegistry.foreign_key_columns``).
        """
        foreign_keys = foreign_keys or {}
        return "".join(
            self.create_table(d, foreign_keys.get(d.record_type, ())) for d in descriptors
        )


__all__ = [
    "MappingStrategy",
    "AbstractMappingStrategy",
]
