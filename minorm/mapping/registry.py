"""
Explicit registry of mapped record types.

Record types are registered once (usually at import time through the
``entity`` decorator). Their descriptors are built on first use and memoized,
so no per-call introspection happens on the query path and forward references
between record types resolve once every type is defined.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Optional, Union, overload

from minorm.errors import MetadataError
from minorm.mapping.descriptor import TypeDescriptor, extract_descriptor
from minorm.utils.logging import get_logger

log = get_logger(__name__)


class MappingRegistry:
    """
    Holds the record types an application maps and their descriptors.

    Example
    -------
        registry = MappingRegistry()

        @registry.entity(name="Animals")
        @dataclass
        class Animal:
            id: Optional[int] = primary_key()
            fur: bool = True

        registry.describe(Animal).table_name  # "Animals"
    """

    def __init__(self) -> None:
        self._names: Dict[type, Optional[str]] = {}
        self._descriptors: Dict[type, TypeDescriptor] = {}

    def register(self, record_type: type, name: Optional[str] = None) -> type:
        """
        Register a dataclass record type, optionally with an explicit table name.

        Re-registering a type replaces its table name and drops any memoized
        descriptor.
        """
        if not isinstance(record_type, type):
            raise MetadataError(f"Only classes can be registered, got {record_type!r}")
        self._names[record_type] = name
        self._descriptors.pop(record_type, None)
        log.debug(
            "Registered record type",
            extra={"record_type": record_type.__name__, "table_name": name},
        )
        return record_type

    @overload
    def entity(self, record_type: type) -> type: ...

    @overload
    def entity(self, record_type: None = None, *, name: Optional[str] = None) -> Callable[[type], type]: ...

    def entity(
        self, record_type: Optional[type] = None, *, name: Optional[str] = None
    ) -> Union[type, Callable[[type], type]]:
        """Decorator form of ``register``; usable bare or as ``entity(name=...)``."""
        if record_type is not None:
            return self.register(record_type)

        def decorator(cls: type) -> type:
            return self.register(cls, name=name)

        return decorator

    def is_registered(self, record_type: type) -> bool:
        return record_type in self._names

    def resolve(self, target: Any) -> type:
        """
        Turn an association target into a registered type.

        Accepts the class itself or a string naming it (class name or table name).
        """
        if isinstance(target, type):
            return target
        if isinstance(target, str):
            for record_type, name in self._names.items():
                if target in (record_type.__name__, name):
                    return record_type
        raise MetadataError(f"Association target {target!r} is not a registered record type")

    def describe(self, record_type: type) -> TypeDescriptor:
        """
        Return the descriptor of a registered record type, building it on first use.

        Raises
        ------
        MetadataError
            If the type is not registered or cannot be mapped.
        """
        descriptor = self._descriptors.get(record_type)
        if descriptor is not None:
            return descriptor
        if record_type not in self._names:
            raise MetadataError(
                f"Record type {getattr(record_type, '__name__', record_type)!r} is not registered",
                record_type=record_type if isinstance(record_type, type) else None,
                operation="describe",
            )
        localns = {cls.__name__: cls for cls in self._names}
        descriptor = extract_descriptor(
            record_type, self._names[record_type], self.resolve, localns=localns
        )
        self._descriptors[record_type] = descriptor
        return descriptor

    def descriptors(self) -> List[TypeDescriptor]:
        """Descriptors of every registered type, in registration order."""
        return [self.describe(record_type) for record_type in self._names]

    def foreign_key_columns(self, record_type: type) -> List[str]:
        """
        Foreign-key columns that registered associations place on ``record_type``'s table.

        Columns already declared as scalar fields of the type are left out, as are
        duplicates; order follows registration order of the owning types.
        """
        target = self.describe(record_type)
        declared = set(target.scalar_by_column())
        columns: List[str] = []
        for descriptor in self.descriptors():
            for association in descriptor.association_fields:
                if association.target is not record_type:
                    continue
                column = association.foreign_key
                if column.lower() in declared or column in columns:
                    continue
                columns.append(column)
        return columns

    def foreign_key_map(self) -> Dict[type, List[str]]:
        """``foreign_key_columns`` for every registered type."""
        return {record_type: self.foreign_key_columns(record_type) for record_type in self._names}

    def __contains__(self, record_type: object) -> bool:
        return record_type in self._names

    def __iter__(self) -> Iterator[type]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)


__all__ = ["MappingRegistry"]
