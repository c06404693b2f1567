"""
Type descriptors: the structural description of how a record type maps to a table.

A descriptor is derived once per record type (see ``MappingRegistry.describe``)
from the dataclass fields and the specs attached by ``minorm.mapping.fields``.
Field order in every list matches the dataclass declaration order; SQL
generation relies on it for positional value lists.
"""

from __future__ import annotations

import dataclasses
import math
import types
import typing
from collections import abc
from decimal import Decimal
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel

from minorm.errors import MappingError, MetadataError
from minorm.mapping.fields import (
    METADATA_KEY,
    AssociationSpec,
    ColumnSpec,
    RelationKind,
    ScalarKind,
    SortDirection,
)

TABLE_NAME_SENTINEL = "none"

_KIND_BY_TYPE: Dict[type, ScalarKind] = {
    bool: ScalarKind.BOOLEAN,
    int: ScalarKind.INTEGER,
    float: ScalarKind.FLOAT,
    Decimal: ScalarKind.DECIMAL,
    str: ScalarKind.STRING,
}


class ScalarField(BaseModel):
    """A field stored in a column of the record's own table."""

    name: str
    kind: ScalarKind
    length: Optional[int] = None
    primary_key: bool = False

    model_config = {"frozen": True}


class AssociationField(BaseModel):
    """A field populated from another table by foreign-key equality."""

    name: str
    relation: RelationKind
    target: type
    foreign_key: str
    required: bool = True

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


class OrderField(BaseModel):
    name: str
    direction: SortDirection = SortDirection.ASC

    model_config = {"frozen": True}


class TypeDescriptor(BaseModel):
    """
    Immutable mapping description of one record type.
    """

    record_type: type
    table_name: str
    primary_key: Optional[ScalarField] = None
    scalar_fields: Tuple[ScalarField, ...] = ()
    association_fields: Tuple[AssociationField, ...] = ()
    order_fields: Tuple[OrderField, ...] = ()
    init_fields: FrozenSet[str] = frozenset()

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @property
    def type_name(self) -> str:
        return self.record_type.__name__

    def require_primary_key(self, operation: str) -> ScalarField:
        """
        Return the primary-key field, failing when the type has none.

        Raises
        ------
        MetadataError
            If the record type declares no primary key.
        """
        if self.primary_key is None:
            raise MetadataError(
                f"Record type {self.type_name} has no primary key field",
                record_type=self.record_type,
                operation=operation,
            )
        return self.primary_key

    def primary_key_value(self, record: Any) -> Optional[int]:
        """Read the primary-key value of a record; None when absent or unset."""
        if self.primary_key is None:
            return None
        value = getattr(record, self.primary_key.name, None)
        if value is None:
            return None
        try:
            return as_integer(value)
        except (TypeError, ValueError) as exc:
            raise MappingError(
                f"Primary key {self.primary_key.name}={value!r} of {self.type_name} is not an integer",
                record_type=self.record_type,
            ) from exc

    def scalar_by_column(self) -> Dict[str, ScalarField]:
        """Scalar fields keyed by lower-cased name, matching Postgres identifier folding."""
        return {f.name.lower(): f for f in self.scalar_fields}

    def has_associations(self) -> bool:
        return bool(self.association_fields)


def as_integer(value: Any) -> int:
    """
    Integral value of an int, or of a finite float or Decimal with no fractional
    part. Raises TypeError or ValueError for anything else, booleans and strings
    included.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise TypeError(f"{value!r} is not an integer")
    if isinstance(value, int):
        return value
    if not is_finite(value) or value != int(value):
        raise ValueError(f"{value!r} is not an integral number")
    return int(value)


def is_finite(value: Any) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    return math.isfinite(value)


def resolve_table_name(record_type: type, name: Optional[str]) -> str:
    """Explicit name unless missing or the "none" sentinel; otherwise the class name."""
    if name and name != TABLE_NAME_SENTINEL:
        return name
    return record_type.__name__


def _unwrap_optional(hint: Any) -> Any:
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return hint


def _infer_kind(record_type: type, field_name: str, hint: Any) -> ScalarKind:
    hint = _unwrap_optional(hint)
    kind = _KIND_BY_TYPE.get(hint) if isinstance(hint, type) else None
    if kind is None:
        raise MetadataError(
            f"Cannot map field {field_name!r} with annotation {hint!r} to a column; "
            "declare kind= explicitly or use int, bool, float, Decimal or str",
            record_type=record_type,
            operation="describe",
        )
    return kind


def _infer_target(record_type: type, field_name: str, relation: RelationKind, hint: Any) -> Any:
    hint = _unwrap_optional(hint)
    if relation is RelationKind.ONE_TO_MANY:
        args = typing.get_args(hint)
        if typing.get_origin(hint) in (list, tuple, abc.Sequence) and args:
            return args[0]
        raise MetadataError(
            f"Cannot infer the target of one-to-many field {field_name!r} from {hint!r}",
            record_type=record_type,
            operation="describe",
        )
    return hint


def extract_descriptor(
    record_type: type,
    table_name: Optional[str],
    resolve_target: Callable[[Any], type],
    localns: Optional[Dict[str, Any]] = None,
) -> TypeDescriptor:
    """
    Build the descriptor of a dataclass record type.

    Parameters
    ----------
    record_type : type
        The dataclass to describe.
    table_name : str | None
        Explicit table name, or None / "none" for the class name.
    resolve_target : callable
        Turns an association target (class, class name, forward reference) into
        a concrete registered type.
    localns : dict | None
        Extra names available when evaluating string annotations.

    Raises
    ------
    MetadataError
        If the type is not a dataclass, declares several primary keys, or has a
        field that cannot be mapped.
    """
    if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
        raise MetadataError(
            f"{record_type!r} is not a dataclass and cannot be mapped",
            record_type=record_type if isinstance(record_type, type) else None,
            operation="describe",
        )

    try:
        hints = typing.get_type_hints(record_type, localns=localns)
    except NameError:
        # Unresolvable forward references; fall back to raw annotations and
        # rely on explicit kinds/targets for the fields that need them.
        hints = {}

    primary: Optional[ScalarField] = None
    scalars: List[ScalarField] = []
    associations: List[AssociationField] = []
    orders: List[OrderField] = []

    for f in dataclasses.fields(record_type):
        spec = f.metadata.get(METADATA_KEY)
        hint = hints.get(f.name, f.type)

        if isinstance(spec, AssociationSpec):
            target = spec.target if spec.target is not None else _infer_target(
                record_type, f.name, spec.relation, hint
            )
            associations.append(
                AssociationField(
                    name=f.name,
                    relation=spec.relation,
                    target=resolve_target(target),
                    foreign_key=spec.foreign_key,
                    required=spec.required,
                )
            )
            continue

        spec = spec if isinstance(spec, ColumnSpec) else ColumnSpec()
        kind = spec.kind or _infer_kind(record_type, f.name, hint)
        scalar = ScalarField(
            name=f.name, kind=kind, length=spec.length, primary_key=spec.primary_key
        )
        if scalar.primary_key:
            if primary is not None:
                raise MetadataError(
                    f"Record type {record_type.__name__} declares more than one primary key "
                    f"({primary.name}, {f.name})",
                    record_type=record_type,
                    operation="describe",
                )
            primary = scalar
        scalars.append(scalar)
        if spec.order is not None:
            orders.append(OrderField(name=f.name, direction=spec.order))

    return TypeDescriptor(
        record_type=record_type,
        table_name=resolve_table_name(record_type, table_name),
        primary_key=primary,
        scalar_fields=tuple(scalars),
        association_fields=tuple(associations),
        order_fields=tuple(orders),
        init_fields=frozenset(f.name for f in dataclasses.fields(record_type) if f.init),
    )


__all__ = [
    "TABLE_NAME_SENTINEL",
    "ScalarField",
    "AssociationField",
    "OrderField",
    "TypeDescriptor",
    "resolve_table_name",
    "as_integer",
    "is_finite",
    "extract_descriptor",
]
