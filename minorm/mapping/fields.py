"""
Field helpers used to declare how a dataclass maps to a table.

Record types are ordinary dataclasses; these helpers return ``dataclasses.field``
objects carrying a mapping spec in their metadata:

    @registry.entity(name="Owners")
    @dataclass
    class Owner:
        id: Optional[int] = primary_key()
        name: str = column(length=80, order="ASC")
        pets: List["Pet"] = one_to_many("Pet", foreign_key="owner_id")

Fields declared without a helper are mapped as plain scalar columns inferred from
their annotation.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, Optional, Union

METADATA_KEY = "minorm"


class ScalarKind(str, Enum):
    """Column kinds a scalar field can map to."""

    INTEGER = "INTEGER"
    BOOLEAN = "BOOLEAN"
    FLOAT = "FLOAT"
    DECIMAL = "DECIMAL"
    STRING = "STRING"
    CHAR = "CHAR"

    @property
    def quoted(self) -> bool:
        """Whether literal values of this kind are rendered inside single quotes."""
        return self in (ScalarKind.STRING, ScalarKind.CHAR)


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class RelationKind(str, Enum):
    ONE_TO_ONE = "OneToOne"
    ONE_TO_MANY = "OneToMany"


@dataclasses.dataclass(frozen=True)
class ColumnSpec:
    """Mapping options attached to a scalar field."""

    primary_key: bool = False
    kind: Optional[ScalarKind] = None
    length: Optional[int] = None
    order: Optional[SortDirection] = None


@dataclasses.dataclass(frozen=True)
class AssociationSpec:
    """Mapping options attached to an association field."""

    relation: RelationKind
    foreign_key: str
    target: Any = None
    required: bool = True


def _direction(order: Union[str, SortDirection, None]) -> Optional[SortDirection]:
    if order is None:
        return None
    try:
        return SortDirection(str(getattr(order, "value", order)).upper())
    except ValueError:
        raise ValueError(f"Unknown sort direction {order!r}; expected ASC or DESC") from None


def primary_key(*, order: Union[str, SortDirection, None] = None) -> Any:
    """
    Declare the primary-key field. Values are generated by the server
    (``serial``), so the field defaults to None until the row exists.
    """
    spec = ColumnSpec(primary_key=True, kind=ScalarKind.INTEGER, order=_direction(order))
    return dataclasses.field(default=None, metadata={METADATA_KEY: spec})


def column(
    *,
    length: Optional[int] = None,
    kind: Union[str, ScalarKind, None] = None,
    order: Union[str, SortDirection, None] = None,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """
    Declare a scalar column.

    Parameters
    ----------
    length : int | None
        Column length for string/char kinds (VARCHAR(length)).
    kind : str | ScalarKind | None
        Explicit column kind. Inferred from the annotation when omitted; needed
        for CHAR columns, which have no dedicated Python type.
    order : str | SortDirection | None
        Include this field in the ORDER BY of select-all queries.
    default, default_factory
        Passed through to ``dataclasses.field``.
    """
    if length is not None and length <= 0:
        raise ValueError(f"Column length must be positive, got {length}")
    spec = ColumnSpec(
        kind=ScalarKind(kind) if kind is not None else None,
        length=length,
        order=_direction(order),
    )
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={METADATA_KEY: spec},
    )


def one_to_one(target: Any = None, *, foreign_key: str, required: bool = True) -> Any:
    """
    Declare a one-to-one association. The target table holds ``foreign_key``
    pointing at this record's primary key.

    With ``required=True`` (the default) a missing related row is a MappingError;
    with ``required=False`` the field is left as None.
    """
    spec = AssociationSpec(
        relation=RelationKind.ONE_TO_ONE,
        foreign_key=foreign_key,
        target=target,
        required=required,
    )
    return dataclasses.field(
        default=None, compare=False, repr=False, metadata={METADATA_KEY: spec}
    )


def one_to_many(target: Any = None, *, foreign_key: str) -> Any:
    """
    Declare a one-to-many association. Every target row whose ``foreign_key``
    equals this record's primary key is collected, in target table order.
    """
    spec = AssociationSpec(
        relation=RelationKind.ONE_TO_MANY,
        foreign_key=foreign_key,
        target=target,
        required=False,
    )
    return dataclasses.field(
        default_factory=list, compare=False, repr=False, metadata={METADATA_KEY: spec}
    )


__all__ = [
    "METADATA_KEY",
    "ScalarKind",
    "SortDirection",
    "RelationKind",
    "ColumnSpec",
    "AssociationSpec",
    "primary_key",
    "column",
    "one_to_one",
    "one_to_many",
]
