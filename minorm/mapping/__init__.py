"""
Mapping package for minorm.

Declares how dataclass record types map to tables: field helpers, the immutable
type descriptors derived from them, and the registry that builds descriptors
once per type.
"""

from minorm.mapping.descriptor import (
    AssociationField,
    OrderField,
    ScalarField,
    TypeDescriptor,
)
from minorm.mapping.fields import (
    RelationKind,
    ScalarKind,
    SortDirection,
    column,
    one_to_many,
    one_to_one,
    primary_key,
)
from minorm.mapping.registry import MappingRegistry

__all__ = [
    # Declaration helpers
    "column",
    "primary_key",
    "one_to_one",
    "one_to_many",
    # Kinds
    "RelationKind",
    "ScalarKind",
    "SortDirection",
    # Descriptors
    "AssociationField",
    "OrderField",
    "ScalarField",
    "TypeDescriptor",
    "MappingRegistry",
]
