"""
Strategies package for minorm.

This module re-exports the abstract SQL generation interfaces and the concrete
dialect strategies so downstream code can import from `minorm.strategies` directly.
"""

from minorm.strategies.abstract import (
    AbstractMappingStrategy,
    MappingStrategy,
)
from minorm.strategies.postgres import PostgresMappingStrategy

__all__ = [
    # Abstracts
    "AbstractMappingStrategy",
    "MappingStrategy",
    # Concrete strategies
    "PostgresMappingStrategy",
]
