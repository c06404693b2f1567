"""
Persistence package for minorm.

Sessions, the identity cache they own, wrapped result records and the session
registry that hands sessions out.
"""

from minorm.persistence.cache import IdentityCache
from minorm.persistence.registry import SessionRegistry
from minorm.persistence.result import WrappedRecord
from minorm.persistence.session import Session

__all__ = [
    "IdentityCache",
    "Session",
    "SessionRegistry",
    "WrappedRecord",
]
