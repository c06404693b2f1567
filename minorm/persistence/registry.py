"""
Session registry: maps caller-chosen session keys to sessions.

The registry is an ordinary object created at application startup and passed to
whatever owns request or user-session lifecycles; closing it (or leaving its
``with`` block) closes every session it handed out.
"""

from __future__ import annotations

from typing import Dict, Optional

from minorm.infrastructure.db_factory import ConnectionProvider
from minorm.mapping.registry import MappingRegistry
from minorm.persistence.cache import IdentityCache
from minorm.persistence.session import Session
from minorm.strategies.abstract import MappingStrategy
from minorm.utils.logging import get_logger

log = get_logger(__name__)


class SessionRegistry:
    """
    Creates sessions from a connection provider and a mapping strategy.

    Parameters
    ----------
    provider : ConnectionProvider
        Source of connections; each session acquires one and releases it on close.
    strategy : MappingStrategy
        SQL generation strategy shared by every session.
    mappings : MappingRegistry
        Record types the sessions may map.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        strategy: MappingStrategy,
        mappings: MappingRegistry,
    ) -> None:
        self._provider = provider
        self._strategy = strategy
        self._mappings = mappings
        self._sessions: Dict[str, Session] = {}

    def create_session(self, key: Optional[str] = None) -> Session:
        """
        Open a new session on a freshly acquired connection.

        With a key, the session is tracked and returned by later ``get_session``
        calls; an existing session under the same key is closed and replaced.
        """
        session = Session(
            self._provider.acquire(),
            self._strategy,
            self._mappings,
            cache=IdentityCache(),
            provider=self._provider,
        )
        if key is not None:
            previous = self._sessions.pop(key, None)
            if previous is not None:
                previous.close()
            self._sessions[key] = session
        log.debug("Session created", extra={"session_key": key})
        return session

    def get_session(self, key: str) -> Session:
        """Return the session tracked under ``key``, creating it on first use."""
        session = self._sessions.get(key)
        if session is None or session.closed:
            session = self.create_session(key)
        return session

    def close_session(self, key: str) -> None:
        session = self._sessions.pop(key, None)
        if session is not None:
            session.close()
            log.debug("Session closed", extra={"session_key": key})

    def close_all(self) -> None:
        """Close every tracked session."""
        for key in list(self._sessions):
            self.close_session(key)

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __enter__(self) -> "SessionRegistry":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_all()


__all__ = ["SessionRegistry"]
