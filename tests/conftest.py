"""
Pytest configuration for minorm.

Provides fixtures for:
- Settings override for integration tests
- Database connection management
- A connection provider bound to the test database
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from minorm.config import Settings, get_settings
from minorm.infrastructure.db_factory import DirectConnectionProvider


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    """
    Drop the cached settings around every test so monkeypatched environment
    variables are picked up.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "minorm"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def db_provider(test_dsn: str, db_connection_available: bool) -> DirectConnectionProvider:
    """
    Connection provider for integration tests; one dedicated connection per session.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")
    return DirectConnectionProvider(attempts=1, dsn_override=test_dsn)
