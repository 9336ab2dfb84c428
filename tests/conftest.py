"""Pytest configuration and fixtures."""

import os
from datetime import timedelta

import pytest

# Set test environment variables before importing application modules
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret-0123456789abcdef"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret-0123456789abcdef"
os.environ["TOKEN_STATEFUL"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "DEBUG"

ACCESS_SECRET = os.environ["ACCESS_TOKEN_SECRET"]
REFRESH_SECRET = os.environ["REFRESH_TOKEN_SECRET"]


@pytest.fixture
def token_config():
    """Provide a stateless token configuration."""
    from tenant_auth.tokens import TokenConfig

    return TokenConfig(
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        access_token_expiry=timedelta(minutes=15),
        refresh_token_expiry=timedelta(days=7),
    )


@pytest.fixture
def stateful_config(token_config):
    """Provide a stateful token configuration."""
    return token_config.model_copy(update={"stateful": True})


@pytest.fixture
def engine(token_config):
    """Provide a stateless token engine."""
    from tenant_auth.tokens import TokenEngine

    return TokenEngine(token_config)


@pytest.fixture
def token_store():
    """Provide an in-memory refresh token store."""
    from tenant_auth.store import MemoryTokenStore

    return MemoryTokenStore()


@pytest.fixture
def stateful_engine(stateful_config, token_store):
    """Provide a stateful token engine backed by the in-memory store."""
    from tenant_auth.tokens import TokenEngine

    return TokenEngine(stateful_config, token_store)


@pytest.fixture
def session_store():
    """Provide an in-memory session store."""
    from tenant_auth.store import MemorySessionStore

    return MemorySessionStore()


@pytest.fixture
def session_manager(stateful_engine, session_store):
    """Provide a session manager on a stateful engine."""
    from tenant_auth.sessions import SessionManager

    return SessionManager(stateful_engine, session_store)


@pytest.fixture
def clear_settings_cache():
    """Reset cached settings around a test."""
    from tenant_auth.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
