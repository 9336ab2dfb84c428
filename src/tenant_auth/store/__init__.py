"""Refresh token and session storage.

Stores implement the small capability protocols in ``store.base``; the
Redis implementations are used in production and the in-memory ones in
tests and single-process development.
"""

from tenant_auth.store.base import SessionStore, TokenStore
from tenant_auth.store.memory import MemorySessionStore, MemoryTokenStore
from tenant_auth.store.redis_store import (
    RedisSessionStore,
    RedisTokenStore,
    create_redis_client,
    escape_pattern,
    get_redis_client,
    is_subject_token_key,
)

__all__ = [
    # Protocols
    "SessionStore",
    "TokenStore",
    # In-memory
    "MemorySessionStore",
    "MemoryTokenStore",
    # Redis
    "RedisSessionStore",
    "RedisTokenStore",
    "create_redis_client",
    "escape_pattern",
    "get_redis_client",
    "is_subject_token_key",
]
