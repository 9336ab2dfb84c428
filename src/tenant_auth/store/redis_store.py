"""Redis-backed refresh token and session stores."""

import logging
from datetime import UTC, datetime

import redis.asyncio as redis
from redis.exceptions import RedisError

from tenant_auth.config import Settings, get_settings
from tenant_auth.errors import StoreError

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = "\\*?[]"


def escape_pattern(value: str) -> str:
    """Escape glob metacharacters so ``value`` matches only itself in SCAN."""
    return "".join(f"\\{c}" if c in _GLOB_SPECIAL else c for c in value)


def is_subject_token_key(key: str, prefix: str, subject_id: str) -> bool:
    """Check that a scanned key holds a token minted for exactly ``subject_id``.

    The ``{prefix}:{subject_id}:*`` pattern also matches subjects that start
    with ``{subject_id}:``; their token IDs carry a different owner.
    """
    head = f"{prefix}:{subject_id}:"
    if not key.startswith(head):
        return False
    owner, sep, nanos = key[len(head):].rpartition("_")
    return sep == "_" and owner == subject_id and nanos.isdigit()


async def _scan_keys(client: redis.Redis, pattern: str) -> list[str]:
    """Collect keys matching a pattern with incremental SCAN."""
    keys: list[str] = []
    cursor = 0
    while True:
        cursor, batch = await client.scan(cursor, match=pattern, count=100)
        keys.extend(batch)
        if cursor == 0:
            break
    return keys


class RedisTokenStore:
    """Refresh token store on Redis strings with TTL.

    Keys are ``refresh_token:{subject_id}:{token_id}``; Redis expires them.
    """

    KEY_PREFIX = "refresh_token"

    def __init__(self, client: redis.Redis):
        """Initialize the store.

        Args:
            client: Shared Redis client (``decode_responses=True``).
        """
        self._redis = client

    def _get_key(self, subject_id: str, token_id: str) -> str:
        return f"{self.KEY_PREFIX}:{subject_id}:{token_id}"

    async def save(
        self, subject_id: str, token_id: str, token: str, expires_at: datetime
    ) -> None:
        """Store a refresh token until its expiry.

        Args:
            subject_id: Token owner.
            token_id: Token ID (``jti``).
            token: Raw token value.
            expires_at: Expiry; the key TTL is the time remaining until then,
                at least one millisecond.

        Raises:
            StoreError: If Redis fails.
        """
        # Claim timestamps are whole seconds, so a just-issued token can be at
        # or past its expiry here; the exp claim rejects it on validation.
        ttl_ms = max(int((expires_at - datetime.now(UTC)).total_seconds() * 1000), 1)

        key = self._get_key(subject_id, token_id)
        try:
            await self._redis.set(key, token, px=ttl_ms)
        except RedisError as e:
            raise StoreError(f"Failed to save refresh token to Redis: {e}") from e
        logger.debug("Saved refresh token %s (ttl=%dms)", token_id, ttl_ms)

    async def get(self, subject_id: str, token_id: str) -> str | None:
        """Get a stored refresh token.

        Args:
            subject_id: Token owner.
            token_id: Token ID.

        Returns:
            Stored token value, or None if absent.
        """
        try:
            return await self._redis.get(self._get_key(subject_id, token_id))
        except RedisError as e:
            raise StoreError(f"Failed to read refresh token from Redis: {e}") from e

    async def delete(self, subject_id: str, token_id: str) -> bool:
        """Delete a refresh token.

        Args:
            subject_id: Token owner.
            token_id: Token ID.

        Returns:
            True if the key existed and was removed.
        """
        try:
            deleted = await self._redis.delete(self._get_key(subject_id, token_id))
        except RedisError as e:
            raise StoreError(f"Failed to delete refresh token from Redis: {e}") from e
        return int(deleted) > 0

    async def delete_all(self, subject_id: str) -> int:
        """Delete all refresh tokens of a subject.

        Args:
            subject_id: Token owner.

        Returns:
            Number of tokens removed.
        """
        pattern = f"{self.KEY_PREFIX}:{escape_pattern(subject_id)}:*"
        try:
            keys = [
                key
                for key in await _scan_keys(self._redis, pattern)
                if is_subject_token_key(key, self.KEY_PREFIX, subject_id)
            ]
            if not keys:
                return 0
            deleted = await self._redis.delete(*keys)
        except RedisError as e:
            raise StoreError(
                f"Failed to delete refresh tokens for user {subject_id}: {e}"
            ) from e
        logger.debug("Deleted %d refresh tokens for %s", deleted, subject_id)
        return int(deleted)

    async def cleanup(self) -> int:
        """Expired keys are removed by Redis TTL; nothing to do."""
        return 0

    async def close(self) -> None:
        """Close Redis connection."""
        await self._redis.aclose()


class RedisSessionStore:
    """Session store on Redis hashes with TTL."""

    # Writes only when the hash still exists, so an update never recreates
    # an expired session without a TTL.
    _UPDATE_IF_EXISTS_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 0
end
redis.call('HSET', KEYS[1], unpack(ARGV))
return 1
"""

    def __init__(self, client: redis.Redis):
        """Initialize the store.

        Args:
            client: Shared Redis client (``decode_responses=True``).
        """
        self._redis = client
        self._update_script = client.register_script(self._UPDATE_IF_EXISTS_SCRIPT)

    async def create(self, key: str, fields: dict[str, str], ttl_seconds: int) -> None:
        """Write a hash and its TTL in one MULTI/EXEC transaction.

        Args:
            key: Hash key.
            fields: Field values.
            ttl_seconds: Key lifetime.
        """
        pipe = self._redis.pipeline(transaction=True)
        pipe.hset(key, mapping=fields)
        pipe.expire(key, ttl_seconds)
        try:
            await pipe.execute()
        except RedisError as e:
            raise StoreError(f"Failed to store session {key}: {e}") from e

    async def update(self, key: str, fields: dict[str, str]) -> bool:
        """Overwrite fields of an existing hash.

        Args:
            key: Hash key.
            fields: Field values to overwrite.

        Returns:
            False if the hash does not exist.
        """
        args: list[str] = []
        for name, value in fields.items():
            args.extend((name, value))
        try:
            result = await self._update_script(keys=[key], args=args)
        except RedisError as e:
            raise StoreError(f"Failed to update session {key}: {e}") from e
        return int(result) == 1

    async def get_fields(self, key: str, fields: list[str]) -> list[str | None]:
        """Read several hash fields.

        Args:
            key: Hash key.
            fields: Field names.

        Returns:
            Values in the order requested, None for missing fields.
        """
        try:
            return list(await self._redis.hmget(key, fields))
        except RedisError as e:
            raise StoreError(f"Failed to read session {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        """Check whether a key exists."""
        try:
            return int(await self._redis.exists(key)) > 0
        except RedisError as e:
            raise StoreError(f"Failed to check session existence: {e}") from e

    async def scan(self, pattern: str) -> list[str]:
        """List keys matching a pattern."""
        try:
            return await _scan_keys(self._redis, pattern)
        except RedisError as e:
            raise StoreError(f"Failed to scan keys {pattern}: {e}") from e

    async def close(self) -> None:
        """Close Redis connection."""
        await self._redis.aclose()


def create_redis_client(settings: Settings | None = None) -> redis.Redis:
    """Create a Redis client from settings.

    The client connects lazily on first command.

    Args:
        settings: Application settings.

    Returns:
        Redis client.
    """
    settings = settings or get_settings()
    return redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
    )


# Global Redis client shared by the token and session stores
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Get the global Redis client.

    Returns:
        Redis client.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = create_redis_client()
    return _redis_client
