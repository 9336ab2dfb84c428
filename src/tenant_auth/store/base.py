"""Store capability interfaces.

Two small protocols rather than one: stateless deployments need neither,
and a token store does not need hash or scan support.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenStore(Protocol):
    """Persists refresh token records keyed by ``(subject_id, token_id)``."""

    async def save(
        self, subject_id: str, token_id: str, token: str, expires_at: datetime
    ) -> None:
        """Store a token value until ``expires_at``."""
        ...

    async def get(self, subject_id: str, token_id: str) -> str | None:
        """Return the stored token value, or None if absent or expired."""
        ...

    async def delete(self, subject_id: str, token_id: str) -> bool:
        """Delete a record; return True only if a record was removed."""
        ...

    async def delete_all(self, subject_id: str) -> int:
        """Delete every record of a subject; return how many were removed."""
        ...

    async def cleanup(self) -> int:
        """Purge expired records; return how many were removed."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...


@runtime_checkable
class SessionStore(Protocol):
    """Hash records with TTL, addressed by key."""

    async def create(self, key: str, fields: dict[str, str], ttl_seconds: int) -> None:
        """Write a hash and its TTL atomically."""
        ...

    async def update(self, key: str, fields: dict[str, str]) -> bool:
        """Overwrite fields of an existing hash without touching its TTL.

        Returns False, writing nothing, if the key does not exist.
        """
        ...

    async def get_fields(self, key: str, fields: list[str]) -> list[str | None]:
        """Read several fields; missing ones are None."""
        ...

    async def exists(self, key: str) -> bool:
        """Check whether a key exists."""
        ...

    async def scan(self, pattern: str) -> list[str]:
        """List keys matching a glob-style pattern."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...
