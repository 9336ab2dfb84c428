"""Token engine: issuance, validation, refresh rotation and revocation.

The operating mode is fixed at construction. In stateless mode tokens are
self-contained and cannot be revoked before expiry. In stateful mode every
refresh token is recorded in a ``TokenStore`` and is single-use: refreshing
deletes the old record before anything new is minted.
"""

import hmac
import logging
from datetime import UTC, datetime, timedelta

import redis.asyncio as redis

from tenant_auth.config import Settings, get_settings
from tenant_auth.errors import (
    ConfigurationError,
    NoStoreConfiguredError,
    RefreshTokenMismatchError,
    RefreshTokenNotFoundError,
    TokenExpiredError,
    TokenSignatureError,
    TokenValidationError,
    UnsupportedInStatelessModeError,
    WrongTokenTypeError,
)
from tenant_auth.store.base import TokenStore
from tenant_auth.store.redis_store import (
    RedisTokenStore,
    create_redis_client,
    get_redis_client,
)
from tenant_auth.tokens.codec import ClaimCodec
from tenant_auth.tokens.models import (
    DEFAULT_ACCESS_TOKEN_SECRET,
    DEFAULT_REFRESH_TOKEN_SECRET,
    TokenClaims,
    TokenConfig,
    TokenPair,
    TokenType,
)

logger = logging.getLogger(__name__)


def _other(token_type: TokenType) -> TokenType:
    return TokenType.REFRESH if token_type == TokenType.ACCESS else TokenType.ACCESS


class TokenEngine:
    """Issues and verifies access and refresh tokens.

    Holds only immutable configuration and an injected store, so one
    instance can serve any number of concurrent requests.
    """

    def __init__(
        self,
        config: TokenConfig | None = None,
        token_store: TokenStore | None = None,
    ):
        """Initialize the token engine.

        Args:
            config: Token configuration (uses defaults if not provided).
            token_store: Refresh token store, used only in stateful mode.

        Raises:
            ConfigurationError: If a secret is empty or an expiry is not positive.
        """
        self._config = config or TokenConfig()

        if not self._config.access_token_secret:
            raise ConfigurationError("access token secret is required")
        if not self._config.refresh_token_secret:
            raise ConfigurationError("refresh token secret is required")
        if self._config.access_token_expiry <= timedelta(0):
            raise ConfigurationError("access token expiry must be positive")
        if self._config.refresh_token_expiry <= timedelta(0):
            raise ConfigurationError("refresh token expiry must be positive")

        if (
            self._config.access_token_secret == DEFAULT_ACCESS_TOKEN_SECRET
            or self._config.refresh_token_secret == DEFAULT_REFRESH_TOKEN_SECRET
        ):
            logger.warning("Using default token secrets - development only")

        if token_store is not None and not self._config.stateful:
            logger.debug("Token store ignored in stateless mode")
            token_store = None

        self._store = token_store
        self._codec = ClaimCodec(issuer=self._config.issuer)

    @property
    def config(self) -> TokenConfig:
        """Get the engine configuration."""
        return self._config

    @property
    def token_store(self) -> TokenStore | None:
        """Get the refresh token store, if any."""
        return self._store

    @property
    def access_token_expiry(self) -> timedelta:
        """Get the configured access token lifetime."""
        return self._config.access_token_expiry

    @property
    def refresh_token_expiry(self) -> timedelta:
        """Get the configured refresh token lifetime."""
        return self._config.refresh_token_expiry

    def is_stateful(self) -> bool:
        """Check whether refresh tokens are tracked server-side."""
        return self._config.stateful

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def _issue(
        self,
        subject_id: str,
        tenant_id: str,
        tenant_type: str,
        token_type: TokenType,
    ) -> tuple[str, TokenClaims]:
        claims = self._codec.new_claims(
            subject_id,
            tenant_id,
            tenant_type,
            token_type,
            self._config.expiry_for(token_type),
        )
        return self._codec.encode(claims, self._config.secret_for(token_type)), claims

    def generate_access_token(
        self, subject_id: str, tenant_id: str = "", tenant_type: str = ""
    ) -> str:
        """Generate a signed access token.

        Args:
            subject_id: Authenticated principal ID.
            tenant_id: Owning tenant ID.
            tenant_type: Tenant classification.

        Returns:
            Access token string.

        Raises:
            SigningError: If signing fails.
        """
        token, _ = self._issue(subject_id, tenant_id, tenant_type, TokenType.ACCESS)
        return token

    async def generate_refresh_token(
        self, subject_id: str, tenant_id: str = "", tenant_type: str = ""
    ) -> str:
        """Generate a signed refresh token.

        In stateful mode the token is written to the store before it is
        returned; if the write fails no token is returned.

        Args:
            subject_id: Authenticated principal ID.
            tenant_id: Owning tenant ID.
            tenant_type: Tenant classification.

        Returns:
            Refresh token string.

        Raises:
            SigningError: If signing fails.
            StoreError: If the token cannot be stored.
        """
        token, claims = self._issue(subject_id, tenant_id, tenant_type, TokenType.REFRESH)
        if self._store is not None:
            await self._store.save(
                claims.subject_id, claims.token_id, token, claims.expires_at
            )
            logger.debug("Stored refresh token %s", claims.token_id)
        return token

    async def generate_token_pair(
        self, subject_id: str, tenant_id: str = "", tenant_type: str = ""
    ) -> TokenPair:
        """Generate an access token and a refresh token for one identity."""
        access_token = self.generate_access_token(subject_id, tenant_id, tenant_type)
        refresh_token = await self.generate_refresh_token(subject_id, tenant_id, tenant_type)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _verifies_as(self, token: str, token_type: TokenType) -> bool:
        try:
            claims = self._codec.decode(
                token, self._config.secret_for(token_type), verify_exp=False
            )
        except TokenValidationError:
            return False
        return claims.token_type == token_type

    def _validate(self, token: str, token_type: TokenType) -> TokenClaims:
        try:
            claims = self._codec.decode(token, self._config.secret_for(token_type))
        except TokenSignatureError as e:
            # A genuine token of the other type is reported as such.
            other = _other(token_type)
            if not self._verifies_as(token, other):
                raise
            raise WrongTokenTypeError(
                f"expected {token_type.value} token, got {other.value} token"
            ) from e

        if claims.token_type != token_type:
            raise WrongTokenTypeError(
                f"expected {token_type.value} token, got {claims.token_type.value} token"
            )
        return claims

    def validate_access_token(self, token: str) -> TokenClaims:
        """Validate an access token.

        Args:
            token: Access token string.

        Returns:
            Verified claims.

        Raises:
            TokenExpiredError: If the token has expired.
            TokenSignatureError: If the signature does not verify.
            MalformedTokenError: If the token is malformed.
            WrongTokenTypeError: If the token is not an access token.
        """
        return self._validate(token, TokenType.ACCESS)

    async def validate_refresh_token(self, token: str) -> TokenClaims:
        """Validate a refresh token.

        In stateful mode the token must also be present in the store with
        exactly the presented value.

        Args:
            token: Refresh token string.

        Returns:
            Verified claims.

        Raises:
            TokenValidationError: Any of the access-token failures, plus
                RefreshTokenNotFoundError or RefreshTokenMismatchError.
            StoreError: If the store cannot be read.
        """
        claims = self._validate(token, TokenType.REFRESH)

        if self._store is not None:
            stored = await self._store.get(claims.subject_id, claims.token_id)
            if stored is None:
                raise RefreshTokenNotFoundError("refresh token not found or invalid")
            if not hmac.compare_digest(stored.encode(), token.encode()):
                raise RefreshTokenMismatchError("refresh token not found in store")

        return claims

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    async def consume_refresh_token(self, token: str) -> TokenClaims:
        """Validate a refresh token and, in stateful mode, revoke it.

        Revocation happens before the caller mints anything new. If the
        record was already gone when deleted, a concurrent caller consumed
        it first and this call fails.

        Args:
            token: Refresh token string.

        Returns:
            Claims of the consumed token.

        Raises:
            TokenValidationError: If the token is invalid or already used.
            StoreError: If revocation fails.
        """
        claims = await self.validate_refresh_token(token)

        if self._store is not None:
            deleted = await self._store.delete(claims.subject_id, claims.token_id)
            if not deleted:
                raise RefreshTokenNotFoundError("refresh token was already used")
            logger.debug("Consumed refresh token %s", claims.token_id)

        return claims

    async def refresh_access_token(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new access token.

        Stateless mode cannot invalidate the old refresh token; it stays
        valid until its own expiry.

        Args:
            refresh_token: Refresh token string.

        Returns:
            New access token carrying the same identity.
        """
        claims = await self.consume_refresh_token(refresh_token)
        return self.generate_access_token(
            claims.subject_id, claims.tenant_id, claims.tenant_type
        )

    async def rotate_refresh_token(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new access and refresh token.

        Args:
            refresh_token: Refresh token string.

        Returns:
            New token pair carrying the same identity.
        """
        claims = await self.consume_refresh_token(refresh_token)
        return await self.generate_token_pair(
            claims.subject_id, claims.tenant_id, claims.tenant_type
        )

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def _require_store(self) -> TokenStore:
        if not self._config.stateful:
            raise UnsupportedInStatelessModeError("revoke not supported in stateless mode")
        if self._store is None:
            raise NoStoreConfiguredError("no store configured for stateful mode")
        return self._store

    async def revoke_refresh_token(self, subject_id: str, token_id: str) -> None:
        """Revoke one refresh token. Revoking an unknown token is a no-op.

        Args:
            subject_id: Token owner.
            token_id: Token ID (``jti``).

        Raises:
            UnsupportedInStatelessModeError: In stateless mode.
            NoStoreConfiguredError: If no store is configured.
            StoreError: If the store fails.
        """
        store = self._require_store()
        await store.delete(subject_id, token_id)

    async def revoke_all_refresh_tokens(self, subject_id: str) -> int:
        """Revoke every refresh token of a subject.

        Args:
            subject_id: Token owner.

        Returns:
            Number of tokens revoked.

        Raises:
            UnsupportedInStatelessModeError: In stateless mode.
            NoStoreConfiguredError: If no store is configured.
            StoreError: If the store fails.
        """
        store = self._require_store()
        return await store.delete_all(subject_id)

    async def cleanup(self) -> int:
        """Purge expired refresh tokens from the store, if there is one."""
        if self._store is None:
            return 0
        return await self._store.cleanup()

    async def close(self) -> None:
        """Close the token store."""
        if self._store is not None:
            await self._store.close()

    # ------------------------------------------------------------------
    # Expiration utilities
    # ------------------------------------------------------------------

    def inspect_token(
        self, token: str, token_type: TokenType | None = None
    ) -> TokenClaims:
        """Verify a token signature and return its claims, ignoring expiry.

        Without ``token_type`` the access secret is tried first and the
        refresh secret when the token does not verify as an access token,
        by signature or by type claim. Either way the type claim must match
        the secret that verified the token.

        Args:
            token: Token string.
            token_type: Expected token type, if known.

        Returns:
            Verified claims.

        Raises:
            TokenSignatureError: If the token verifies under neither secret.
            MalformedTokenError: If the token is malformed.
            WrongTokenTypeError: If the type claim matches neither verifying secret.
        """
        if token_type is None:
            try:
                return self.inspect_token(token, TokenType.ACCESS)
            except (TokenSignatureError, WrongTokenTypeError):
                return self.inspect_token(token, TokenType.REFRESH)

        claims = self._codec.decode(
            token, self._config.secret_for(token_type), verify_exp=False
        )
        if claims.token_type != token_type:
            raise WrongTokenTypeError(
                f"token signed as {token_type.value} claims to be {claims.token_type.value}"
            )
        return claims

    def get_token_expiration(
        self, token: str, token_type: TokenType | None = None
    ) -> datetime:
        """Get the expiration time of a token.

        The signature is verified, expiry is not. Without ``token_type``
        the access secret is tried first, then the refresh secret.

        Args:
            token: Token string.
            token_type: Expected token type, if known.

        Returns:
            Expiration time (UTC).

        Raises:
            TokenValidationError: If the token verifies under neither secret.
        """
        return self.inspect_token(token, token_type).expires_at

    def get_token_remaining_time(
        self, token: str, token_type: TokenType | None = None
    ) -> timedelta:
        """Get the time left until a token expires.

        Raises:
            TokenExpiredError: If the token has already expired.
        """
        remaining = self.get_token_expiration(token, token_type) - datetime.now(UTC)
        if remaining <= timedelta(0):
            raise TokenExpiredError("token is expired")
        return remaining

    def is_token_expired(self, token: str, token_type: TokenType | None = None) -> bool:
        """Check whether a token has expired."""
        return datetime.now(UTC) >= self.get_token_expiration(token, token_type)


def create_token_engine(
    settings: Settings | None = None,
    token_store: TokenStore | None = None,
    redis_client: redis.Redis | None = None,
) -> TokenEngine:
    """Build a token engine from settings.

    In stateful mode without an explicit store, a Redis store is created on
    ``redis_client`` (or a new client built from settings).

    Args:
        settings: Application settings.
        token_store: Refresh token store to use.
        redis_client: Redis client for the default store.

    Returns:
        TokenEngine instance.
    """
    settings = settings or get_settings()
    config = TokenConfig.from_settings(settings)
    if config.stateful and token_store is None:
        token_store = RedisTokenStore(redis_client or create_redis_client(settings))
    return TokenEngine(config, token_store)


# Global token engine instance (lazily initialized)
_engine: TokenEngine | None = None


def get_token_engine() -> TokenEngine:
    """Get the global token engine instance.

    Returns:
        TokenEngine instance.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        client = get_redis_client() if settings.token_stateful else None
        _engine = create_token_engine(settings, redis_client=client)
    return _engine
