"""Token lifecycle and session tracking for multi-tenant services.

Issues, validates, rotates and revokes HS256 access and refresh tokens in
either stateless mode or stateful mode backed by Redis.
"""

from tenant_auth.errors import (
    ConfigurationError,
    ErrorKind,
    MalformedTokenError,
    ModeError,
    NoStoreConfiguredError,
    RefreshTokenMismatchError,
    RefreshTokenNotFoundError,
    SessionNotFoundError,
    SessionRequiresStatefulStoreError,
    SigningError,
    StoreError,
    TokenError,
    TokenExpiredError,
    TokenSignatureError,
    TokenValidationError,
    UnsupportedInStatelessModeError,
    WrongTokenTypeError,
)
from tenant_auth.sessions import SessionManager, SessionRecord, SessionStatus, SessionTokens
from tenant_auth.tokens import (
    AuthenticatedIdentity,
    ClaimCodec,
    TokenClaims,
    TokenConfig,
    TokenEngine,
    TokenPair,
    TokenType,
)

__version__ = "0.1.0"

__all__ = [
    # Tokens
    "AuthenticatedIdentity",
    "ClaimCodec",
    "TokenClaims",
    "TokenConfig",
    "TokenEngine",
    "TokenPair",
    "TokenType",
    # Sessions
    "SessionManager",
    "SessionRecord",
    "SessionStatus",
    "SessionTokens",
    # Errors
    "ConfigurationError",
    "ErrorKind",
    "MalformedTokenError",
    "ModeError",
    "NoStoreConfiguredError",
    "RefreshTokenMismatchError",
    "RefreshTokenNotFoundError",
    "SessionNotFoundError",
    "SessionRequiresStatefulStoreError",
    "SigningError",
    "StoreError",
    "TokenError",
    "TokenExpiredError",
    "TokenSignatureError",
    "TokenValidationError",
    "UnsupportedInStatelessModeError",
    "WrongTokenTypeError",
]
