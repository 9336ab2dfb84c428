"""Error taxonomy for token and session operations.

Every error carries a ``kind`` so the HTTP layer can pick a status code
without matching on message text:

- ``validation``: bad credential, surface as 401
- ``not_found``: unknown session, surface as 401 or 404
- ``configuration``, ``mode``, ``store``, ``signing``: deployment or backend
  problems, surface as 500
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Broad error categories."""

    CONFIGURATION = "configuration"
    SIGNING = "signing"
    VALIDATION = "validation"
    MODE = "mode"
    STORE = "store"
    NOT_FOUND = "not_found"


class TokenError(Exception):
    """Base exception for all token and session errors."""

    kind: ErrorKind = ErrorKind.VALIDATION


class ConfigurationError(TokenError):
    """Raised when the engine is built with an unusable configuration."""

    kind = ErrorKind.CONFIGURATION


class SigningError(TokenError):
    """Raised when claims cannot be signed."""

    kind = ErrorKind.SIGNING


# Validation errors


class TokenValidationError(TokenError):
    """Raised when a presented token must be rejected."""

    kind = ErrorKind.VALIDATION


class TokenExpiredError(TokenValidationError):
    """Token is past its expiry."""


class TokenSignatureError(TokenValidationError):
    """Token signature does not verify under the expected secret."""


class MalformedTokenError(TokenValidationError):
    """Token is structurally invalid or carries unusable claims."""


class WrongTokenTypeError(TokenValidationError):
    """Token type claim does not match the verification context."""


class RefreshTokenNotFoundError(TokenValidationError):
    """Refresh token has no record in the store (revoked, used or expired)."""


class RefreshTokenMismatchError(TokenValidationError):
    """Stored refresh token value differs from the presented one."""


# Mode errors


class ModeError(TokenError):
    """Raised when an operation is not available in the configured mode."""

    kind = ErrorKind.MODE


class UnsupportedInStatelessModeError(ModeError):
    """Operation requires stateful mode."""


class NoStoreConfiguredError(ModeError):
    """Operation requires a store but none was configured."""


class SessionRequiresStatefulStoreError(ModeError):
    """Session management requires stateful mode with a session store."""


# Backend errors


class StoreError(TokenError):
    """Raised when the key-value backend fails."""

    kind = ErrorKind.STORE


class SessionNotFoundError(TokenError):
    """Session does not exist or has expired."""

    kind = ErrorKind.NOT_FOUND
