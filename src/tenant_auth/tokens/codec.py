"""Claim construction, HS256 signing and verification using PyJWT."""

import logging
import threading
import time
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWTError,
)
from pydantic import ValidationError

from tenant_auth.errors import (
    MalformedTokenError,
    SigningError,
    TokenExpiredError,
    TokenSignatureError,
)
from tenant_auth.tokens.models import DEFAULT_ISSUER, TokenClaims, TokenType

logger = logging.getLogger(__name__)

_id_lock = threading.Lock()
_last_id_nanos = 0


def new_identifier(subject_id: str) -> str:
    """Generate a unique ``{subject_id}_{nanoseconds}`` identifier.

    The nanosecond component never repeats within the process, even when
    the wall clock does not advance between calls.

    Args:
        subject_id: Principal the identifier belongs to.

    Returns:
        Identifier string.
    """
    global _last_id_nanos
    with _id_lock:
        nanos = max(time.time_ns(), _last_id_nanos + 1)
        _last_id_nanos = nanos
    return f"{subject_id}_{nanos}"


class ClaimCodec:
    """Builds, signs and verifies token claims.

    Stateless apart from the issuer; safe to share between tasks.
    """

    ALGORITHM = "HS256"
    REQUIRED_CLAIMS = ["exp", "iat", "iss", "jti"]

    def __init__(self, issuer: str = DEFAULT_ISSUER):
        """Initialize the codec.

        Args:
            issuer: Issuer written to new claims and required when decoding.
        """
        self._issuer = issuer

    @property
    def issuer(self) -> str:
        """Get the issuer."""
        return self._issuer

    def new_claims(
        self,
        subject_id: str,
        tenant_id: str,
        tenant_type: str,
        token_type: TokenType,
        ttl: timedelta,
        now: datetime | None = None,
    ) -> TokenClaims:
        """Build claims for a new token.

        Timestamps are truncated to whole seconds, the precision of the
        ``iat``/``exp`` claims on the wire.

        Args:
            subject_id: Authenticated principal ID.
            tenant_id: Owning tenant ID.
            tenant_type: Tenant classification.
            token_type: Access or refresh.
            ttl: Token lifetime.
            now: Issue time (defaults to the current time).

        Returns:
            Unsigned claims.
        """
        issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
        return TokenClaims(
            subject_id=subject_id,
            tenant_id=tenant_id,
            tenant_type=tenant_type,
            token_type=token_type,
            token_id=new_identifier(subject_id),
            issuer=self._issuer,
            issued_at=issued_at,
            expires_at=issued_at + ttl,
        )

    def encode(self, claims: TokenClaims, secret: str) -> str:
        """Sign claims into a compact JWT.

        Args:
            claims: Claims to sign.
            secret: HMAC secret.

        Returns:
            Signed token string.

        Raises:
            SigningError: If the claims cannot be signed.
        """
        payload: dict[str, Any] = {
            "user_id": claims.subject_id,
            "agent_id": claims.tenant_id,
            "agent_type": claims.tenant_type,
            "token_type": claims.token_type.value,
            "iss": claims.issuer,
            "jti": claims.token_id,
            "iat": claims.issued_at,
            "exp": claims.expires_at,
        }
        try:
            return jwt.encode(payload, secret, algorithm=self.ALGORITHM)
        except (PyJWTError, TypeError, ValueError) as e:
            raise SigningError(f"Failed to sign token: {e}") from e

    def decode(self, token: str, secret: str, *, verify_exp: bool = True) -> TokenClaims:
        """Verify a token and parse its claims.

        Fails closed: any problem raises, partial claims are never returned.
        A token whose expiry equals the current time is already expired.

        Args:
            token: Token string.
            secret: HMAC secret expected to have signed the token.
            verify_exp: Reject expired tokens (disable only to inspect expiry).

        Returns:
            Verified claims.

        Raises:
            TokenExpiredError: If the token has expired.
            TokenSignatureError: If the signature does not verify.
            MalformedTokenError: If the token or its claims are invalid.
        """
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.ALGORITHM],
                issuer=self._issuer,
                options={
                    "verify_signature": True,
                    "verify_exp": verify_exp,
                    "verify_iat": True,
                    "verify_iss": True,
                    "require": self.REQUIRED_CLAIMS,
                },
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except InvalidSignatureError as e:
            raise TokenSignatureError("Token signature verification failed") from e
        except InvalidIssuerError as e:
            raise MalformedTokenError(f"Invalid token issuer: {e}") from e
        except DecodeError as e:
            raise MalformedTokenError(f"Failed to decode token: {e}") from e
        except InvalidTokenError as e:
            raise MalformedTokenError(f"Token validation failed: {e}") from e

        try:
            return TokenClaims.model_validate(payload)
        except ValidationError as e:
            logger.debug("Token claims failed schema validation: %s", e)
            raise MalformedTokenError("Token claims are invalid") from e
