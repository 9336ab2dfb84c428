"""Token issuance and verification.

Access and refresh tokens are HS256 JWTs signed with separate secrets.
``TokenEngine`` is the entry point; ``ClaimCodec`` is the signing layer.
"""

from tenant_auth.tokens.codec import ClaimCodec, new_identifier
from tenant_auth.tokens.engine import TokenEngine, create_token_engine, get_token_engine
from tenant_auth.tokens.models import (
    AuthenticatedIdentity,
    TokenClaims,
    TokenConfig,
    TokenPair,
    TokenType,
)

__all__ = [
    # Codec
    "ClaimCodec",
    "new_identifier",
    # Engine
    "TokenEngine",
    "create_token_engine",
    "get_token_engine",
    # Models
    "AuthenticatedIdentity",
    "TokenClaims",
    "TokenConfig",
    "TokenPair",
    "TokenType",
]
