"""Pydantic models for token claims and engine configuration."""

from datetime import datetime, timedelta
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from tenant_auth.config import Settings

DEFAULT_ACCESS_TOKEN_SECRET = "default-access-secret"
DEFAULT_REFRESH_TOKEN_SECRET = "default-refresh-secret"
DEFAULT_ISSUER = "agent-service"


class TokenType(str, Enum):
    """Token type enumeration."""

    ACCESS = "access"
    REFRESH = "refresh"


class AuthenticatedIdentity(BaseModel):
    """Identity established by a verified token.

    Passed explicitly by callers instead of being recovered from an
    untyped request context.
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str = Field(..., description="Authenticated principal ID")
    tenant_id: str = Field(default="", description="Owning tenant (agent) ID")
    tenant_type: str = Field(default="", description="Tenant classification")


class TokenClaims(BaseModel):
    """Signed token claims.

    Field aliases are the claim names on the wire.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject_id: str = Field(..., alias="user_id", min_length=1, description="Subject (user ID)")
    tenant_id: str = Field(default="", alias="agent_id", description="Tenant (agent) ID")
    tenant_type: str = Field(default="", alias="agent_type", description="Tenant (agent) type")
    token_type: TokenType = Field(..., alias="token_type", description="Access or refresh")
    token_id: str = Field(..., alias="jti", min_length=1, description="Unique token ID")
    issuer: str = Field(default=DEFAULT_ISSUER, alias="iss", description="Issuer")
    issued_at: datetime = Field(..., alias="iat", description="Issued at time")
    expires_at: datetime = Field(..., alias="exp", description="Expiration time")

    @property
    def identity(self) -> AuthenticatedIdentity:
        """Identity carried by these claims."""
        return AuthenticatedIdentity(
            subject_id=self.subject_id,
            tenant_id=self.tenant_id,
            tenant_type=self.tenant_type,
        )


class TokenConfig(BaseModel):
    """Immutable token engine configuration."""

    model_config = ConfigDict(frozen=True)

    access_token_secret: str = Field(default=DEFAULT_ACCESS_TOKEN_SECRET, repr=False)
    refresh_token_secret: str = Field(default=DEFAULT_REFRESH_TOKEN_SECRET, repr=False)
    access_token_expiry: timedelta = Field(default=timedelta(minutes=15))
    refresh_token_expiry: timedelta = Field(default=timedelta(days=7))
    stateful: bool = Field(default=False)
    issuer: str = Field(default=DEFAULT_ISSUER)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        """Build a token configuration from application settings.

        Args:
            settings: Application settings.

        Returns:
            TokenConfig instance.
        """
        return cls(
            access_token_secret=settings.access_token_secret,
            refresh_token_secret=settings.refresh_token_secret,
            access_token_expiry=settings.access_token_expiry,
            refresh_token_expiry=settings.refresh_token_expiry,
            stateful=settings.token_stateful,
            issuer=settings.token_issuer,
        )

    def secret_for(self, token_type: TokenType) -> str:
        """Get the signing secret for a token type."""
        if token_type == TokenType.ACCESS:
            return self.access_token_secret
        return self.refresh_token_secret

    def expiry_for(self, token_type: TokenType) -> timedelta:
        """Get the lifetime for a token type."""
        if token_type == TokenType.ACCESS:
            return self.access_token_expiry
        return self.refresh_token_expiry


class TokenPair(NamedTuple):
    """Access and refresh token issued together."""

    access_token: str
    refresh_token: str
