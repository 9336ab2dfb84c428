"""Session data models."""

from datetime import UTC, datetime
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, Field

# Hash field names, shared with existing deployed session records
SESSION_FIELDS = [
    "user_id",
    "agent_id",
    "agent_type",
    "device_info",
    "ip_address",
    "last_seen",
    "status",
    "created_at",
]


class SessionStatus(str, Enum):
    """Session status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


def format_timestamp(value: datetime) -> str:
    """Format a timestamp as RFC 3339 in UTC, second precision."""
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp; empty values give None."""
    if not value:
        return None
    return datetime.fromisoformat(value)


class SessionRecord(BaseModel):
    """A logged-in device/IP pair tracked server-side."""

    subject_id: str = Field(..., description="Session owner (user ID)")
    tenant_id: str = Field(default="", description="Tenant (agent) ID")
    tenant_type: str = Field(default="", description="Tenant (agent) type")
    device_info: str = Field(default="", description="Client device description")
    ip_address: str = Field(default="", description="Client IP address")
    last_seen_at: datetime | None = Field(default=None, description="Last activity time")
    status: SessionStatus = Field(default=SessionStatus.ACTIVE, description="Session status")
    created_at: datetime | None = Field(default=None, description="Creation time")

    @property
    def is_active(self) -> bool:
        """Check whether the session is active."""
        return self.status == SessionStatus.ACTIVE

    def to_hash(self) -> dict[str, str]:
        """Serialize to store hash fields."""
        return {
            "user_id": self.subject_id,
            "agent_id": self.tenant_id,
            "agent_type": self.tenant_type,
            "device_info": self.device_info,
            "ip_address": self.ip_address,
            "last_seen": format_timestamp(self.last_seen_at) if self.last_seen_at else "",
            "status": self.status.value,
            "created_at": format_timestamp(self.created_at) if self.created_at else "",
        }

    @classmethod
    def from_hash(cls, values: dict[str, str | None]) -> "SessionRecord":
        """Deserialize from store hash fields; missing fields take defaults."""
        return cls(
            subject_id=values.get("user_id") or "",
            tenant_id=values.get("agent_id") or "",
            tenant_type=values.get("agent_type") or "",
            device_info=values.get("device_info") or "",
            ip_address=values.get("ip_address") or "",
            last_seen_at=parse_timestamp(values.get("last_seen")),
            status=SessionStatus(values.get("status") or SessionStatus.ACTIVE.value),
            created_at=parse_timestamp(values.get("created_at")),
        )


class SessionTokens(NamedTuple):
    """Tokens issued together with a new session."""

    access_token: str
    refresh_token: str
    session_id: str
