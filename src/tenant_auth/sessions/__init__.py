"""Session tracking for stateful deployments."""

from tenant_auth.sessions.manager import (
    SessionManager,
    create_session_manager,
    get_session_manager,
)
from tenant_auth.sessions.models import (
    SESSION_FIELDS,
    SessionRecord,
    SessionStatus,
    SessionTokens,
)

__all__ = [
    # Manager
    "SessionManager",
    "create_session_manager",
    "get_session_manager",
    # Models
    "SESSION_FIELDS",
    "SessionRecord",
    "SessionStatus",
    "SessionTokens",
]
