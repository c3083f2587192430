# training_portal/modules/session/model.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ...database.record_store import Session, UserIdentity
from ...database.repositories.profiles_repo import UserProfile

# Authentication state machine
AUTH_UNINITIALIZED = "uninitialized"
AUTH_INITIALIZING = "initializing"
AUTH_AUTHENTICATED = "authenticated"
AUTH_ANONYMOUS = "anonymous"

# Role sub-state while authenticated
ROLE_STATE_UNKNOWN = "unknown"
ROLE_STATE_PENDING = "pending"
ROLE_STATE_RESOLVED = "resolved"

# How a role was obtained
OUTCOME_FOUND = "found"          # profile record present
OUTCOME_MISSING = "missing"      # no record: legitimate empty state
OUTCOME_FALLBACK = "fallback"    # timeout or backend error: degraded


@dataclass(frozen=True)
class RoleResolution:
    """
    Result of RoleResolver.resolve(). `role` is always concrete for a real
    user id; `profile` is None unless a record was found.
    """
    role: Optional[str]
    profile: Optional[UserProfile] = None
    outcome: str = OUTCOME_FOUND

    @property
    def degraded(self) -> bool:
        return self.outcome == OUTCOME_FALLBACK


@dataclass(frozen=True)
class AuthResult:
    identity: Optional[UserIdentity] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.identity is not None


@dataclass(frozen=True)
class SignOutResult:
    # remote invalidation failure, reported but never raised
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of SessionManager state for views/controllers."""
    auth_state: str
    role_state: str
    session: Optional[Session]
    identity: Optional[UserIdentity]
    role: Optional[str]
    profile: Optional[UserProfile]

    def as_dict(self) -> dict[str, Any]:
        return {
            "auth_state": self.auth_state,
            "role_state": self.role_state,
            "user_id": self.identity.user_id if self.identity else None,
            "email": self.identity.email if self.identity else None,
            "role": self.role,
        }


__all__ = [
    "Session",
    "UserIdentity",
    "UserProfile",
    "RoleResolution",
    "AuthResult",
    "SignOutResult",
    "SessionSnapshot",
]
