# training_portal/modules/session/registration.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ...constants import MIN_PASSWORD_LENGTH
from ...database.record_store import UserIdentity
from ...database.repositories.profiles_repo import ProfilesRepo
from ...utils.validators import looks_like_email, non_empty
from .controller import SessionManager

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    ok: bool
    error: Optional[str] = None
    identity: Optional[UserIdentity] = None


class RegistrationController:
    """
    Self-service sign-up.

    Validates the form before anything leaves the client, registers the
    identity with first/last name metadata, then writes the names onto the
    profile in case the backend did not copy them from the metadata. That
    second write is best effort.

    Does not sign the user in; they go back to the login screen.
    """

    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions
        self.profiles = ProfilesRepo(sessions.store)

    @staticmethod
    def validate(first_name: str, last_name: str, email: str, password: str, confirm_password: str) -> Optional[str]:
        """Return the first validation message, or None when the form is acceptable."""
        if not non_empty(first_name) or not non_empty(last_name):
            return "First name and last name are required"
        if not looks_like_email(email):
            return "A valid email address is required"
        if password != confirm_password:
            return "Passwords do not match"
        if len(password or "") < MIN_PASSWORD_LENGTH:
            return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        return None

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        confirm_password: str,
    ) -> RegistrationResult:
        problem = self.validate(first_name, last_name, email, password, confirm_password)
        if problem:
            return RegistrationResult(ok=False, error=problem)

        first, last = first_name.strip(), last_name.strip()
        result = await self.sessions.sign_up(
            email.strip(), password, {"first_name": first, "last_name": last}
        )
        if not result.ok:
            return RegistrationResult(ok=False, error=str(result.error) or "Failed to register")

        try:
            await self.profiles.update_names(result.identity.user_id, first, last)
        except Exception:
            _log.exception("Error updating profile with names for %s", result.identity.user_id)

        return RegistrationResult(ok=True, identity=result.identity)
