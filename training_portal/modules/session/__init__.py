"""
Session module package exports.

- SessionManager: owns the client session, sign-in/up/out and role attachment.
- RoleResolver: user id -> role/profile with a least-privilege fallback.
- RegistrationController: validated self-service sign-up.
"""

from .controller import SessionManager
from .registration import RegistrationController, RegistrationResult
from .roles import RoleResolver

__all__ = [
    "SessionManager",
    "RoleResolver",
    "RegistrationController",
    "RegistrationResult",
]
