# training_portal/errors.py
from __future__ import annotations


class PortalError(Exception):
    """Base class for every error raised by the portal core."""


class NotFoundError(PortalError):
    """Expected empty state: the requested record does not exist."""


class BackendError(PortalError):
    """
    The record store failed (network, constraint, malformed payload).

    Controllers surface these only for user-initiated writes; read paths
    degrade to defaults and log instead.
    """


class AuthError(BackendError):
    """Credentials were rejected or the account cannot be created."""


# Domain-level error the controller can surface directly (e.g., toast/snackbar)
class DomainError(PortalError):
    pass


class InvariantViolation(DomainError):
    """Rejected before any store call is made (negative amount, self-deletion, ...)."""
