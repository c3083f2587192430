# training_portal/modules/session/roles.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ...constants import PROFILE_FETCH_TIMEOUT, ROLE_TRAINEE, ROLES
from ...database.record_store import RecordStore
from ...database.repositories.profiles_repo import ProfilesRepo
from ...utils.async_utils import race_timeout
from .model import OUTCOME_FALLBACK, OUTCOME_FOUND, OUTCOME_MISSING, RoleResolution

_log = logging.getLogger(__name__)


class RoleResolver:
    """
    Turns a user id into an authorization role plus profile fields.

    Policy (least privilege on every failure):
      - record found      -> role/name/email verbatim (empty or unknown role -> trainee)
      - no record         -> trainee, no profile (legitimate empty state)
      - timeout / error   -> trainee, no profile (degraded; never raised)

    The profile query is raced against `timeout` seconds. A reply that
    arrives after the deadline is dropped.
    """

    def __init__(self, store: RecordStore, *, timeout: Optional[float] = PROFILE_FETCH_TIMEOUT) -> None:
        self.repo = ProfilesRepo(store)
        self.timeout = timeout

    async def resolve(self, user_id: Optional[str]) -> RoleResolution:
        if not user_id:
            return RoleResolution(role=None, profile=None, outcome=OUTCOME_MISSING)

        try:
            profile = await race_timeout(self.repo.get(user_id), self.timeout)
        except asyncio.TimeoutError:
            _log.warning("Profile fetch for %s timed out after %ss; defaulting to trainee", user_id, self.timeout)
            return RoleResolution(role=ROLE_TRAINEE, profile=None, outcome=OUTCOME_FALLBACK)
        except Exception:
            # network, malformed payload, anything else: same degraded answer
            _log.exception("Profile fetch for %s failed; defaulting to trainee", user_id)
            return RoleResolution(role=ROLE_TRAINEE, profile=None, outcome=OUTCOME_FALLBACK)

        if profile is None:
            _log.warning("No profile for %s; defaulting to trainee", user_id)
            return RoleResolution(role=ROLE_TRAINEE, profile=None, outcome=OUTCOME_MISSING)

        role = profile.role if profile.role in ROLES else ROLE_TRAINEE
        if role != profile.role:
            _log.warning("Profile %s has role %r; treating as trainee", user_id, profile.role)
        return RoleResolution(role=role, profile=profile, outcome=OUTCOME_FOUND)
