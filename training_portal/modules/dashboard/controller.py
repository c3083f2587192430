# training_portal/modules/dashboard/controller.py
from __future__ import annotations

import logging
from typing import Optional

from ...constants import ROLE_ADMIN
from ...database.repositories.profiles_repo import ProfilesRepo
from ...errors import InvariantViolation
from ...utils.logging_utils import log_event
from ..leaderboard.aggregator import LeaderboardAggregator
from ..quiz.engine import QuizEngine
from ..quiz.model import QuizStatus
from ..session.controller import SessionManager
from ..session.model import AUTH_ANONYMOUS, ROLE_STATE_RESOLVED
from .model import VIEW_ADMIN, VIEW_LOADING, VIEW_LOGIN, VIEW_TRAINEE, UserSummary

_log = logging.getLogger(__name__)


class DashboardController:
    """
    Picks the view for the current session and serves the data each view
    needs. Rendering is someone else's job.

    Read paths degrade to empty results so a view always has something to
    show; admin mutations raise so the caller can show a failure notice.
    """

    def __init__(
        self,
        sessions: SessionManager,
        quiz: QuizEngine,
        leaderboard: LeaderboardAggregator,
        *,
        audit_logger: Optional[logging.Logger] = None,
    ) -> None:
        self.sessions = sessions
        self.quiz = quiz
        self.earnings = leaderboard
        self.profiles = ProfilesRepo(sessions.store)
        self.audit = audit_logger

    # ------------------------------ routing ------------------------------

    def select_view(self) -> str:
        s = self.sessions
        if s.loading:
            return VIEW_LOADING
        if s.auth_state == AUTH_ANONYMOUS:
            return VIEW_LOGIN
        if s.role_state != ROLE_STATE_RESOLVED:
            return VIEW_LOADING
        return VIEW_ADMIN if s.role == ROLE_ADMIN else VIEW_TRAINEE

    def role_display(self) -> str:
        role = self.sessions.role
        if not role:
            return "Loading..."
        return "Admin" if role == ROLE_ADMIN else "Trainee"

    # ------------------------------ trainee ------------------------------

    async def quiz_status(self) -> Optional[QuizStatus]:
        identity = self.sessions.identity
        if identity is None:
            return None
        return await self.quiz.status(identity.user_id)

    async def leaderboard(self, month_key: Optional[str] = None):
        """Ranked earnings for `month_key` (this month by default)."""
        return await self.earnings.rankings(month_key or self.earnings.month_key_for_now())

    # ------------------------------- admin -------------------------------

    async def list_users(self, search: str = "") -> list[UserSummary]:
        """All profiles, newest first, each with its best quiz score; filtered by `search`."""
        self._require_admin()
        try:
            profiles = await self.profiles.list_profiles(newest_first=True)
        except Exception:
            _log.exception("Error fetching users")
            return []
        best = await self.quiz.highest_scores()

        rows = [
            UserSummary(
                user_id=p.user_id,
                email=p.email,
                first_name=p.first_name,
                last_name=p.last_name,
                role=p.role,
                created_at=p.created_at,
                highest_score=best.get(p.user_id),
            )
            for p in profiles
        ]
        return [r for r in rows if r.matches(search)]

    async def delete_account(self, user_id: str) -> None:
        """
        Delete another user's account. Self-deletion is refused before any
        store call; store failures are logged and re-raised.
        """
        actor = self._require_admin()
        if not user_id:
            raise InvariantViolation("A user is required.")
        if user_id == actor:
            raise InvariantViolation("You cannot delete your own account.")

        extra = {"user_id": user_id, "actor": actor}
        try:
            await self.profiles.delete_user(user_id)
        except Exception as e:
            _log.error("Error deleting account %s: %s", user_id, e)
            self._audit("account.delete", "failed", "Account deletion failed", {**extra, "reason": str(e)})
            raise
        self._audit("account.delete", "ok", "Account deleted", extra)

    # ----------------------------- Internals -----------------------------

    def _require_admin(self) -> str:
        s = self.sessions
        if s.identity is None or s.role != ROLE_ADMIN:
            raise InvariantViolation("Administrator access required.")
        return s.identity.user_id

    def _audit(self, op: str, phase: str, message: str, extra: dict) -> None:
        if self.audit is not None:
            log_event(self.audit, op, phase, message, extra)
