# training_portal/modules/session/controller.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from ...constants import SESSION_RESTORE_TIMEOUT
from ...database.record_store import RecordStore, Session, UserIdentity
from ...utils.async_utils import Generation, race_timeout
from ...utils.helpers import display_name
from ...utils.logging_utils import log_event
from .model import (
    AUTH_ANONYMOUS,
    AUTH_AUTHENTICATED,
    AUTH_INITIALIZING,
    AUTH_UNINITIALIZED,
    ROLE_STATE_PENDING,
    ROLE_STATE_RESOLVED,
    ROLE_STATE_UNKNOWN,
    AuthResult,
    RoleResolution,
    SessionSnapshot,
    SignOutResult,
)
from .roles import RoleResolver

_log = logging.getLogger(__name__)

SessionListener = Callable[[str, Optional[Session]], None]


class SessionManager:
    """
    Owns the one client session and the role/profile attached to it.

    Construct once at process start and pass it to whatever needs it.

    States:
      uninitialized -> initializing -> authenticated | anonymous
      while authenticated, the role goes unknown -> pending -> resolved,
      independently of the auth transition (views can show the shell with
      a "loading" placeholder for role-gated parts).

    Two chains write the same state: initialize() and the store's
    auth-change events. Each write is tagged with a generation; a write
    that finishes after a newer one was applied is dropped. Role results
    carry their own generation and are also dropped when the session has
    moved to another user in the meantime.

    Public attrs (read-only by convention):
      - auth_state, role_state
      - session, identity, role, profile
      - last_error: the last error swallowed on a read path (diagnostics)
    """

    def __init__(
        self,
        store: RecordStore,
        role_resolver: Optional[RoleResolver] = None,
        *,
        restore_timeout: Optional[float] = SESSION_RESTORE_TIMEOUT,
        audit_logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.roles = role_resolver or RoleResolver(store)
        self.restore_timeout = restore_timeout
        self.audit = audit_logger

        self.auth_state = AUTH_UNINITIALIZED
        self.role_state = ROLE_STATE_UNKNOWN
        self.session: Optional[Session] = None
        self.identity: Optional[UserIdentity] = None
        self.role: Optional[str] = None
        self.profile = None
        self.last_error: Optional[BaseException] = None

        self._auth_gen = Generation()
        self._role_gen = Generation()
        self._listeners: list[SessionListener] = []
        self._tasks: set[asyncio.Task] = set()
        self._store_unsubscribe = store.auth_on_change(self._on_store_auth_change)

    # ----------------------------- Public API -----------------------------

    @property
    def loading(self) -> bool:
        return self.auth_state in (AUTH_UNINITIALIZED, AUTH_INITIALIZING)

    @property
    def is_authenticated(self) -> bool:
        return self.auth_state == AUTH_AUTHENTICATED

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            auth_state=self.auth_state,
            role_state=self.role_state,
            session=self.session,
            identity=self.identity,
            role=self.role,
            profile=self.profile,
        )

    async def initialize(self) -> Optional[Session]:
        """
        Recover a persisted session. Always returns within `restore_timeout`
        seconds: a store that does not answer in time means "no session".
        Role resolution for a recovered session runs in the background.
        """
        tag = self._auth_gen.next()
        if self.auth_state == AUTH_UNINITIALIZED:
            self.auth_state = AUTH_INITIALIZING

        try:
            session = await race_timeout(self.store.auth_get_session(), self.restore_timeout)
        except asyncio.TimeoutError as e:
            _log.warning("Session check timed out after %ss, assuming no session", self.restore_timeout)
            self.last_error = e
            session = None
        except Exception as e:
            _log.exception("Error getting initial session")
            self.last_error = e
            session = None

        if not self._auth_gen.try_apply(tag):
            _log.debug("Discarding stale session restore (tag %s)", tag)
            return self.session

        self._apply_session(session)
        if session is not None:
            self._schedule_role_resolution(session.user_id)
        return session

    async def sign_up(self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None) -> AuthResult:
        """Register an identity. Does not sign in and does not resolve a role."""
        try:
            resp = await self.store.auth_sign_up(email, password, dict(metadata or {}))
        except Exception as e:
            _log.warning("Sign-up failed for %s: %s", email, e)
            return AuthResult(identity=None, error=e)
        return AuthResult(identity=resp.identity)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        """
        Authenticate and resolve the role before returning, so the caller
        sees a complete profile on success.
        """
        try:
            resp = await self.store.auth_sign_in_with_password(email, password)
        except Exception as e:
            _log.warning("Sign-in failed for %s: %s", email, e)
            self._audit("auth.sign_in", "failed", "Sign-in rejected", {"email": email, "reason": str(e)})
            return AuthResult(identity=None, error=e)

        tag = self._auth_gen.next()
        if self._auth_gen.try_apply(tag):
            self._apply_session(resp.session, identity=resp.identity)
        await self._resolve_role(resp.identity.user_id)
        self._audit("auth.sign_in", "ok", "Signed in", {"user_id": resp.identity.user_id})
        return AuthResult(identity=resp.identity)

    async def sign_out(self) -> SignOutResult:
        """
        Drop local state first, then ask the store to invalidate the session.
        A failing or slow remote call never leaves the client signed in.
        """
        user_id = self.identity.user_id if self.identity else None
        self._auth_gen.invalidate()
        self._role_gen.invalidate()
        self._apply_session(None)

        try:
            await self.store.auth_sign_out()
        except Exception as e:
            _log.error("Error signing out remotely (local state already cleared): %s", e)
            self._audit("auth.sign_out", "failed", "Remote sign-out failed", {"user_id": user_id, "reason": str(e)})
            return SignOutResult(error=e)
        self._audit("auth.sign_out", "ok", "Signed out", {"user_id": user_id})
        return SignOutResult()

    def on_session_change(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register `listener(event, session)`; called after local state has
        been updated for each store-reported transition. Returns an
        unsubscribe callable.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh_profile(self) -> Optional[RoleResolution]:
        """Re-resolve role/profile for the current user and wait for it."""
        if self.identity is None:
            return None
        return await self._resolve_role(self.identity.user_id)

    async def wait_until_idle(self) -> None:
        """Wait for background role resolutions scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def display_name(self) -> str:
        p = self.profile
        row = {"first_name": p.first_name, "last_name": p.last_name} if p else None
        return display_name(row, email=self.identity.email if self.identity else None)

    def close(self) -> None:
        """Stop listening to the store and drop pending background work."""
        self._store_unsubscribe()
        for t in list(self._tasks):
            t.cancel()
        self._listeners.clear()

    # ----------------------------- Internals -----------------------------

    def _apply_session(self, session: Optional[Session], identity: Optional[UserIdentity] = None) -> None:
        previous_user = self.identity.user_id if self.identity else None
        self.session = session
        if session is None:
            self.identity = None
            self.auth_state = AUTH_ANONYMOUS
            self.role = None
            self.profile = None
            self.role_state = ROLE_STATE_UNKNOWN
            return

        self.identity = identity or session.identity
        self.auth_state = AUTH_AUTHENTICATED
        if previous_user != session.user_id:
            # another user's role must never leak into this session
            self.role = None
            self.profile = None
            self.role_state = ROLE_STATE_UNKNOWN

    async def _resolve_role(self, user_id: str) -> Optional[RoleResolution]:
        tag = self._role_gen.next()
        if self.identity is not None and self.identity.user_id == user_id:
            self.role_state = ROLE_STATE_PENDING

        resolution = await self.roles.resolve(user_id)

        if self.identity is None or self.identity.user_id != user_id:
            _log.debug("Discarding role for %s: session changed", user_id)
            return resolution
        if not self._role_gen.try_apply(tag):
            _log.debug("Discarding stale role resolution (tag %s)", tag)
            return resolution

        self.role = resolution.role
        self.profile = resolution.profile
        self.role_state = ROLE_STATE_RESOLVED
        return resolution

    def _schedule_role_resolution(self, user_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self._resolve_role(user_id))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            _log.error("Background role resolution failed", exc_info=task.exception())

    def _on_store_auth_change(self, event: str, session: Optional[Session]) -> None:
        tag = self._auth_gen.next()
        if self._auth_gen.try_apply(tag):
            self._apply_session(session)
            if session is not None:
                self._schedule_role_resolution(session.user_id)
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                _log.exception("Session listener failed for event %s", event)

    def _audit(self, op: str, phase: str, message: str, extra: dict) -> None:
        if self.audit is not None:
            log_event(self.audit, op, phase, message, extra)
