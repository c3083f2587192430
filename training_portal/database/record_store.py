# training_portal/database/record_store.py
"""
Backend-agnostic record store consumed by the portal core.

Every method is a coroutine: each call is a suspension point for the caller.
Rows travel as plain dicts keyed by column name.

Filters are equality matches ({"user_id": uid, "month_year": "2024-06"}).
`order_by` is a sequence of column names; a leading "-" sorts descending.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence

# Auth change events reported to auth_on_change listeners
EVENT_SIGNED_IN = "SIGNED_IN"
EVENT_SIGNED_OUT = "SIGNED_OUT"
EVENT_TOKEN_REFRESHED = "TOKEN_REFRESHED"
EVENT_USER_DELETED = "USER_DELETED"

Row = dict
Filters = Mapping[str, Any]


@dataclass(frozen=True)
class UserIdentity:
    user_id: str
    email: str


@dataclass(frozen=True)
class Session:
    session_token: str
    user_id: str
    expires_at: datetime
    email: Optional[str] = None

    @property
    def identity(self) -> UserIdentity:
        return UserIdentity(user_id=self.user_id, email=self.email or "")

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class AuthResponse:
    identity: UserIdentity
    session: Optional[Session] = None


AuthListener = Callable[[str, Optional[Session]], None]
Unsubscribe = Callable[[], None]


class RecordStore(ABC):
    """CRUD + RPC over named relations, plus the auth surface."""

    # ------------------------------- reads -------------------------------

    @abstractmethod
    async def query_one(
        self,
        relation: str,
        filters: Filters,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> Optional[Row]:
        """First matching row, or None when nothing matches."""

    @abstractmethod
    async def query_many(
        self,
        relation: str,
        filters: Optional[Filters] = None,
        order_by: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        """All matching rows in store order (or `order_by`)."""

    # ------------------------------ writes -------------------------------

    @abstractmethod
    async def insert(self, relation: str, row: Mapping[str, Any]) -> Row:
        """Insert and return the stored row (generated columns included)."""

    @abstractmethod
    async def upsert(self, relation: str, row: Mapping[str, Any], conflict_key: Sequence[str]) -> Row:
        """Insert-or-update keyed by the uniqueness constraint on `conflict_key`."""

    @abstractmethod
    async def update(self, relation: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    async def rpc(self, name: str, args: Optional[Mapping[str, Any]] = None) -> Any:
        """Privileged server-side procedure (e.g. 'delete_user')."""

    # ------------------------------- auth --------------------------------

    @abstractmethod
    async def auth_get_session(self) -> Optional[Session]:
        ...

    @abstractmethod
    async def auth_sign_up(
        self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> AuthResponse:
        ...

    @abstractmethod
    async def auth_sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        ...

    @abstractmethod
    async def auth_sign_out(self) -> None:
        ...

    @abstractmethod
    def auth_on_change(self, listener: AuthListener) -> Unsubscribe:
        """Register `listener(event, session)`; returns a callable that removes it."""
