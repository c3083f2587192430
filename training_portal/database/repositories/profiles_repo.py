# training_portal/database/repositories/profiles_repo.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ...constants import REL_USER_PROFILES
from ..record_store import RecordStore


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    role: Optional[str]
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "UserProfile":
        return cls(
            user_id=str(r["id"]),
            email=r.get("email"),
            first_name=r.get("first_name"),
            last_name=r.get("last_name"),
            role=r.get("role"),
            created_at=r.get("created_at"),
        )


class ProfilesRepo:
    """
    Thin data-access layer over `user_profiles`.

    Matches the relation:
      user_profiles(id, email, first_name, last_name, role, created_at)
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        return s.strip()

    # ------------------------------- reads -------------------------------

    async def get(self, user_id: str) -> UserProfile | None:
        r = await self.store.query_one(REL_USER_PROFILES, {"id": user_id})
        return UserProfile.from_row(r) if r else None

    async def list_profiles(self, newest_first: bool = True) -> list[UserProfile]:
        order = ["-created_at"] if newest_first else ["created_at"]
        rows = await self.store.query_many(REL_USER_PROFILES, order_by=order)
        return [UserProfile.from_row(r) for r in rows]

    async def by_ids(self, user_ids: list[str]) -> dict[str, UserProfile]:
        """Profiles keyed by id. Loads all profiles and filters (the store only does equality)."""
        if not user_ids:
            return {}
        wanted = set(user_ids)
        rows = await self.store.query_many(REL_USER_PROFILES)
        return {str(r["id"]): UserProfile.from_row(r) for r in rows if str(r["id"]) in wanted}

    # ------------------------------ writes -------------------------------

    async def update_names(self, user_id: str, first_name: str, last_name: str) -> None:
        await self.store.update(
            REL_USER_PROFILES,
            {"id": user_id},
            {"first_name": self._normalize_text(first_name), "last_name": self._normalize_text(last_name)},
        )

    async def delete_user(self, user_id: str) -> None:
        """Privileged: removes the account through the store's `delete_user` procedure."""
        await self.store.rpc("delete_user", {"user_id": user_id})
