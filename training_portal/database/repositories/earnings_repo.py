# training_portal/database/repositories/earnings_repo.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from ...constants import REL_LEADERBOARD_EARNINGS
from ...utils.helpers import to_money
from ..record_store import RecordStore

CONFLICT_KEY = ("user_id", "month_year")


@dataclass(frozen=True)
class EarningsEntry:
    user_id: str
    month_key: str
    amount: Decimal
    updated_by: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "EarningsEntry":
        return cls(
            user_id=str(r["user_id"]),
            month_key=str(r["month_year"]),
            amount=to_money(r["amount"]),
            updated_by=r.get("updated_by"),
            updated_at=r.get("updated_at"),
        )


class EarningsRepo:
    """
    Per-user, per-month totals:
      leaderboard_earnings(user_id, amount, month_year, updated_by, updated_at)
      UNIQUE(user_id, month_year)

    Uniqueness is the store's job; upsert() targets that constraint. Nothing
    here reads-then-writes, so callers own any increment semantics.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def get(self, user_id: str, month_key: str) -> EarningsEntry | None:
        r = await self.store.query_one(REL_LEADERBOARD_EARNINGS, {"user_id": user_id, "month_year": month_key})
        return EarningsEntry.from_row(r) if r else None

    async def list_for_month(self, month_key: str) -> list[EarningsEntry]:
        """Rows for the month in store-return order (no sorting here)."""
        rows = await self.store.query_many(REL_LEADERBOARD_EARNINGS, {"month_year": month_key})
        return [EarningsEntry.from_row(r) for r in rows]

    async def upsert(self, user_id: str, month_key: str, amount: Decimal, actor_id: str, updated_at: str) -> EarningsEntry:
        r = await self.store.upsert(
            REL_LEADERBOARD_EARNINGS,
            {
                "user_id": user_id,
                "month_year": month_key,
                "amount": to_money(amount),
                "updated_by": actor_id,
                "updated_at": updated_at,
            },
            CONFLICT_KEY,
        )
        return EarningsEntry.from_row(r)
