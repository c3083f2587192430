# training_portal/modules/leaderboard/model.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ...database.repositories.earnings_repo import EarningsEntry


@dataclass(frozen=True)
class LeaderboardEntry:
    """Derived row; never persisted."""
    rank: int
    user_id: str
    display_name: str
    amount: Decimal


__all__ = ["EarningsEntry", "LeaderboardEntry"]
