# training_portal/modules/leaderboard/aggregator.py
from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from ...database.record_store import RecordStore
from ...database.repositories.earnings_repo import EarningsEntry, EarningsRepo
from ...database.repositories.profiles_repo import ProfilesRepo
from ...errors import InvariantViolation
from ...utils.helpers import display_name, month_key_for, utc_now_str
from ...utils.logging_utils import log_event
from ...utils.validators import (
    is_month_key,
    is_non_negative_number,
    is_strictly_positive_number,
    parse_decimal,
)
from .model import LeaderboardEntry

_log = logging.getLogger(__name__)


class LeaderboardAggregator:
    """
    Monthly earnings per user and the ranked view over them.

    Consistency:
      - (user_id, month_key) uniqueness is enforced by the store's upsert key.
      - add_amount() is read-modify-write. With serialize_writes=False (the
        default) two admins adding to the same user/month at the same time
        can both read the old total, and the later upsert wins: one of the
        additions is lost.
      - serialize_writes=True queues set/add per (user_id, month_key) behind
        an asyncio.Lock. This only covers writers sharing this aggregator
        (one client process); other clients can still interleave.

    Writes are never applied optimistically: callers re-read (amount_for /
    rankings) to display what was actually persisted. Write failures
    propagate as BackendError.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        serialize_writes: bool = False,
        audit_logger: Optional[logging.Logger] = None,
    ) -> None:
        self.earnings = EarningsRepo(store)
        self.profiles = ProfilesRepo(store)
        self.serialize_writes = serialize_writes
        self.audit = audit_logger
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: dict[tuple[str, str], int] = {}

    # ---------------------------- month keys ----------------------------

    @staticmethod
    def month_key_for_now() -> str:
        return month_key_for()

    @staticmethod
    def month_key_for(d: date) -> str:
        return month_key_for(d)

    # ------------------------------ writes ------------------------------

    async def set_amount(self, user_id: str, month_key: str, amount, actor_id: str) -> EarningsEntry:
        """Absolute set. Rejects negative or non-numeric amounts before touching the store."""
        self._check_key(user_id, month_key)
        if not is_non_negative_number(amount):
            raise InvariantViolation(f"Earnings amount must be a non-negative number, got {amount!r}.")
        value = parse_decimal(amount)

        async with self._guard(user_id, month_key):
            entry = await self._write(user_id, month_key, value, actor_id, op="earnings.set")
        return entry

    async def add_amount(self, user_id: str, month_key: str, delta, actor_id: str) -> EarningsEntry:
        """Add `delta` to the current total (0 when absent). Rejects non-positive deltas."""
        self._check_key(user_id, month_key)
        if not is_strictly_positive_number(delta):
            raise InvariantViolation(f"Amount to add must be a positive number, got {delta!r}.")
        value = parse_decimal(delta)

        async with self._guard(user_id, month_key):
            current = await self.earnings.get(user_id, month_key)
            base = current.amount if current else Decimal("0")
            entry = await self._write(user_id, month_key, base + value, actor_id, op="earnings.add", delta=value)
        return entry

    # ------------------------------- reads -------------------------------

    async def amount_for(self, user_id: str, month_key: str) -> Optional[Decimal]:
        """Persisted total for one user/month; None when absent or unreadable."""
        try:
            entry = await self.earnings.get(user_id, month_key)
        except Exception:
            _log.exception("Error fetching earnings for %s %s", user_id, month_key)
            return None
        return entry.amount if entry else None

    async def rankings(self, month_key: str) -> list[LeaderboardEntry]:
        """
        Entries for `month_key`, highest amount first. Equal amounts keep
        the order the store returned them in. Users without an entry are
        absent (no zero rows). Read failures give an empty board.
        """
        try:
            rows = await self.earnings.list_for_month(month_key)
            profiles = await self.profiles.by_ids([r.user_id for r in rows])
        except Exception:
            _log.exception("Error fetching leaderboard for %s", month_key)
            return []

        ordered = sorted(rows, key=lambda r: r.amount, reverse=True)  # stable
        board = []
        for i, r in enumerate(ordered, start=1):
            p = profiles.get(r.user_id)
            row = {"first_name": p.first_name, "last_name": p.last_name, "email": p.email} if p else None
            board.append(
                LeaderboardEntry(
                    rank=i,
                    user_id=r.user_id,
                    display_name=display_name(row, default="Unknown"),
                    amount=r.amount,
                )
            )
        return board

    # ----------------------------- Internals -----------------------------

    @staticmethod
    def _check_key(user_id: str, month_key: str) -> None:
        if not user_id:
            raise InvariantViolation("A user is required.")
        if not is_month_key(month_key):
            raise InvariantViolation(f"Month must be in YYYY-MM format, got {month_key!r}.")

    @contextlib.asynccontextmanager
    async def _guard(self, user_id: str, month_key: str):
        if not self.serialize_writes:
            yield
            return
        key = (user_id, month_key)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # last holder or waiter out drops the lock
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    async def _write(self, user_id: str, month_key: str, amount: Decimal, actor_id: str, *, op: str, delta=None) -> EarningsEntry:
        extra = {"user_id": user_id, "month": month_key, "amount": str(amount), "actor": actor_id}
        if delta is not None:
            extra["delta"] = str(delta)
        try:
            entry = await self.earnings.upsert(user_id, month_key, amount, actor_id, utc_now_str())
        except Exception as e:
            _log.error("Error saving earnings for %s %s: %s", user_id, month_key, e)
            self._audit(op, "failed", "Earnings update failed", {**extra, "reason": str(e)})
            raise
        self._audit(op, "ok", "Earnings updated", extra)
        return entry

    def _audit(self, op: str, phase: str, message: str, extra: dict) -> None:
        if self.audit is not None:
            log_event(self.audit, op, phase, message, extra)

