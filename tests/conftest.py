# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets a fresh in-memory SQLite store (schema applied, no seed)
# - bcrypt runs at its minimum cost so sign-up/sign-in stay fast
# - Coroutines are driven with asyncio.run() inside plain test functions
# - ControlledStore wraps the real store to inject latency, hangs and failures
# ---------------------------------------------------------------------

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any, Optional

import pytest

from training_portal.constants import REL_USER_PROFILES, ROLE_ADMIN
from training_portal.database import get_connection
from training_portal.database.record_store import RecordStore
from training_portal.database.sqlite_store import SqliteRecordStore

PASSWORD = "secret123"


# ---------- Store fixtures ----------
@pytest.fixture()
def conn():
    con = get_connection(":memory:", seed=False)
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def store(conn: sqlite3.Connection) -> SqliteRecordStore:
    return SqliteRecordStore(conn, bcrypt_rounds=4)


def make_user(store: SqliteRecordStore, email: str, first: Optional[str] = None, last: Optional[str] = None, role: Optional[str] = None) -> str:
    """Register a user synchronously; optionally promote/patch the role. Returns the user id."""
    meta = {"first_name": first, "last_name": last}
    resp = asyncio.run(store.auth_sign_up(email, PASSWORD, meta))
    uid = resp.identity.user_id
    if role is not None:
        asyncio.run(store.update(REL_USER_PROFILES, {"id": uid}, {"role": role}))
    return uid


@pytest.fixture()
def ids(store: SqliteRecordStore) -> dict:
    """Common accounts used throughout the tests."""
    return {
        "admin": make_user(store, "admin@example.com", "Ada", "Admin", role=ROLE_ADMIN),
        "alice": make_user(store, "alice@example.com", "Alice", "Archer"),
        "bob": make_user(store, "bob@example.com", "Bob", None),
        "carol": make_user(store, "carol@example.com"),
    }


# ---------- Controllable store double ----------
class ControlledStore(RecordStore):
    """
    Delegates to a real store, with knobs:
      - delay[method] = seconds to sleep before delegating
      - hang: set of methods that never return
      - fail[method] = exception to raise instead of delegating
      - calls: list of (method, first_arg) for every call made
    """

    def __init__(self, inner: RecordStore) -> None:
        self.inner = inner
        self.delay: dict[str, float] = {}
        self.hang: set[str] = set()
        self.fail: dict[str, BaseException] = {}
        self.calls: list[tuple[str, Any]] = []

    async def _gate(self, method: str, arg: Any = None) -> None:
        self.calls.append((method, arg))
        if method in self.hang:
            await asyncio.Event().wait()
        if method in self.delay:
            await asyncio.sleep(self.delay[method])
        if method in self.fail:
            raise self.fail[method]

    def called(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    async def query_one(self, relation, filters, order_by=None, limit=None):
        await self._gate("query_one", relation)
        return await self.inner.query_one(relation, filters, order_by, limit)

    async def query_many(self, relation, filters=None, order_by=None):
        await self._gate("query_many", relation)
        return await self.inner.query_many(relation, filters, order_by)

    async def insert(self, relation, row):
        await self._gate("insert", relation)
        return await self.inner.insert(relation, row)

    async def upsert(self, relation, row, conflict_key):
        await self._gate("upsert", relation)
        return await self.inner.upsert(relation, row, conflict_key)

    async def update(self, relation, filters, patch):
        await self._gate("update", relation)
        return await self.inner.update(relation, filters, patch)

    async def rpc(self, name, args=None):
        await self._gate("rpc", name)
        return await self.inner.rpc(name, args)

    async def auth_get_session(self):
        await self._gate("auth_get_session")
        return await self.inner.auth_get_session()

    async def auth_sign_up(self, email, password, metadata=None):
        await self._gate("auth_sign_up", email)
        return await self.inner.auth_sign_up(email, password, metadata)

    async def auth_sign_in_with_password(self, email, password):
        await self._gate("auth_sign_in_with_password", email)
        return await self.inner.auth_sign_in_with_password(email, password)

    async def auth_sign_out(self):
        await self._gate("auth_sign_out")
        return await self.inner.auth_sign_out()

    def auth_on_change(self, listener):
        return self.inner.auth_on_change(listener)


@pytest.fixture()
def controlled(store: SqliteRecordStore) -> ControlledStore:
    return ControlledStore(store)
