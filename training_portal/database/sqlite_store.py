# training_portal/database/sqlite_store.py
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from ..constants import (
    REL_LEADERBOARD_EARNINGS,
    REL_QUIZ_ATTEMPTS,
    REL_USER_PROFILES,
    ROLE_TRAINEE,
    SESSION_TTL_SECONDS,
)
from ..errors import AuthError, BackendError, NotFoundError
from ..utils.auth import hash_password, new_session_token, verify_password
from ..utils.helpers import utc_now
from .record_store import (
    EVENT_SIGNED_IN,
    EVENT_SIGNED_OUT,
    EVENT_TOKEN_REFRESHED,
    EVENT_USER_DELETED,
    AuthListener,
    AuthResponse,
    Filters,
    RecordStore,
    Row,
    Session,
    Unsubscribe,
    UserIdentity,
)

_log = logging.getLogger(__name__)

sqlite3.register_adapter(Decimal, str)

# Relations reachable through the generic CRUD surface (auth tables are not)
_PUBLIC_RELATIONS = (REL_USER_PROFILES, REL_QUIZ_ATTEMPTS, REL_LEADERBOARD_EARNINGS)
_JSON_COLUMNS = {REL_QUIZ_ATTEMPTS: ("answers",)}


class SqliteRecordStore(RecordStore):
    """
    RecordStore over a local SQLite database.

    Notes:
      - Every call runs on a worker thread (asyncio.to_thread) so the event
        loop is never blocked; a threading.Lock serializes access to the one
        connection.
      - Relation and column names are checked against PRAGMA table_info
        before they reach SQL text; values are always bound parameters.
      - sqlite3 errors are rolled back and re-raised as BackendError.
      - The current session token lives in memory and, when `session_path`
        is given, in a small file so a restarted client can restore it.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        session_ttl: float = SESSION_TTL_SECONDS,
        session_path: Path | str | None = None,
        clock: Callable[[], datetime] = utc_now,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.conn = conn
        self.conn.row_factory = sqlite3.Row
        self.session_ttl = float(session_ttl)
        self.session_path = Path(session_path) if session_path else None
        self.clock = clock
        self.bcrypt_rounds = bcrypt_rounds

        self._lock = threading.Lock()
        self._columns: dict[str, tuple[str, ...]] = {}
        self._listeners: list[AuthListener] = []
        self._token: Optional[str] = None
        self._token_loaded = False
        self._current_user_id_cache: Optional[str] = None

    @classmethod
    def open(cls, db_path: Path | str | None = None, **kwargs) -> "SqliteRecordStore":
        from . import get_connection
        return cls(get_connection(db_path), **kwargs)

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    # ------------------------------ plumbing ------------------------------

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(self._locked, fn, *args)

    def _locked(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self._lock:
            try:
                return fn(*args)
            except sqlite3.Error as e:
                self.conn.rollback()
                raise BackendError(f"{type(e).__name__}: {e}") from e

    def _now_str(self) -> str:
        return self.clock().isoformat(timespec="microseconds")

    def _table_columns(self, relation: str) -> tuple[str, ...]:
        if relation not in _PUBLIC_RELATIONS:
            raise BackendError(f"Unknown relation '{relation}'.")
        cols = self._columns.get(relation)
        if cols is None:
            cols = tuple(r[1] for r in self.conn.execute(f"PRAGMA table_info({relation});").fetchall())
            self._columns[relation] = cols
        return cols

    def _check_columns(self, relation: str, names: Sequence[str]) -> None:
        cols = self._table_columns(relation)
        bad = [n for n in names if n not in cols]
        if bad:
            raise BackendError(f"Unknown column(s) for {relation}: {', '.join(bad)}")

    def _where(self, relation: str, filters: Optional[Filters]) -> tuple[str, list[Any]]:
        if not filters:
            return "", []
        self._check_columns(relation, list(filters))
        parts, params = [], []
        for col, value in filters.items():
            if value is None:
                parts.append(f"{col} IS NULL")
            else:
                parts.append(f"{col} = ?")
                params.append(value)
        return " WHERE " + " AND ".join(parts), params

    def _order(self, relation: str, order_by: Optional[Sequence[str]]) -> str:
        if not order_by:
            return " ORDER BY rowid"
        terms = []
        for term in order_by:
            desc = term.startswith("-")
            col = term[1:] if desc else term
            self._check_columns(relation, [col])
            terms.append(f"{col} {'DESC' if desc else 'ASC'}")
        # rowid keeps equal keys in insertion order
        terms.append("rowid")
        return " ORDER BY " + ", ".join(terms)

    @staticmethod
    def _encode(relation: str, row: Mapping[str, Any]) -> dict:
        out = dict(row)
        for col in _JSON_COLUMNS.get(relation, ()):
            if col in out and not isinstance(out[col], str):
                out[col] = json.dumps(out[col] or {}, sort_keys=True)
        return out

    @staticmethod
    def _decode(relation: str, row: sqlite3.Row) -> Row:
        out = dict(row)
        for col in _JSON_COLUMNS.get(relation, ()):
            if isinstance(out.get(col), str):
                try:
                    out[col] = json.loads(out[col])
                except ValueError:
                    _log.warning("Malformed JSON in %s.%s; returning raw text", relation, col)
        return out

    # ------------------------------- reads -------------------------------

    def _query(self, relation: str, filters: Optional[Filters], order_by, limit) -> list[Row]:
        self._table_columns(relation)
        where, params = self._where(relation, filters)
        sql = f"SELECT * FROM {relation}{where}{self._order(relation, order_by)}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        return [self._decode(relation, r) for r in self.conn.execute(sql, params).fetchall()]

    async def query_one(self, relation, filters, order_by=None, limit=None):
        rows = await self._run(self._query, relation, filters, order_by, 1 if limit is None else limit)
        return rows[0] if rows else None

    async def query_many(self, relation, filters=None, order_by=None):
        return await self._run(self._query, relation, filters, order_by, None)

    # ------------------------------ writes -------------------------------

    def _insert(self, relation: str, row: Mapping[str, Any]) -> Row:
        data = self._encode(relation, row)
        self._check_columns(relation, list(data))
        cols = ", ".join(data)
        marks = ", ".join("?" for _ in data)
        cur = self.conn.execute(f"INSERT INTO {relation}({cols}) VALUES ({marks})", list(data.values()))
        self.conn.commit()
        stored = self.conn.execute(f"SELECT * FROM {relation} WHERE rowid = ?", (cur.lastrowid,)).fetchone()
        return self._decode(relation, stored)

    def _upsert(self, relation: str, row: Mapping[str, Any], conflict_key: Sequence[str]) -> Row:
        data = self._encode(relation, row)
        keys = list(conflict_key)
        self._check_columns(relation, list(data) + keys)
        missing = [k for k in keys if k not in data]
        if missing:
            raise BackendError(f"Upsert row lacks conflict key column(s): {', '.join(missing)}")
        cols = ", ".join(data)
        marks = ", ".join("?" for _ in data)
        updates = [c for c in data if c not in keys]
        if updates:
            action = "DO UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in updates)
        else:
            action = "DO NOTHING"
        self.conn.execute(
            f"INSERT INTO {relation}({cols}) VALUES ({marks}) "
            f"ON CONFLICT({', '.join(keys)}) {action}",
            list(data.values()),
        )
        self.conn.commit()
        where, params = self._where(relation, {k: data[k] for k in keys})
        stored = self.conn.execute(f"SELECT * FROM {relation}{where}", params).fetchone()
        return self._decode(relation, stored)

    def _update(self, relation: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        data = self._encode(relation, patch)
        if not data:
            return
        self._check_columns(relation, list(data))
        where, params = self._where(relation, filters)
        sets = ", ".join(f"{c} = ?" for c in data)
        self.conn.execute(f"UPDATE {relation} SET {sets}{where}", list(data.values()) + params)
        self.conn.commit()

    async def insert(self, relation, row):
        return await self._run(self._insert, relation, row)

    async def upsert(self, relation, row, conflict_key):
        return await self._run(self._upsert, relation, row, conflict_key)

    async def update(self, relation, filters, patch):
        await self._run(self._update, relation, filters, patch)

    # -------------------------------- rpc --------------------------------

    def _delete_user(self, user_id: str) -> bool:
        """Remove the auth user, its sessions and its profile. Attempts/earnings are kept."""
        cur_auth = self.conn.execute("DELETE FROM auth_users WHERE id = ?", (user_id,))
        cur_prof = self.conn.execute("DELETE FROM user_profiles WHERE id = ?", (user_id,))
        if cur_auth.rowcount == 0 and cur_prof.rowcount == 0:
            self.conn.rollback()
            raise NotFoundError(f"No user with id {user_id}.")
        self.conn.commit()
        return True

    async def rpc(self, name, args=None):
        args = dict(args or {})
        if name == "delete_user":
            user_id = args.get("user_id")
            if not user_id:
                raise BackendError("delete_user requires 'user_id'.")
            await self._run(self._delete_user, str(user_id))
            if self._current_user_id_cache == user_id:
                await self._run(self._forget_token)
                self._emit(EVENT_USER_DELETED, None)
            return True
        raise BackendError(f"Unknown procedure '{name}'.")

    # ------------------------------- auth --------------------------------

    def _load_token(self) -> Optional[str]:
        if not self._token_loaded:
            self._token_loaded = True
            if self.session_path and self.session_path.exists():
                self._token = self.session_path.read_text(encoding="utf-8").strip() or None
        return self._token

    def _remember_token(self, token: str) -> None:
        self._token = token
        self._token_loaded = True
        if self.session_path:
            self.session_path.parent.mkdir(parents=True, exist_ok=True)
            self.session_path.write_text(token, encoding="utf-8")

    def _forget_token(self) -> None:
        self._token = None
        self._token_loaded = True
        self._current_user_id_cache = None
        if self.session_path and self.session_path.exists():
            self.session_path.unlink()

    def _session_from_row(self, r: sqlite3.Row) -> Session:
        return Session(
            session_token=r["token"],
            user_id=r["user_id"],
            expires_at=datetime.fromisoformat(r["expires_at"]),
            email=r["email"],
        )

    def _get_session(self) -> Optional[Session]:
        token = self._load_token()
        if not token:
            return None
        r = self.conn.execute(
            "SELECT s.token, s.user_id, s.expires_at, u.email "
            "FROM auth_sessions s JOIN auth_users u ON u.id = s.user_id "
            "WHERE s.token = ?",
            (token,),
        ).fetchone()
        if r is None:
            self._forget_token()
            return None
        session = self._session_from_row(r)
        if session.is_expired(self.clock()):
            self.conn.execute("DELETE FROM auth_sessions WHERE token = ?", (token,))
            self.conn.commit()
            self._forget_token()
            return None
        self._current_user_id_cache = session.user_id
        return session

    def _sign_up(self, email: str, password: str, metadata: Mapping[str, Any]) -> AuthResponse:
        email_n = (email or "").strip()
        if not email_n or not password:
            raise AuthError("Email and password are required.")
        exists = self.conn.execute("SELECT 1 FROM auth_users WHERE email = ?", (email_n,)).fetchone()
        if exists:
            raise AuthError("User already registered.")

        user_id = str(uuid.uuid4())
        now = self._now_str()
        self.conn.execute(
            "INSERT INTO auth_users(id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (user_id, email_n, hash_password(password, rounds=self.bcrypt_rounds), now),
        )
        # stands in for the backend's on-signup trigger: every account gets a trainee profile
        self.conn.execute(
            "INSERT INTO user_profiles(id, email, first_name, last_name, role, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, email_n, metadata.get("first_name"), metadata.get("last_name"), ROLE_TRAINEE, now),
        )
        self.conn.commit()
        return AuthResponse(identity=UserIdentity(user_id=user_id, email=email_n))

    def _sign_in(self, email: str, password: str) -> AuthResponse:
        email_n = (email or "").strip()
        u = self.conn.execute(
            "SELECT id, email, password_hash FROM auth_users WHERE email = ?", (email_n,)
        ).fetchone()
        if u is None or not verify_password(password, u["password_hash"]):
            raise AuthError("Invalid login credentials.")

        now = self.clock()
        token = new_session_token()
        expires = now + timedelta(seconds=self.session_ttl)
        self.conn.execute(
            "INSERT INTO auth_sessions(token, user_id, expires_at, created_at) VALUES (?, ?, ?, ?)",
            (token, u["id"], expires.isoformat(timespec="microseconds"), now.isoformat(timespec="microseconds")),
        )
        self.conn.commit()
        self._remember_token(token)
        self._current_user_id_cache = u["id"]
        identity = UserIdentity(user_id=u["id"], email=u["email"])
        session = Session(session_token=token, user_id=u["id"], expires_at=expires, email=u["email"])
        return AuthResponse(identity=identity, session=session)

    def _sign_out(self) -> bool:
        token = self._load_token()
        if token:
            self.conn.execute("DELETE FROM auth_sessions WHERE token = ?", (token,))
            self.conn.commit()
        self._forget_token()
        return bool(token)

    def _refresh(self) -> Optional[Session]:
        session = self._get_session()
        if session is None:
            return None
        expires = self.clock() + timedelta(seconds=self.session_ttl)
        self.conn.execute(
            "UPDATE auth_sessions SET expires_at = ? WHERE token = ?",
            (expires.isoformat(timespec="microseconds"), session.session_token),
        )
        self.conn.commit()
        return Session(session.session_token, session.user_id, expires, session.email)

    async def auth_get_session(self):
        return await self._run(self._get_session)

    async def auth_sign_up(self, email, password, metadata=None):
        return await self._run(self._sign_up, email, password, dict(metadata or {}))

    async def auth_sign_in_with_password(self, email, password):
        resp = await self._run(self._sign_in, email, password)
        self._emit(EVENT_SIGNED_IN, resp.session)
        return resp

    async def auth_sign_out(self):
        had_session = await self._run(self._sign_out)
        if had_session:
            self._emit(EVENT_SIGNED_OUT, None)

    async def auth_refresh_session(self) -> Optional[Session]:
        """Extend the current session's expiry; emits TOKEN_REFRESHED."""
        session = await self._run(self._refresh)
        if session is not None:
            self._emit(EVENT_TOKEN_REFRESHED, session)
        return session

    def auth_on_change(self, listener: AuthListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                _log.exception("Auth listener failed for event %s", event)
