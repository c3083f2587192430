# tests/test_session_manager.py
import asyncio
import time
from datetime import datetime, timedelta, timezone

from training_portal.database.sqlite_store import SqliteRecordStore
from training_portal.errors import AuthError, BackendError
from training_portal.modules.session.controller import SessionManager
from training_portal.modules.session.model import (
    AUTH_ANONYMOUS,
    AUTH_AUTHENTICATED,
    AUTH_UNINITIALIZED,
    ROLE_STATE_RESOLVED,
    ROLE_STATE_UNKNOWN,
)
from training_portal.modules.session.roles import RoleResolver

from .conftest import PASSWORD


def test_initialize_without_session_is_anonymous(store):
    mgr = SessionManager(store)
    assert mgr.auth_state == AUTH_UNINITIALIZED and mgr.loading

    assert asyncio.run(mgr.initialize()) is None
    assert mgr.auth_state == AUTH_ANONYMOUS
    assert not mgr.loading
    assert mgr.role is None


def test_initialize_restores_persisted_session(conn, tmp_path, ids):
    token_file = tmp_path / "session.token"
    first = SqliteRecordStore(conn, bcrypt_rounds=4, session_path=token_file)
    asyncio.run(first.auth_sign_in_with_password("admin@example.com", PASSWORD))
    assert token_file.exists()

    # a fresh client process over the same database
    restarted = SqliteRecordStore(conn, bcrypt_rounds=4, session_path=token_file)
    mgr = SessionManager(restarted)

    async def scenario():
        session = await mgr.initialize()
        await mgr.wait_until_idle()
        return session

    session = asyncio.run(scenario())
    assert session is not None and session.user_id == ids["admin"]
    assert mgr.auth_state == AUTH_AUTHENTICATED
    assert mgr.role_state == ROLE_STATE_RESOLVED
    assert mgr.role == "admin"
    assert mgr.display_name() == "Ada Admin"


def test_initialize_times_out_on_hanging_store(controlled):
    controlled.hang.add("auth_get_session")
    mgr = SessionManager(controlled, restore_timeout=0.1)

    started = time.monotonic()
    assert asyncio.run(mgr.initialize()) is None
    assert time.monotonic() - started < 1.0
    assert mgr.auth_state == AUTH_ANONYMOUS
    assert isinstance(mgr.last_error, asyncio.TimeoutError)


def test_initialize_error_is_anonymous(controlled):
    controlled.fail["auth_get_session"] = BackendError("network down")
    mgr = SessionManager(controlled)
    assert asyncio.run(mgr.initialize()) is None
    assert mgr.auth_state == AUTH_ANONYMOUS


def test_late_session_reply_does_not_clobber_newer_sign_in(controlled, ids):
    controlled.delay["auth_get_session"] = 0.2
    mgr = SessionManager(controlled, restore_timeout=5)

    async def scenario():
        restore = asyncio.ensure_future(mgr.initialize())
        await asyncio.sleep(0)  # restore has started and is waiting on the store
        result = await mgr.sign_in("alice@example.com", PASSWORD)
        assert result.ok
        # the restore started earlier and completes later: it must be ignored
        await restore
        await mgr.wait_until_idle()

    asyncio.run(scenario())
    assert mgr.auth_state == AUTH_AUTHENTICATED
    assert mgr.identity.user_id == ids["alice"]


def test_sign_in_resolves_role_before_returning(store, ids):
    mgr = SessionManager(store)

    async def scenario():
        await mgr.initialize()
        return await mgr.sign_in("admin@example.com", PASSWORD)

    result = asyncio.run(scenario())
    assert result.ok and result.identity.user_id == ids["admin"]
    assert mgr.auth_state == AUTH_AUTHENTICATED
    assert mgr.role_state == ROLE_STATE_RESOLVED
    assert mgr.role == "admin"
    assert mgr.profile.first_name == "Ada"


def test_sign_in_wrong_password(store, ids):
    mgr = SessionManager(store)
    result = asyncio.run(mgr.sign_in("admin@example.com", "nope-nope"))
    assert not result.ok
    assert isinstance(result.error, AuthError)
    assert not mgr.is_authenticated


def test_sign_in_with_slow_profile_still_gets_a_role(controlled, ids):
    controlled.hang.add("query_one")
    mgr = SessionManager(controlled, RoleResolver(controlled, timeout=0.05))
    result = asyncio.run(mgr.sign_in("admin@example.com", PASSWORD))
    assert result.ok
    # degraded, least privilege
    assert mgr.role == "trainee"
    assert mgr.role_state == ROLE_STATE_RESOLVED


def test_sign_up_does_not_sign_in_or_resolve_role(store):
    mgr = SessionManager(store)

    async def scenario():
        await mgr.initialize()
        return await mgr.sign_up("dave@example.com", PASSWORD, {"first_name": "Dave"})

    result = asyncio.run(scenario())
    assert result.ok and result.identity.email == "dave@example.com"
    assert mgr.auth_state == AUTH_ANONYMOUS
    assert mgr.role is None


def test_sign_up_duplicate_reports_error(store, ids):
    result = asyncio.run(SessionManager(store).sign_up("alice@example.com", PASSWORD))
    assert not result.ok
    assert isinstance(result.error, AuthError)


def test_sign_out_clears_state_even_if_remote_fails(controlled, ids):
    controlled.fail["auth_sign_out"] = BackendError("503 Service Unavailable")
    mgr = SessionManager(controlled)

    async def scenario():
        await mgr.sign_in("alice@example.com", PASSWORD)
        assert mgr.is_authenticated
        return await mgr.sign_out()

    result = asyncio.run(scenario())
    assert isinstance(result.error, BackendError)
    assert mgr.auth_state == AUTH_ANONYMOUS
    assert mgr.session is None and mgr.identity is None
    assert mgr.role is None and mgr.profile is None
    assert mgr.role_state == ROLE_STATE_UNKNOWN


def test_sign_out_clears_state_before_slow_remote_call(controlled, ids):
    controlled.delay["auth_sign_out"] = 0.2
    mgr = SessionManager(controlled)

    async def scenario():
        await mgr.sign_in("alice@example.com", PASSWORD)
        pending = asyncio.ensure_future(mgr.sign_out())
        await asyncio.sleep(0.05)
        assert mgr.auth_state == AUTH_ANONYMOUS  # remote call still in flight
        return await pending

    assert asyncio.run(scenario()).error is None


def test_role_arriving_after_sign_out_is_dropped(controlled, ids):
    mgr = SessionManager(controlled, RoleResolver(controlled, timeout=5))

    async def scenario():
        await mgr.sign_in("alice@example.com", PASSWORD)
        controlled.delay["query_one"] = 0.1
        refresh = asyncio.ensure_future(mgr.refresh_profile())
        await asyncio.sleep(0.02)
        await mgr.sign_out()
        await refresh

    asyncio.run(scenario())
    assert mgr.role is None and mgr.profile is None


def test_session_change_listener_and_role_reresolution(store, ids):
    mgr = SessionManager(store)
    events = []
    unsubscribe = mgr.on_session_change(lambda ev, s: events.append((ev, s.user_id if s else None)))

    async def scenario():
        await mgr.initialize()
        # signed in by another part of the app, straight through the store
        await store.auth_sign_in_with_password("admin@example.com", PASSWORD)
        assert mgr.is_authenticated
        await mgr.wait_until_idle()
        assert mgr.role == "admin"

        await store.auth_refresh_session()
        await mgr.wait_until_idle()

        unsubscribe()
        await store.auth_sign_out()

    asyncio.run(scenario())
    assert events == [("SIGNED_IN", ids["admin"]), ("TOKEN_REFRESHED", ids["admin"])]
    assert mgr.auth_state == AUTH_ANONYMOUS


def test_expired_session_is_not_restored(conn, ids):
    now = [datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)]
    store = SqliteRecordStore(conn, bcrypt_rounds=4, session_ttl=60, clock=lambda: now[0])
    asyncio.run(store.auth_sign_in_with_password("bob@example.com", PASSWORD))

    now[0] += timedelta(minutes=5)
    mgr = SessionManager(store)
    assert asyncio.run(mgr.initialize()) is None
    assert mgr.auth_state == AUTH_ANONYMOUS


def test_display_name_fallbacks(store, ids):
    mgr = SessionManager(store)
    assert mgr.display_name() == "User"

    asyncio.run(mgr.sign_in("bob@example.com", PASSWORD))
    assert mgr.display_name() == "Bob"

    asyncio.run(mgr.sign_in("carol@example.com", PASSWORD))
    assert mgr.display_name() == "carol@example.com"


def test_snapshot_reflects_state(store, ids):
    mgr = SessionManager(store)
    asyncio.run(mgr.sign_in("alice@example.com", PASSWORD))
    snap = mgr.snapshot().as_dict()
    assert snap == {
        "auth_state": AUTH_AUTHENTICATED,
        "role_state": ROLE_STATE_RESOLVED,
        "user_id": ids["alice"],
        "email": "alice@example.com",
        "role": "trainee",
    }
    mgr.close()
