# training_portal/main.py
from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .constants import APP_NAME
from .database.sqlite_store import SqliteRecordStore
from .modules.dashboard.controller import DashboardController
from .modules.leaderboard.aggregator import LeaderboardAggregator
from .modules.quiz.engine import QuizEngine
from .modules.session.controller import SessionManager
from .modules.session.registration import RegistrationController
from .utils.helpers import fmt_money
from .utils.loggers import get_logger
from .utils.logging_utils import get_logger as get_audit_logger


@dataclass
class Portal:
    """Everything the views need, wired once at process start."""
    store: SqliteRecordStore
    sessions: SessionManager
    registration: RegistrationController
    quiz: QuizEngine
    leaderboard: LeaderboardAggregator
    dashboard: DashboardController

    def close(self) -> None:
        self.sessions.close()
        self.store.close()


def build_portal(
    db_path: Path | str | None = None,
    *,
    session_path: Path | str | None = None,
    serialize_earnings_writes: bool = True,
    audit: bool = True,
) -> Portal:
    """
    Open the local store and construct one instance of each component.
    `session_path` defaults to config.SESSION_PATH so a sign-in survives restarts.
    """
    if session_path is None:
        from .config import SESSION_PATH
        session_path = SESSION_PATH

    audit_logger = get_audit_logger() if audit else None
    store = SqliteRecordStore.open(db_path, session_path=session_path)
    sessions = SessionManager(store, audit_logger=audit_logger)
    quiz = QuizEngine(store)
    leaderboard = LeaderboardAggregator(
        store, serialize_writes=serialize_earnings_writes, audit_logger=audit_logger
    )
    return Portal(
        store=store,
        sessions=sessions,
        registration=RegistrationController(sessions),
        quiz=quiz,
        leaderboard=leaderboard,
        dashboard=DashboardController(sessions, quiz, leaderboard, audit_logger=audit_logger),
    )


# ------------------------------- CLI -------------------------------

async def _cmd_status(portal: Portal, args) -> int:
    await portal.sessions.initialize()
    await portal.sessions.wait_until_idle()
    s = portal.sessions
    if not s.is_authenticated:
        print("Not signed in.")
        return 0
    print(f"{s.display_name()} <{s.identity.email}> ({portal.dashboard.role_display()})")
    print(f"View: {portal.dashboard.select_view()}")
    return 0


async def _cmd_login(portal: Portal, args) -> int:
    password = args.password or getpass.getpass("Password: ")
    result = await portal.sessions.sign_in(args.email, password)
    if not result.ok:
        print(f"Login failed: {result.error}", file=sys.stderr)
        return 1
    print(f"Signed in as {portal.sessions.display_name()} ({portal.dashboard.role_display()})")
    return 0


async def _cmd_logout(portal: Portal, args) -> int:
    await portal.sessions.initialize()
    result = await portal.sessions.sign_out()
    if result.error:
        print(f"Signed out locally; remote sign-out failed: {result.error}", file=sys.stderr)
    else:
        print("Signed out.")
    return 0


async def _cmd_register(portal: Portal, args) -> int:
    password = args.password or getpass.getpass("Password: ")
    confirm = args.password or getpass.getpass("Confirm password: ")
    result = await portal.registration.register(args.first_name, args.last_name, args.email, password, confirm)
    if not result.ok:
        print(f"Registration failed: {result.error}", file=sys.stderr)
        return 1
    print("Registration successful. You can now sign in.")
    return 0


async def _cmd_leaderboard(portal: Portal, args) -> int:
    month = args.month or portal.leaderboard.month_key_for_now()
    board = await portal.leaderboard.rankings(month)
    if not board:
        print(f"No earnings recorded for {month}.")
        return 0
    print(f"Leaderboard {month}")
    for e in board:
        print(f"{e.rank:>3}. {e.display_name:<30} ${fmt_money(e.amount)}")
    return 0


_COMMANDS = {
    "status": _cmd_status,
    "login": _cmd_login,
    "logout": _cmd_logout,
    "register": _cmd_register,
    "leaderboard": _cmd_leaderboard,
}


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="training-portal", description=APP_NAME)
    p.add_argument("--db", default=None, help="SQLite database path (default: data/training_portal.db)")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Restore the saved session and show the selected view")

    login = sub.add_parser("login", help="Sign in with email and password")
    login.add_argument("email")
    login.add_argument("--password", default=None)

    sub.add_parser("logout", help="Sign out")

    reg = sub.add_parser("register", help="Create a trainee account")
    reg.add_argument("first_name")
    reg.add_argument("last_name")
    reg.add_argument("email")
    reg.add_argument("--password", default=None)

    lb = sub.add_parser("leaderboard", help="Show the monthly earnings leaderboard")
    lb.add_argument("--month", default=None, help="YYYY-MM (default: current month)")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = _parser().parse_args(argv)
    get_logger()
    portal = build_portal(args.db)

    async def run() -> int:
        try:
            return await _COMMANDS[args.command](portal, args)
        finally:
            portal.sessions.close()

    try:
        return asyncio.run(run())
    finally:
        portal.store.close()


if __name__ == "__main__":
    sys.exit(main())
