# database/__init__.py
from __future__ import annotations

from pathlib import Path
import sqlite3

from ..constants import SCHEMA_VERSION
from . import schema as schema_module
from .versioning import ensure_version
from .seeders.default_data import seed as seed_default_data


def get_connection(db_path: Path | str | None = None, *, seed: bool = True) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode (file databases)
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
      - check_same_thread off: SqliteRecordStore runs queries on worker
        threads and serializes them with its own lock
    Ensures schema & seed data are applied idempotently.
    Pass ":memory:" for a throwaway database.
    """
    if db_path is None:
        from ..config import DB_PATH
        db_path = DB_PATH

    in_memory = str(db_path) == ":memory:"
    if not in_memory:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    if not in_memory:
        conn.execute("PRAGMA journal_mode = WAL;")

    schema_module.apply_schema(conn)
    ensure_version(conn, SCHEMA_VERSION)

    # Seeders should be safe to run repeatedly (idempotent).
    if seed:
        seed_default_data(conn)

    conn.commit()
    return conn


__all__ = [
    "get_connection",
]
