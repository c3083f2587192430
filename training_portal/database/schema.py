from pathlib import Path
import sqlite3
import sys

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== AUTH ======================== */

CREATE TABLE IF NOT EXISTS auth_users (
    id            TEXT PRIMARY KEY,
    email         TEXT UNIQUE NOT NULL COLLATE NOCASE,
    password_hash TEXT NOT NULL,
    created_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS auth_sessions (
    token      TEXT PRIMARY KEY,
    user_id    TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES auth_users(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_auth_sessions_user ON auth_sessions(user_id);

/* ======================== PROFILES ======================== */

CREATE TABLE IF NOT EXISTS user_profiles (
    id         TEXT PRIMARY KEY,
    email      TEXT,
    first_name TEXT,
    last_name  TEXT,
    /* NULL is allowed on purpose: role resolution treats it as trainee */
    role       TEXT DEFAULT 'trainee' CHECK (role IS NULL OR role IN ('trainee','admin')),
    created_at TEXT NOT NULL
);

/* ======================== QUIZ (append-only) ======================== */

CREATE TABLE IF NOT EXISTS quiz_attempts (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT    NOT NULL,
    score           INTEGER NOT NULL CHECK (score BETWEEN 0 AND 100),
    correct_answers INTEGER NOT NULL CHECK (correct_answers >= 0),
    total_questions INTEGER NOT NULL CHECK (total_questions > 0),
    answers         TEXT    NOT NULL DEFAULT '{}',
    created_at      TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_quiz_attempts_user ON quiz_attempts(user_id, created_at);

DROP TRIGGER IF EXISTS trg_quiz_attempts_no_update;
CREATE TRIGGER trg_quiz_attempts_no_update
BEFORE UPDATE ON quiz_attempts
BEGIN
  SELECT RAISE(ABORT, 'quiz_attempts is append-only');
END;

/* ======================== LEADERBOARD ======================== */

CREATE TABLE IF NOT EXISTS leaderboard_earnings (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id    TEXT    NOT NULL,
    /* decimal text; NUMERIC affinity would round it through REAL */
    amount     TEXT    NOT NULL CHECK (CAST(amount AS REAL) >= 0),
    month_year TEXT    NOT NULL CHECK (length(month_year) = 7 AND substr(month_year, 5, 1) = '-'),
    updated_by TEXT,
    updated_at TEXT    NOT NULL,
    UNIQUE (user_id, month_year)
);
CREATE INDEX IF NOT EXISTS idx_leaderboard_month ON leaderboard_earnings(month_year);
"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)
    conn.commit()


def init_schema(db_path: Path | str = "training_portal.db") -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path.cwd() / "data" / "training_portal.db"
    init_schema(target)
    print(f"✓ DB applied to {target}")
