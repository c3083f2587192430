import os
import uuid
from datetime import datetime, timezone

from ...utils.auth import hash_password

DEFAULT_ADMIN_EMAIL = "admin@example.com"


def seed(conn):
    # if no users exist, create the first admin account
    row = conn.execute("SELECT COUNT(*) AS n FROM auth_users").fetchone()
    if row and row["n"] == 0:
        email = os.environ.get("TRAINING_PORTAL_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL)
        password = os.environ.get("TRAINING_PORTAL_ADMIN_PASSWORD", "admin123")
        user_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        conn.execute(
            "INSERT INTO auth_users(id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (user_id, email, hash_password(password), now),
        )
        conn.execute("""
            INSERT INTO user_profiles(id, email, first_name, last_name, role, created_at)
            VALUES (?, ?, ?, ?, 'admin', ?)
        """, (user_id, email, "Portal", "Administrator", now))
        conn.commit()
