# training_portal/utils/auth.py
from __future__ import annotations

import secrets
from typing import Union

import bcrypt

# ---- bcrypt defaults / policy ----
_BCRYPT_DEFAULT_ROUNDS = 12          # used when hashing
_BCRYPT_MIN_ROUNDS = 4               # bcrypt's own floor; tests hash with this
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

_TOKEN_BYTES = 32


def _parse_bcrypt_cost(hash_str: str) -> int | None:
    """
    Extract the cost from a bcrypt hash: $2b$12$...
    Returns None if not parseable.
    """
    try:
        parts = hash_str.split("$")
        # ['', '2b', '12', 'rest...']
        if len(parts) < 4:
            return None
        return int(parts[2])
    except ValueError:
        return None


def _as_text(stored_hash: Union[str, bytes, None]) -> str:
    if stored_hash is None:
        return ""
    if isinstance(stored_hash, bytes):
        try:
            stored_hash = stored_hash.decode("utf-8")
        except UnicodeDecodeError:
            return ""
    return stored_hash.strip()


# ------------------------------- Public API -------------------------------

def hash_password(password: str, *, rounds: int = _BCRYPT_DEFAULT_ROUNDS) -> str:
    """
    Hash `password` with bcrypt. `rounds` is clamped to bcrypt's valid range.
    The produced hash is always compatible with verify_password().
    """
    if not isinstance(password, str) or password == "":
        raise ValueError("Password must be a non-empty string")
    rounds = max(_BCRYPT_MIN_ROUNDS, min(int(rounds), 31))
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, stored_hash: Union[str, bytes, None]) -> bool:
    """
    Verify `password` against a bcrypt `stored_hash` ($2a$ / $2b$ / $2y$).
    Unknown or malformed hashes never verify.
    """
    if password is None:
        return False
    h = _as_text(stored_hash)
    if not h.startswith(_BCRYPT_PREFIXES):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), h.encode("utf-8"))
    except ValueError:
        return False


def needs_rehash(stored_hash: Union[str, bytes, None], *, min_rounds: int = _BCRYPT_DEFAULT_ROUNDS) -> bool:
    """
    Policy hook: True if the stored hash should be upgraded on next sign-in
    (cost below `min_rounds`, or not a bcrypt hash at all).
    """
    h = _as_text(stored_hash)
    if not h.startswith(_BCRYPT_PREFIXES):
        return True
    cost = _parse_bcrypt_cost(h)
    return cost is None or cost < min_rounds


def new_session_token() -> str:
    """Opaque URL-safe bearer token for a client session."""
    return secrets.token_urlsafe(_TOKEN_BYTES)
