# utils/validators.py
import re
from decimal import Decimal, InvalidOperation

_MONTH_KEY_RX = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_EMAIL_RX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def non_empty(text: str) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


def looks_like_email(text: str) -> bool:
    return bool(text and _EMAIL_RX.match(str(text).strip()))


def is_month_key(text: str) -> bool:
    """True iff `text` is a canonical 'YYYY-MM' key."""
    return bool(isinstance(text, str) and _MONTH_KEY_RX.match(text))


# ---- Numeric parsing & validators ----

def try_parse_decimal(x):
    """
    Best-effort parse to Decimal.

    Returns:
        (ok: bool, value: Decimal|None)

    Floats go through str() so 0.1 stays 0.1. Booleans, NaN and infinities
    are rejected.
    """
    if x is None or isinstance(x, bool):
        return False, None
    try:
        val = x if isinstance(x, Decimal) else Decimal(str(x).strip())
    except (InvalidOperation, ValueError):
        return False, None
    if not val.is_finite():
        return False, None
    return True, val


def parse_decimal(x) -> Decimal:
    """
    Strict parse to Decimal; raises ValueError with a clear message on failure.
    """
    ok, val = try_parse_decimal(x)
    if not ok:
        raise ValueError(f"Could not parse '{x}' as a number.")
    return val  # type: ignore[return-value]


def is_non_negative_number(x) -> bool:
    """
    True iff x parses to a number and value >= 0.
    """
    ok, val = try_parse_decimal(x)
    return bool(ok and val is not None and val >= 0)


def is_strictly_positive_number(x) -> bool:
    """
    True iff x parses to a number and value > 0.
    """
    ok, val = try_parse_decimal(x)
    return bool(ok and val is not None and val > 0)
