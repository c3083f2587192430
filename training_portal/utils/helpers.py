# utils/helpers.py
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
import logging
from typing import Any, Mapping, Optional, Union

NumberLike = Union[Decimal, float, int, str]

_log = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_str() -> str:
    """Current UTC time as ISO-8601 text with microseconds (sorts lexically)."""
    return utc_now().isoformat(timespec="microseconds")


def month_key_for(d: Optional[date] = None) -> str:
    """
    Canonical 'YYYY-MM' key for the month containing `d` (today when omitted).
    Every earnings read/write derives its month through here.
    """
    d = d or date.today()
    return f"{d.year:04d}-{d.month:02d}"


def to_money(v: NumberLike) -> Decimal:
    """Quantize to cents, half-up."""
    return Decimal(str(v)).quantize(_CENTS, rounding=ROUND_HALF_UP)


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError.
    """
    try:
        x = Decimal(str(v))
        if not x.is_finite():
            raise ValueError(v)
    except Exception as e:
        _log.debug("fmt_money: failed to parse %r as a number: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"


def display_name(profile: Optional[Mapping[str, Any]], email: Optional[str] = None, default: str = "User") -> str:
    """
    'First Last' when both names are set, else first name, else email, else `default`.
    `profile` may be a dict row or None.
    """
    first = (profile or {}).get("first_name")
    last = (profile or {}).get("last_name")
    if first and last:
        return f"{first} {last}"
    if first:
        return str(first)
    mail = email or (profile or {}).get("email")
    if mail:
        return str(mail)
    return default
