# tests/test_utils.py
import asyncio
import json
import logging
from datetime import date
from decimal import Decimal

import pytest

from training_portal.utils.async_utils import Generation, race_timeout
from training_portal.utils.auth import hash_password, needs_rehash, new_session_token, verify_password
from training_portal.utils.helpers import display_name, fmt_money, month_key_for, to_money
from training_portal.utils.logging_utils import _JsonLineFormatter, log_event
from training_portal.utils.validators import (
    is_month_key,
    is_non_negative_number,
    is_strictly_positive_number,
    looks_like_email,
    try_parse_decimal,
)


# ---------------- validators ----------------

@pytest.mark.parametrize("key,ok", [("2024-01", True), ("2024-12", True), ("2024-00", False), ("2024-1", False), ("202401", False), (None, False)])
def test_is_month_key(key, ok):
    assert is_month_key(key) is ok


@pytest.mark.parametrize("text,ok", [("a@b.co", True), (" a@b.co ", True), ("a@b", False), ("a b@c.d", False), ("", False)])
def test_looks_like_email(text, ok):
    assert looks_like_email(text) is ok


@pytest.mark.parametrize("raw,expected", [("1.50", Decimal("1.50")), (0.1, Decimal("0.1")), (3, Decimal("3")), (" 7 ", Decimal("7"))])
def test_try_parse_decimal_accepts(raw, expected):
    assert try_parse_decimal(raw) == (True, expected)


@pytest.mark.parametrize("raw", [None, True, "", "abc", "inf", float("nan")])
def test_try_parse_decimal_rejects(raw):
    assert try_parse_decimal(raw) == (False, None)


@pytest.mark.parametrize(
    "raw,non_negative,positive",
    [(0, True, False), ("0.01", True, True), (-1, False, False), ("abc", False, False), (None, False, False)],
)
def test_sign_checks(raw, non_negative, positive):
    assert is_non_negative_number(raw) is non_negative
    assert is_strictly_positive_number(raw) is positive


# ---------------- helpers ----------------

def test_month_key_for():
    assert month_key_for(date(2023, 1, 9)) == "2023-01"


def test_money_helpers():
    assert to_money("2.005") == Decimal("2.01")
    assert fmt_money(Decimal("1234.5")) == "1,234.50"
    assert fmt_money("oops", sentinel="N/A") == "N/A"
    with pytest.raises(ValueError):
        fmt_money("oops", strict=True)


@pytest.mark.parametrize(
    "profile,email,expected",
    [
        ({"first_name": "Ada", "last_name": "Admin"}, None, "Ada Admin"),
        ({"first_name": "Ada", "last_name": None}, "a@x.io", "Ada"),
        ({"first_name": None, "last_name": "Admin"}, "a@x.io", "a@x.io"),
        ({"email": "p@x.io"}, None, "p@x.io"),
        (None, None, "User"),
    ],
)
def test_display_name(profile, email, expected):
    assert display_name(profile, email=email) == expected


# ---------------- auth ----------------

def test_password_hash_round_trip():
    h = hash_password("hunter22", rounds=4)
    assert verify_password("hunter22", h)
    assert not verify_password("hunter23", h)
    assert needs_rehash(h)
    assert not needs_rehash(h, min_rounds=4)


def test_malformed_hashes_never_verify():
    assert not verify_password("x", None)
    assert not verify_password("x", "plaintext")
    assert needs_rehash("plaintext")


def test_empty_password_cannot_be_hashed():
    with pytest.raises(ValueError):
        hash_password("")


def test_session_tokens_are_unique():
    assert len({new_session_token() for _ in range(50)}) == 50


# ---------------- async ----------------

def test_race_timeout_returns_result_in_time():
    async def quick():
        return 7

    assert asyncio.run(race_timeout(quick(), 1)) == 7


def test_race_timeout_raises_and_leaves_call_running():
    finished = []

    async def slow():
        await asyncio.sleep(0.1)
        finished.append(True)

    async def scenario():
        with pytest.raises(asyncio.TimeoutError):
            await race_timeout(slow(), 0.01)
        await asyncio.sleep(0.2)

    asyncio.run(scenario())
    assert finished == [True]


def test_generation_rejects_older_tags():
    gen = Generation()
    first, second = gen.next(), gen.next()
    assert gen.try_apply(second)
    assert not gen.try_apply(first)
    gen.invalidate()
    assert not gen.try_apply(second)
    assert gen.try_apply(gen.next())


# ---------------- audit log ----------------

def test_log_event_writes_json_line(tmp_path):
    path = tmp_path / "audit.jsonl"
    logger = logging.getLogger("training_portal.audit.test")
    logger.propagate = False
    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(_JsonLineFormatter())
    logger.addHandler(handler)
    try:
        log_event(logger, "earnings.set", "ok", "Earnings updated", {"user_id": "u1", "op": "ignored"})
    finally:
        logger.removeHandler(handler)
        handler.close()

    line = json.loads(path.read_text(encoding="utf-8").strip())
    assert line["msg"] == "Earnings updated"
    assert line["extra"] == {"op": "earnings.set", "phase": "ok", "user_id": "u1"}
