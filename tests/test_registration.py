# tests/test_registration.py
import asyncio

import pytest

from training_portal.constants import REL_USER_PROFILES
from training_portal.errors import BackendError
from training_portal.modules.session.controller import SessionManager
from training_portal.modules.session.model import AUTH_ANONYMOUS, AUTH_AUTHENTICATED
from training_portal.modules.session.registration import RegistrationController

from .conftest import PASSWORD


@pytest.mark.parametrize(
    "form,message",
    [
        (("", "Diaz", "d@example.com", "secret1", "secret1"), "First name and last name are required"),
        (("Dave", "   ", "d@example.com", "secret1", "secret1"), "First name and last name are required"),
        (("Dave", "Diaz", "not-an-email", "secret1", "secret1"), "A valid email address is required"),
        (("Dave", "Diaz", "d@example.com", "secret1", "secret2"), "Passwords do not match"),
        (("Dave", "Diaz", "d@example.com", "12345", "12345"), "Password must be at least 6 characters"),
    ],
)
def test_validation_messages(form, message):
    assert RegistrationController.validate(*form) == message


def test_valid_form_passes():
    assert RegistrationController.validate("Dave", "Diaz", "d@example.com", "123456", "123456") is None


def test_invalid_form_never_reaches_the_store(controlled):
    reg = RegistrationController(SessionManager(controlled))
    result = asyncio.run(reg.register("Dave", "Diaz", "d@example.com", "abc", "abc"))
    assert not result.ok
    assert controlled.calls == []


def test_register_creates_named_trainee_without_signing_in(store):
    mgr = SessionManager(store)
    reg = RegistrationController(mgr)
    result = asyncio.run(reg.register(" Dave ", "Diaz ", "dave@example.com", PASSWORD, PASSWORD))

    assert result.ok and result.error is None
    prof = asyncio.run(store.query_one(REL_USER_PROFILES, {"id": result.identity.user_id}))
    assert (prof["first_name"], prof["last_name"], prof["role"]) == ("Dave", "Diaz", "trainee")
    assert mgr.identity is None
    assert mgr.auth_state != AUTH_AUTHENTICATED

    # can sign in afterwards
    assert asyncio.run(mgr.sign_in("dave@example.com", PASSWORD)).ok


def test_register_duplicate_email(store, ids):
    reg = RegistrationController(SessionManager(store))
    result = asyncio.run(reg.register("Al", "Ice", "alice@example.com", PASSWORD, PASSWORD))
    assert not result.ok
    assert "already registered" in result.error


def test_name_update_failure_does_not_fail_registration(controlled):
    controlled.fail["update"] = BackendError("permission denied")
    reg = RegistrationController(SessionManager(controlled))
    result = asyncio.run(reg.register("Dave", "Diaz", "dave@example.com", PASSWORD, PASSWORD))
    assert result.ok
    assert controlled.called("update") == 1


def test_register_then_state_stays_anonymous_after_initialize(store):
    mgr = SessionManager(store)
    asyncio.run(mgr.initialize())
    asyncio.run(RegistrationController(mgr).register("Eve", "Ng", "eve@example.com", PASSWORD, PASSWORD))
    assert mgr.auth_state == AUTH_ANONYMOUS
