from __future__ import annotations

import pytest
from pydantic import ValidationError

from identity.auth.models import ChangePasswordRequest, LoginRequest, RegisterRequest


def test_register_request_accepts_camel_case_and_normalizes_email() -> None:
    req = RegisterRequest.model_validate(
        {
            "name": " Alice ",
            "emailAddress": "Alice@X.com",
            "password": "Passw0rd!",
            "phoneNumber": "14155552671",
            "consent": True,
        }
    )

    assert req.name == "Alice"
    assert req.email_address == "alice@x.com"
    assert req.phone_number == "14155552671"


@pytest.mark.parametrize(
    "overrides",
    [
        {"consent": False},
        {"name": "A"},
        {"password": "short"},
        {"password": "x" * 25},
        {"emailAddress": "not-an-email"},
        {"phoneNumber": "12"},
    ],
)
def test_register_request_rejects_invalid_fields(overrides: dict) -> None:
    payload = {
        "name": "Alice",
        "emailAddress": "a@x.com",
        "password": "Passw0rd!",
        "phoneNumber": "14155552671",
        "consent": True,
        **overrides,
    }

    with pytest.raises(ValidationError):
        RegisterRequest.model_validate(payload)


def test_login_request_requires_password_length() -> None:
    with pytest.raises(ValidationError):
        LoginRequest.model_validate({"emailAddress": "a@x.com", "password": "1234"})


def test_change_password_request_rejects_mismatched_confirmation() -> None:
    with pytest.raises(ValidationError) as exc:
        ChangePasswordRequest.model_validate(
            {
                "oldPassword": "Passw0rd!",
                "newPassword": "N3wPassw0rd",
                "confirmNewPassword": "Different1",
            }
        )

    assert "confirmNewPassword must match newPassword" in str(exc.value)
