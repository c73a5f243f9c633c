from __future__ import annotations

import time

import pytest

from identity.auth.errors import (
    ConfirmationRequired,
    InvalidCredentials,
    NotFound,
    Unauthorized,
)
from identity.auth.models import LoginRequest
from identity.auth.session import SessionManager
from tests.fakes import (
    FAST_HASHER,
    PASSWORD,
    InMemoryRepo,
    access_codec,
    make_user,
    refresh_codec,
)


def _build(*users) -> tuple[SessionManager, InMemoryRepo]:
    repo = InMemoryRepo()
    for user in users:
        repo.insert_user(user)
    sessions = SessionManager(
        repo=repo,
        hasher=FAST_HASHER,
        access_codec=access_codec(),
        refresh_codec=refresh_codec(),
    )
    return sessions, repo


def _login(sessions: SessionManager, email: str = "a@x.com", password: str = PASSWORD):
    return sessions.login(LoginRequest(email_address=email, password=password))


def test_login_unknown_email_raises_not_found() -> None:
    sessions, _ = _build(make_user())

    with pytest.raises(NotFound):
        _login(sessions, email="unknown@x.com")


def test_login_unconfirmed_account_never_checks_password() -> None:
    sessions, _ = _build(make_user(confirmed=False))

    with pytest.raises(ConfirmationRequired):
        _login(sessions, password="WrongPass1")


def test_login_wrong_password_raises_invalid_credentials() -> None:
    sessions, repo = _build(make_user())

    with pytest.raises(InvalidCredentials):
        _login(sessions, password="WrongPass1")

    assert repo.refresh_tokens == {}


def test_login_issues_tokens_bound_to_user_and_ttls() -> None:
    sessions, repo = _build(make_user())
    before = int(time.time())

    issued = _login(sessions)

    access = access_codec().decode(issued.access_token)
    refresh = refresh_codec().decode(issued.refresh_token)
    assert access.subject == "u1"
    assert refresh.subject == "u1"
    assert before + 3600 <= access.expires_at <= int(time.time()) + 3600
    assert before + 7200 <= refresh.expires_at <= int(time.time()) + 7200
    assert issued.access_ttl_seconds == 3600
    assert issued.refresh_ttl_seconds == 7200
    assert issued.refresh_token in repo.refresh_tokens
    assert repo.get_user_by_id("u1").last_login_at is not None


def test_login_keeps_stored_password_hash() -> None:
    sessions, repo = _build(make_user())

    _login(sessions)
    _login(sessions)

    assert len(repo.refresh_tokens) == 2
    assert FAST_HASHER.verify(
        PASSWORD, repo.get_user_by_id("u1", include_password=True).password_hash
    )


def test_refresh_returns_valid_access_token_unchanged() -> None:
    sessions, _ = _build(make_user())
    issued = _login(sessions)

    outcome = sessions.refresh(issued.access_token, issued.refresh_token)

    assert outcome.minted is False
    assert outcome.access_token == issued.access_token


def test_refresh_mints_access_token_from_stored_refresh_token() -> None:
    sessions, _ = _build(make_user())
    issued = _login(sessions)
    expired_access = access_codec().encode("u1", ttl_seconds=-1)

    outcome = sessions.refresh(expired_access, issued.refresh_token)

    assert outcome.minted is True
    assert outcome.access_token != expired_access
    assert access_codec().decode(outcome.access_token).subject == "u1"


def test_refresh_rejects_refresh_token_missing_from_store() -> None:
    sessions, _ = _build(make_user())
    unknown_refresh = refresh_codec().encode("u1")

    with pytest.raises(Unauthorized):
        sessions.refresh(None, unknown_refresh)
    with pytest.raises(Unauthorized):
        sessions.refresh(None, None)


def test_refresh_rejects_stored_but_expired_refresh_token() -> None:
    sessions, repo = _build(make_user())
    issued = _login(sessions)
    stale = refresh_codec().encode("u1", ttl_seconds=-1)
    repo.refresh_tokens[stale] = repo.refresh_tokens[issued.refresh_token].model_copy(
        update={"token": stale}
    )

    with pytest.raises(Unauthorized):
        sessions.refresh("not-a-token", stale)


def test_logout_removes_refresh_token_and_is_idempotent() -> None:
    sessions, repo = _build(make_user())
    issued = _login(sessions)

    sessions.logout(issued.refresh_token)
    sessions.logout(issued.refresh_token)
    sessions.logout(None)

    assert issued.refresh_token not in repo.refresh_tokens
    with pytest.raises(Unauthorized):
        sessions.refresh(None, issued.refresh_token)


def test_authenticate_resolves_context_from_access_token() -> None:
    sessions, repo = _build(make_user())
    issued = _login(sessions)

    context = sessions.authenticate(issued.access_token)

    assert context.user_id == "u1"
    assert context.email_address == "a@x.com"
    assert context.role == "user"

    repo.users.clear()
    with pytest.raises(Unauthorized):
        sessions.authenticate(issued.access_token)


def test_authenticate_rejects_missing_and_forged_tokens() -> None:
    sessions, _ = _build(make_user())

    for token in (None, "", "forged.token.value", refresh_codec().encode("u1")):
        with pytest.raises(Unauthorized):
            sessions.authenticate(token)
