from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from identity.auth.models import RefreshTokenRecord
from identity.auth.repository import DuplicateUserError, IdentityRepository
from identity.core.config import StorageConfig
from tests.fakes import FAST_HASHER, PASSWORD, make_user


def _repo(tmp_path: Path, refresh_ttl_seconds: int = 60) -> IdentityRepository:
    return IdentityRepository(
        StorageConfig(mongo_uri="", mongo_db="identity", fallback_dir="auth_store"),
        refresh_ttl_seconds=refresh_ttl_seconds,
        app_root=tmp_path,
    )


def test_repository_uses_file_store_without_mongo_uri(tmp_path: Path) -> None:
    repo = _repo(tmp_path)

    assert repo.backend == "file"
    assert (tmp_path / "auth_store").is_dir()


def test_repository_get_user_by_email_is_case_insensitive(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    repo.insert_user(make_user())

    found = repo.get_user_by_email("A@X.com")

    assert found is not None
    assert found.user_id == "u1"
    assert found.phone_number.iso_code == "GB"


def test_repository_hides_password_hash_unless_requested(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    repo.insert_user(make_user())

    without = repo.get_user_by_id("u1")
    with_hash = repo.get_user_by_id("u1", include_password=True)

    assert without.password_hash is None
    assert FAST_HASHER.verify(PASSWORD, with_hash.password_hash)


def test_repository_rejects_duplicate_email(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    repo.insert_user(make_user())

    with pytest.raises(DuplicateUserError):
        repo.insert_user(make_user(user_id="u2"))

    rows = json.loads((tmp_path / "auth_store" / "users.json").read_text("utf-8"))
    assert len(rows) == 1


def test_repository_save_without_hash_keeps_stored_hash(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    repo.insert_user(make_user())
    user = repo.get_user_by_email("a@x.com")
    user.name = "Alice Liddell"

    repo.save_user(user)

    stored = repo.get_user_by_id("u1", include_password=True)
    assert stored.name == "Alice Liddell"
    assert FAST_HASHER.verify(PASSWORD, stored.password_hash)


def test_repository_finds_by_confirmation_pair_and_reset_token(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    user = make_user()
    user.password_reset.token = "reset-1"
    repo.insert_user(user)

    assert repo.get_user_by_confirmation("token-u1", "123456").user_id == "u1"
    assert repo.get_user_by_confirmation("token-u1", "654321") is None
    assert repo.get_user_by_reset_token("reset-1").user_id == "u1"
    assert repo.get_user_by_reset_token("") is None
    assert repo.get_user_by_reset_token("reset-2") is None


def test_repository_refresh_token_lifecycle(tmp_path: Path) -> None:
    repo = _repo(tmp_path)

    repo.create_refresh_token(RefreshTokenRecord(token="r1"))

    assert repo.get_refresh_token("r1") is not None
    assert repo.delete_refresh_token("r1") is True
    assert repo.delete_refresh_token("r1") is False
    assert repo.get_refresh_token("r1") is None


def test_repository_drops_refresh_tokens_older_than_ttl(tmp_path: Path) -> None:
    repo = _repo(tmp_path, refresh_ttl_seconds=60)
    old = datetime.now(timezone.utc) - timedelta(seconds=120)

    repo.create_refresh_token(RefreshTokenRecord(token="old", created_at=old))
    repo.create_refresh_token(RefreshTokenRecord(token="fresh"))

    assert repo.get_refresh_token("old") is None
    assert repo.get_refresh_token("fresh") is not None
    rows = json.loads(
        (tmp_path / "auth_store" / "refresh_tokens.json").read_text("utf-8")
    )
    assert [row["token"] for row in rows] == ["fresh"]


def test_repository_handles_corrupted_users_file(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    (tmp_path / "auth_store" / "users.json").write_text("{ invalid", encoding="utf-8")

    assert repo.get_user_by_email("broken@x.com") is None
