"""Repository for user and refresh-token persistence."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from identity.auth.models import RefreshTokenRecord, UserRecord
from identity.core.config import StorageConfig
from identity.core.mongo_migrations import (
    REFRESH_TOKENS_COLLECTION,
    USERS_COLLECTION,
    apply_mongo_migrations,
)

LOGGER = logging.getLogger(__name__)

_WITHOUT_PASSWORD = {"_id": 0, "password_hash": 0}
_WITH_PASSWORD = {"_id": 0}


class StorageError(Exception):
    """Raised when the underlying store fails to read or write."""


class DuplicateUserError(StorageError):
    """Raised when inserting a user whose email address is already taken."""


class IdentityRepository:
    """Identity store with MongoDB primary and file-store fallback.

    Password hashes are only returned when ``include_password=True``.
    Refresh-token records expire ``refresh_ttl_seconds`` after creation:
    MongoDB enforces this with a TTL index, the file store prunes on access.
    """

    def __init__(
        self,
        config: StorageConfig,
        *,
        refresh_ttl_seconds: int,
        app_root: Path | None = None,
    ) -> None:
        """Initialize repository storage backends."""
        fallback_dir = Path(config.fallback_dir)
        if not fallback_dir.is_absolute() and app_root is not None:
            fallback_dir = app_root / fallback_dir
        self._fallback_dir = fallback_dir
        self._users_file = fallback_dir / "users.json"
        self._refresh_file = fallback_dir / "refresh_tokens.json"
        self._refresh_ttl = timedelta(seconds=int(refresh_ttl_seconds))
        self._file_lock = threading.Lock()

        self._mongo_client: MongoClient | None = None
        self._mongo_users: Any = None
        self._mongo_refresh: Any = None

        if config.mongo_uri:
            try:
                client: MongoClient = MongoClient(
                    config.mongo_uri, serverSelectionTimeoutMS=3000, tz_aware=True
                )
                client.admin.command("ping")
                db = client[config.mongo_db]
                apply_mongo_migrations(db, refresh_ttl_seconds=int(refresh_ttl_seconds))
                self._mongo_client = client
                self._mongo_users = db[USERS_COLLECTION]
                self._mongo_refresh = db[REFRESH_TOKENS_COLLECTION]
            except PyMongoError:
                LOGGER.warning("mongo_unavailable_using_file_store", exc_info=True)

        if self._mongo_users is None:
            self._fallback_dir.mkdir(parents=True, exist_ok=True)

    @property
    def backend(self) -> str:
        """Return the name of the active storage backend."""
        return "mongodb" if self._mongo_users is not None else "file"

    def close(self) -> None:
        """Close MongoDB client resources."""
        if self._mongo_client is not None:
            self._mongo_client.close()

    # Users

    def get_user_by_email(
        self, email_address: str, *, include_password: bool = False
    ) -> UserRecord | None:
        """Get user by email address."""
        return self._find_user(
            {"email_address": email_address.strip().lower()},
            include_password=include_password,
        )

    def get_user_by_id(
        self, user_id: str, *, include_password: bool = False
    ) -> UserRecord | None:
        """Get user by identifier."""
        return self._find_user({"user_id": user_id}, include_password=include_password)

    def get_user_by_confirmation(self, token: str, code: str) -> UserRecord | None:
        """Get user by exact confirmation token and code pair."""
        return self._find_user(
            {"account_confirmation.token": token, "account_confirmation.code": code}
        )

    def get_user_by_reset_token(self, token: str) -> UserRecord | None:
        """Get user holding the given password reset token."""
        if not token:
            return None
        return self._find_user({"password_reset.token": token})

    def insert_user(self, user: UserRecord) -> None:
        """Insert a new user, raising ``DuplicateUserError`` on a taken email."""
        doc = user.model_dump(mode="python")
        if self._mongo_users is not None:
            try:
                self._mongo_users.insert_one(doc)
            except DuplicateKeyError as exc:
                raise DuplicateUserError(user.email_address) from exc
            except PyMongoError as exc:
                raise StorageError("Failed to insert user") from exc
            return

        with self._file_lock:
            items = self._read_json_file(self._users_file)
            if any(row.get("email_address") == user.email_address for row in items):
                raise DuplicateUserError(user.email_address)
            items.append(user.model_dump(mode="json"))
            self._write_json_file(self._users_file, items)
        LOGGER.debug("user_inserted", extra={"email": user.email_address})

    def save_user(self, user: UserRecord) -> None:
        """Persist changes to an existing user.

        A record loaded without its password hash keeps the stored hash.
        """
        user.updated_at = datetime.now(timezone.utc)
        exclude = {"password_hash"} if user.password_hash is None else set()
        if self._mongo_users is not None:
            doc = user.model_dump(mode="python", exclude=exclude)
            try:
                self._mongo_users.update_one({"user_id": user.user_id}, {"$set": doc})
            except PyMongoError as exc:
                raise StorageError("Failed to update user") from exc
            return

        doc = user.model_dump(mode="json", exclude=exclude)
        with self._file_lock:
            items = self._read_json_file(self._users_file)
            for row in items:
                if row.get("user_id") == user.user_id:
                    row.update(doc)
                    break
            else:
                raise StorageError(f"User not found: {user.user_id}")
            self._write_json_file(self._users_file, items)

    # Refresh tokens

    def create_refresh_token(self, record: RefreshTokenRecord) -> None:
        """Store refresh token record issued at login."""
        if self._mongo_refresh is not None:
            try:
                self._mongo_refresh.insert_one(record.model_dump(mode="python"))
            except PyMongoError as exc:
                raise StorageError("Failed to store refresh token") from exc
            return

        with self._file_lock:
            items = self._live_refresh_rows()
            items.append(record.model_dump(mode="json"))
            self._write_json_file(self._refresh_file, items)

    def get_refresh_token(self, token: str) -> RefreshTokenRecord | None:
        """Get unexpired refresh token record by its verbatim token."""
        if self._mongo_refresh is not None:
            try:
                doc = self._mongo_refresh.find_one({"token": token}, {"_id": 0})
            except PyMongoError as exc:
                raise StorageError("Failed to read refresh token") from exc
            if not doc:
                return None
            record = RefreshTokenRecord.model_validate(doc)
            # The TTL monitor runs periodically, so a stale document may linger.
            return None if self._is_expired(record) else record

        with self._file_lock:
            for row in self._live_refresh_rows():
                if row.get("token") == token:
                    return RefreshTokenRecord.model_validate(row)
        return None

    def delete_refresh_token(self, token: str) -> bool:
        """Delete refresh token record, returning whether one existed."""
        if self._mongo_refresh is not None:
            try:
                result = self._mongo_refresh.delete_one({"token": token})
            except PyMongoError as exc:
                raise StorageError("Failed to delete refresh token") from exc
            return bool(result.deleted_count)

        with self._file_lock:
            items = self._live_refresh_rows()
            remaining = [row for row in items if row.get("token") != token]
            self._write_json_file(self._refresh_file, remaining)
        return len(remaining) != len(items)

    # Helpers

    def _find_user(
        self, query: dict[str, Any], *, include_password: bool = False
    ) -> UserRecord | None:
        if self._mongo_users is not None:
            projection = _WITH_PASSWORD if include_password else _WITHOUT_PASSWORD
            try:
                doc = self._mongo_users.find_one(query, projection)
            except PyMongoError as exc:
                raise StorageError("Failed to read user") from exc
            return UserRecord.model_validate(doc) if doc else None

        with self._file_lock:
            rows = self._read_json_file(self._users_file)
        for row in rows:
            if all(_lookup(row, path) == value for path, value in query.items()):
                if not include_password:
                    row = {k: v for k, v in row.items() if k != "password_hash"}
                return UserRecord.model_validate(row)
        return None

    def _is_expired(self, record: RefreshTokenRecord) -> bool:
        created_at = record.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at + self._refresh_ttl <= datetime.now(timezone.utc)

    def _live_refresh_rows(self) -> list[dict[str, Any]]:
        """Read refresh rows dropping expired ones. Caller holds the lock."""
        live: list[dict[str, Any]] = []
        for row in self._read_json_file(self._refresh_file):
            try:
                record = RefreshTokenRecord.model_validate(row)
            except ValueError:
                continue
            if not self._is_expired(record):
                live.append(row)
        return live

    def _read_json_file(self, path: Path) -> list[dict[str, Any]]:
        """Read list payload from JSON file with empty fallback."""
        if not path.exists():
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("file_store_unreadable: %s", path.name)
            return []
        return payload if isinstance(payload, list) else []

    def _write_json_file(self, path: Path, items: list[dict[str, Any]]) -> None:
        """Persist list payload to JSON file atomically."""
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp_path.write_text(
                json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            tmp_path.replace(path)
        except OSError as exc:
            raise StorageError(f"Failed to write {path.name}") from exc


def _lookup(row: dict[str, Any], dotted_path: str) -> Any:
    node: Any = row
    for key in dotted_path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node
