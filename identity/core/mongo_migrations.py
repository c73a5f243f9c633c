"""Versioned MongoDB schema migrations for identity collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pymongo.errors import PyMongoError

from identity.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

USERS_COLLECTION = "users"
REFRESH_TOKENS_COLLECTION = "refresh_tokens"
TTL_INDEX_NAME = "idx_refresh_tokens_created_at_ttl"

MigrationFn = Callable[[Any], None]


def _migration_01_user_indexes(db: Any) -> None:
    users = db[USERS_COLLECTION]
    users.create_index("user_id", unique=True)
    users.create_index("email_address", unique=True)
    users.create_index(
        [("account_confirmation.token", 1), ("account_confirmation.code", 1)]
    )
    users.create_index("password_reset.token", sparse=True)


def _migration_02_refresh_token_index(db: Any) -> None:
    db[REFRESH_TOKENS_COLLECTION].create_index("token", unique=True)


def sync_refresh_token_ttl(db: Any, refresh_ttl_seconds: int) -> bool:
    """Rebuild the TTL index when its expiry differs; return True if rebuilt."""
    tokens = db[REFRESH_TOKENS_COLLECTION]
    expected = int(refresh_ttl_seconds)
    current = tokens.index_information().get(TTL_INDEX_NAME)
    if current is not None and current.get("expireAfterSeconds") == expected:
        return False
    if current is not None:
        tokens.drop_index(TTL_INDEX_NAME)
    tokens.create_index("created_at", expireAfterSeconds=expected, name=TTL_INDEX_NAME)
    LOGGER.info("refresh_token_ttl_synced: expire_after_seconds=%s", expected)
    return True


def apply_mongo_migrations(db: Any, *, refresh_ttl_seconds: int) -> list[str]:
    """Apply pending migrations on ``db`` and return the ids that ran.

    The refresh-token TTL index is compared with ``refresh_ttl_seconds`` on
    every call, outside the ledger, so a changed TTL always takes effect.
    """
    migrations: list[tuple[str, MigrationFn]] = [
        ("01_user_indexes", _migration_01_user_indexes),
        ("02_refresh_token_index", _migration_02_refresh_token_index),
    ]

    applied: list[str] = []
    migration_collection = db["schema_migrations"]
    try:
        migration_collection.create_index("migration_id", unique=True)
        for migration_id, migration_fn in migrations:
            if migration_collection.find_one({"migration_id": migration_id}):
                continue
            migration_fn(db)
            migration_collection.insert_one(
                {
                    "migration_id": migration_id,
                    "applied_at": datetime.now(timezone.utc),
                    "correlation_id": CORRELATION_ID_CTX.get(),
                }
            )
            applied.append(migration_id)
        sync_refresh_token_ttl(db, refresh_ttl_seconds)
    except PyMongoError:
        LOGGER.exception("mongo_migrations_failed")
        raise

    if applied:
        LOGGER.info("mongo_migrations_applied: %s", ", ".join(applied))
    return applied
