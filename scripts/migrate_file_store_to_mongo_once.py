#!/usr/bin/env python3
"""One-shot migration of the JSON fallback identity store into MongoDB."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import pymongo
from dotenv import load_dotenv
from pydantic import ValidationError

from identity.auth.models import RefreshTokenRecord, UserRecord
from identity.core.config import AppConfig
from identity.core.mongo_migrations import (
    REFRESH_TOKENS_COLLECTION,
    USERS_COLLECTION,
    apply_mongo_migrations,
)

MAX_PREVIEW_ITEMS = 10


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Check and migrate identity users and sessions from JSON to MongoDB."
    )
    parser.add_argument(
        "--store-dir",
        type=Path,
        default=None,
        help="Fallback store directory (defaults to AUTH_STORE_DIR).",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only print diff/check report and do not write into MongoDB.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and print migration plan without writing into MongoDB.",
    )
    return parser.parse_args()


def load_source_rows(path: Path) -> list[dict[str, Any]]:
    """Load raw rows from a fallback JSON file."""
    if not path.exists():
        return []
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"Expected list in {path}, got {type(payload).__name__}")
    return [item for item in payload if isinstance(item, dict)]


def normalize_source_users(
    rows: list[dict[str, Any]],
) -> tuple[dict[str, UserRecord], list[str], int]:
    """Validate users keyed by lowercased email; report duplicates and rejects."""
    users: dict[str, UserRecord] = {}
    duplicates: list[str] = []
    invalid_count = 0
    for row in rows:
        try:
            user = UserRecord.model_validate(row)
        except ValidationError:
            invalid_count += 1
            continue
        email = user.email_address.strip().lower()
        if email in users:
            duplicates.append(email)
        users[email] = user.model_copy(update={"email_address": email})
    return users, sorted(set(duplicates)), invalid_count


def normalize_refresh_tokens(rows: list[dict[str, Any]]) -> list[RefreshTokenRecord]:
    """Validate refresh-token rows, skipping malformed ones."""
    records: list[RefreshTokenRecord] = []
    for row in rows:
        try:
            records.append(RefreshTokenRecord.model_validate(row))
        except ValidationError:
            continue
    return records


def target_email_set(collection: Any) -> set[str]:
    """Return normalized email set from target collection."""
    return {
        str(row.get("email_address", "")).strip().lower()
        for row in collection.find({}, {"_id": 0, "email_address": 1})
    }


def migrate_users(
    source_map: dict[str, UserRecord],
    collection: Any,
    dry_run: bool,
) -> tuple[int, int]:
    """Upsert source users into target collection by email."""
    if not source_map:
        return 0, 0

    missing_before = set(source_map) - target_email_set(collection)
    if dry_run:
        return len(source_map), len(missing_before)

    for email, user in source_map.items():
        collection.update_one(
            {"email_address": email},
            {"$set": user.model_dump(mode="python")},
            upsert=True,
        )
    return len(source_map), len(missing_before)


def migrate_refresh_tokens(
    records: list[RefreshTokenRecord], collection: Any, dry_run: bool
) -> int:
    """Upsert refresh tokens by token value, keeping their creation time."""
    if dry_run:
        return len(records)
    for record in records:
        collection.update_one(
            {"token": record.token},
            {"$setOnInsert": record.model_dump(mode="python")},
            upsert=True,
        )
    return len(records)


def _print_check_report(
    store_dir: Path,
    source_total_rows: int,
    invalid_count: int,
    source_map: dict[str, UserRecord],
    duplicate_emails: list[str],
    target_emails: set[str],
) -> None:
    """Print source/target consistency report."""
    missing_in_target = sorted(set(source_map) - target_emails)
    extra_in_target = sorted(target_emails - set(source_map))

    print(f"Source dir: {store_dir}")
    print(f"Source rows total: {source_total_rows}")
    print(f"Source valid users: {len(source_map)}")
    print(f"Source invalid rows skipped: {invalid_count}")
    print(f"Source duplicate emails: {len(duplicate_emails)}")
    if duplicate_emails:
        print(f"Duplicate preview: {', '.join(duplicate_emails[:MAX_PREVIEW_ITEMS])}")
    print(f"Target users total: {len(target_emails)}")
    print(f"Missing in target: {len(missing_in_target)}")
    if missing_in_target:
        print(f"Missing preview: {', '.join(missing_in_target[:MAX_PREVIEW_ITEMS])}")
    print(f"Extra in target: {len(extra_in_target)}")


def main() -> int:
    """Execute check or migration flow."""
    load_dotenv()
    args = _parse_args()
    config = AppConfig.from_env()
    store_dir = args.store_dir or Path(config.storage.fallback_dir)

    user_rows = load_source_rows(store_dir / "users.json")
    source_map, duplicate_emails, invalid_count = normalize_source_users(user_rows)
    refresh_records = normalize_refresh_tokens(
        load_source_rows(store_dir / "refresh_tokens.json")
    )

    if not config.storage.mongo_uri:
        print("ERROR: MONGODB_URI is empty. Set env var before running script.", file=sys.stderr)
        return 1

    mongo_client = None
    try:
        mongo_client = pymongo.MongoClient(
            config.storage.mongo_uri, serverSelectionTimeoutMS=5000, tz_aware=True
        )
        mongo_client.admin.command("ping")
        db = mongo_client[config.storage.mongo_db]
        users = db[USERS_COLLECTION]

        if args.check:
            _print_check_report(
                store_dir=store_dir,
                source_total_rows=len(user_rows),
                invalid_count=invalid_count,
                source_map=source_map,
                duplicate_emails=duplicate_emails,
                target_emails=target_email_set(users),
            )
            return 0

        if not args.dry_run:
            apply_mongo_migrations(
                db, refresh_ttl_seconds=config.auth.refresh_token_ttl_seconds
            )
        processed, inserted_candidates = migrate_users(
            source_map=source_map, collection=users, dry_run=args.dry_run
        )
        sessions = migrate_refresh_tokens(
            refresh_records, db[REFRESH_TOKENS_COLLECTION], dry_run=args.dry_run
        )
        print(f"Source rows total: {len(user_rows)}")
        print(f"Source invalid rows skipped: {invalid_count}")
        print(f"Processed users: {processed}")
        print(f"Potentially inserted users: {inserted_candidates}")
        print(f"Processed refresh tokens: {sessions}")
        print(f"Mode: {'dry-run' if args.dry_run else 'write'}")
        return 0
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        if mongo_client is not None:
            mongo_client.close()


if __name__ == "__main__":
    raise SystemExit(main())
