"""Security primitives: password hashing, signed tokens and random secrets."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import secrets
import time
from dataclasses import dataclass
from typing import Any, Protocol

PBKDF2_ALGORITHM = "pbkdf2_sha256"


class TokenError(ValueError):
    """Raised when a signed token is malformed, forged or expired."""


def _b64url_encode(raw: bytes) -> str:
    """Return URL-safe base64 string without padding."""
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    """Decode URL-safe base64 string with optional missing padding."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


class PasswordHasher(Protocol):
    """One-way password hashing capability."""

    def hash(self, password: str) -> str: ...

    def verify(self, password: str, stored_hash: str) -> bool: ...


class Pbkdf2PasswordHasher:
    """PBKDF2-HMAC-SHA256 hasher with a random salt per password."""

    def __init__(self, iterations: int = 120_000) -> None:
        self._iterations = max(1, int(iterations))

    def hash(self, password: str) -> str:
        """Hash password and encode algorithm, rounds, salt and digest."""
        salt = os.urandom(16)
        derived = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), salt, self._iterations
        )
        return (
            f"{PBKDF2_ALGORITHM}${self._iterations}$"
            f"{_b64url_encode(salt)}${_b64url_encode(derived)}"
        )

    def verify(self, password: str, stored_hash: str) -> bool:
        """Verify password against a stored hash using constant-time comparison."""
        try:
            algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
            rounds = int(rounds_raw)
            salt = _b64url_decode(salt_b64)
            expected = _b64url_decode(digest_b64)
        except (AttributeError, ValueError):
            return False
        if algo != PBKDF2_ALGORITHM:
            return False

        derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
        return hmac.compare_digest(derived, expected)


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a signed bearer token."""

    subject: str
    issued_at: int
    expires_at: int


class TokenCodec(Protocol):
    """Sign and verify expiring bearer tokens carrying a subject claim."""

    ttl_seconds: int

    def encode(self, subject: str, *, ttl_seconds: int | None = None) -> str: ...

    def decode(self, token: str) -> TokenClaims: ...


class SignedTokenCodec:
    """HS256 JWT-compatible codec bound to one secret and one lifetime."""

    def __init__(self, *, secret_key: str, ttl_seconds: int, issuer: str) -> None:
        if not secret_key:
            raise ValueError("secret_key is required")
        self._secret = secret_key.encode("utf-8")
        self._issuer = issuer
        self.ttl_seconds = int(ttl_seconds)

    def encode(self, subject: str, *, ttl_seconds: int | None = None) -> str:
        """Create compact signed token for subject with standard expiry."""
        now_ts = int(time.time())
        lifetime = self.ttl_seconds if ttl_seconds is None else int(ttl_seconds)
        payload = {
            "iss": self._issuer,
            "sub": subject,
            "iat": now_ts,
            "exp": now_ts + lifetime,
            "jti": secrets.token_hex(8),
        }
        header = {"alg": "HS256", "typ": "JWT"}
        header_part = _b64url_encode(
            json.dumps(header, separators=(",", ":")).encode("utf-8")
        )
        payload_part = _b64url_encode(
            json.dumps(payload, separators=(",", ":")).encode("utf-8")
        )
        signing_input = f"{header_part}.{payload_part}".encode("utf-8")
        signature = hmac.new(self._secret, signing_input, hashlib.sha256).digest()
        return f"{header_part}.{payload_part}.{_b64url_encode(signature)}"

    def decode(self, token: str) -> TokenClaims:
        """Verify signature, issuer and expiry, raising ``TokenError`` on failure."""
        try:
            header_part, payload_part, signature_part = token.split(".", 2)
        except ValueError as exc:
            raise TokenError("Malformed token") from exc

        signing_input = f"{header_part}.{payload_part}".encode("utf-8")
        expected_sig = hmac.new(self._secret, signing_input, hashlib.sha256).digest()
        try:
            got_sig = _b64url_decode(signature_part)
        except ValueError as exc:
            raise TokenError("Malformed token signature") from exc
        if not hmac.compare_digest(expected_sig, got_sig):
            raise TokenError("Invalid token signature")

        try:
            payload: dict[str, Any] = json.loads(
                _b64url_decode(payload_part).decode("utf-8")
            )
        except ValueError as exc:
            raise TokenError("Invalid token payload") from exc
        if not isinstance(payload, dict):
            raise TokenError("Invalid token payload")

        if str(payload.get("iss") or "") != self._issuer:
            raise TokenError("Invalid token issuer")
        subject = str(payload.get("sub") or "")
        if not subject:
            raise TokenError("Token subject missing")
        try:
            expires_at = int(payload["exp"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenError("Token expiry missing") from exc
        if expires_at <= int(time.time()):
            raise TokenError("Token expired")

        return TokenClaims(
            subject=subject,
            issued_at=int(payload.get("iat") or 0),
            expires_at=expires_at,
        )


def generate_random_token() -> str:
    """Return a 128-bit URL-safe random token."""
    return secrets.token_urlsafe(16)


def generate_otp(length: int = 6) -> str:
    """Return a numeric one-time code drawn uniformly, leading zeros included."""
    return str(secrets.randbelow(10**length)).zfill(length)
