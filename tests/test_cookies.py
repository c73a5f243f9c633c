from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from starlette.responses import Response

from identity.auth.cookies import SessionCookies
from identity.core.config import ServerConfig
from tests.fakes import app_config


def _set_cookie_headers(response: Response) -> list[str]:
    return [
        value.decode("latin-1").lower()
        for key, value in response.raw_headers
        if key == b"set-cookie"
    ]


def test_session_cookies_use_strict_http_only_attributes(tmp_path: Path) -> None:
    config = replace(
        app_config(tmp_path),
        server=ServerConfig(
            environment="production",
            server_url="https://api.example.com",
            frontend_url="https://app.example.com",
        ),
    )
    response = Response()

    SessionCookies(config).set_access_token(response, "tok", 3600)

    (header,) = _set_cookie_headers(response)
    assert header.startswith("accesstoken=tok;")
    assert "domain=api.example.com" in header
    assert "httponly" in header
    assert "max-age=3600" in header
    assert "path=/api/v1" in header
    assert "samesite=strict" in header
    assert "secure" in header


def test_session_cookies_drop_secure_in_development(tmp_path: Path) -> None:
    response = Response()

    SessionCookies(app_config(tmp_path)).set_refresh_token(response, "tok")

    (header,) = _set_cookie_headers(response)
    assert header.startswith("refreshtoken=tok;")
    assert "max-age=7200" in header
    assert "secure" not in header


def test_session_cookies_clear_expires_both(tmp_path: Path) -> None:
    response = Response()

    SessionCookies(app_config(tmp_path)).clear(response)

    headers = _set_cookie_headers(response)
    assert len(headers) == 2
    assert all("max-age=0" in header for header in headers)
