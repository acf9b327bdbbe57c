from __future__ import annotations

import json
import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from auralis_portal.app import create_app

UPSTREAM = "http://upstream.test"

Handler = Callable[[httpx.Request], httpx.Response]


def _client(tmp_path: Path, monkeypatch, handler: Handler) -> TestClient:
    monkeypatch.setenv("AURALIS_HOME", str(tmp_path))
    monkeypatch.setenv("AURALIS_AUTH_API_BASE_URL", UPSTREAM)
    monkeypatch.delenv("AURALIS_PUBLIC_API_BASE_URL", raising=False)
    monkeypatch.delenv("AURALIS_ENV", raising=False)
    monkeypatch.delenv("AURALIS_AUTH_COOKIE_SECURE", raising=False)
    return TestClient(create_app(transport=httpx.MockTransport(handler)))


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def _set_cookies(response: httpx.Response) -> list[str]:
    return response.headers.get_list("set-cookie")


@pytest.mark.parametrize(
    ("path", "methods"),
    [
        ("/api/auth/register", "POST, OPTIONS"),
        ("/api/auth/login", "POST, OPTIONS"),
        ("/api/auth/logout", "POST, OPTIONS"),
        ("/api/auth/me", "GET, PUT, OPTIONS"),
        ("/api/auth/me/avatar", "POST, OPTIONS"),
        ("/api/auth/captcha", "GET, OPTIONS"),
        ("/api/auth/tokens/purchase", "POST, OPTIONS"),
    ],
)
def test_preflight_returns_cors_headers(
    tmp_path: Path, monkeypatch, path: str, methods: str
) -> None:
    with _client(tmp_path, monkeypatch, _unreachable) as client:
        r = client.options(path)
        assert r.status_code == 204
        assert r.headers["access-control-allow-origin"] == "*"
        assert r.headers["access-control-allow-methods"] == methods
        assert r.headers["access-control-allow-headers"] == "Content-Type, Authorization"


def test_register_relays_upstream_verbatim(tmp_path: Path, monkeypatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            409,
            content=b'{"message":"username taken"}',
            headers={"content-type": "application/json; charset=utf-8", "x-upstream": "1"},
        )

    with _client(tmp_path, monkeypatch, handler) as client:
        r = client.post("/api/auth/register", json={"username": "ada", "password": "secret1"})

    assert r.status_code == 409
    assert r.content == b'{"message":"username taken"}'
    assert r.headers["content-type"] == "application/json; charset=utf-8"
    assert "x-upstream" not in r.headers

    upstream = seen[0]
    assert str(upstream.url) == f"{UPSTREAM}/auth/register"
    assert upstream.method == "POST"
    assert upstream.headers["accept"] == "application/json"
    assert upstream.headers["content-type"] == "application/json"
    assert json.loads(upstream.content) == {"username": "ada", "password": "secret1"}


@pytest.mark.parametrize(
    "body",
    [b"{not json", b"", b'{"username": NaN}', b"Infinity", b'{"n": -Infinity}'],
)
def test_invalid_json_body_is_rejected(tmp_path: Path, monkeypatch, body: bytes) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"ok": True})

    with _client(tmp_path, monkeypatch, handler) as client:
        r = client.post(
            "/api/auth/register",
            content=body,
            headers={"content-type": "application/json"},
        )

    assert r.status_code == 400
    assert r.json() == {"message": "Invalid JSON body"}
    assert seen == []


def test_unreachable_upstream_returns_502(tmp_path: Path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch, _unreachable) as client:
        r = client.post("/api/auth/register", json={"username": "ada", "password": "x"})

    assert r.status_code == 502
    assert r.json() == {"message": "Upstream auth service unreachable"}
    assert "refused" not in r.text


def test_login_sets_session_cookies(tmp_path: Path, monkeypatch) -> None:
    expire = (datetime.now(UTC) + timedelta(hours=1)).isoformat()

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == f"{UPSTREAM}/auth/login"
        return httpx.Response(200, json={"token": "abc", "expire": expire})

    with _client(tmp_path, monkeypatch, handler) as client:
        r = client.post("/api/auth/login", json={"username": "ada", "password": "secret1"})

    assert r.status_code == 200
    assert r.json() == {"token": "abc", "expire": expire}

    cookies = _set_cookies(r)
    assert [c.split("=", 1)[0] for c in cookies] == ["token", "jwt"]
    for cookie in cookies:
        assert "=abc;" in cookie
        assert "HttpOnly" in cookie
        assert "Path=/" in cookie
        assert "SameSite=lax" in cookie
        assert "Secure" not in cookie
        max_age = int(re.search(r"Max-Age=(\d+)", cookie).group(1))
        assert 3590 <= max_age <= 3600


def test_login_without_expiry_uses_one_day_cookie(tmp_path: Path, monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"token": "abc"})

    with _client(tmp_path, monkeypatch, handler) as client:
        r = client.post("/api/auth/login", json={"username": "ada", "password": "secret1"})

    assert all("Max-Age=86400" in c for c in _set_cookies(r))


def test_login_with_far_future_expiry_still_sets_cookies(tmp_path: Path, monkeypatch) -> None:
    expire = "9999-12-31T23:30:00-01:00"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"token": "abc", "expire": expire})

    with _client(tmp_path, monkeypatch, handler) as client:
        r = client.post("/api/auth/login", json={"username": "ada", "password": "secret1"})

    assert r.status_code == 200
    assert r.json() == {"token": "abc", "expire": expire}
    cookies = _set_cookies(r)
    assert [c.split("=", 1)[0] for c in cookies] == ["token", "jwt"]
    for cookie in cookies:
        assert "expires=" not in cookie.lower()
        assert int(re.search(r"Max-Age=(\d+)", cookie).group(1)) > 86400


def test_login_cookie_is_secure_in_production(tmp_path: Path, monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"token": "abc"})

    client = _client(tmp_path, monkeypatch, handler)
    monkeypatch.setenv("AURALIS_ENV", "production")
    with client:
        r = client.post("/api/auth/login", json={"username": "ada", "password": "secret1"})

    assert all("Secure" in c for c in _set_cookies(r))


def test_login_rejection_clears_cookies(tmp_path: Path, monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "bad credentials"})

    with _client(tmp_path, monkeypatch, handler) as client:
        r = client.post("/api/auth/login", json={"username": "ada", "password": "nope"})

    assert r.status_code == 401
    cookies = _set_cookies(r)
    assert {c.split("=", 1)[0] for c in cookies} == {"token", "jwt"}
    assert all("Max-Age=0" in c for c in cookies)


def test_login_success_without_json_sets_no_cookie(tmp_path: Path, monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="ok", headers={"content-type": "text/plain"})

    with _client(tmp_path, monkeypatch, handler) as client:
        r = client.post("/api/auth/login", json={"username": "ada", "password": "secret1"})

    assert r.status_code == 200
    assert r.text == "ok"
    assert _set_cookies(r) == []


def test_logout_without_credentials_only_clears_cookies(tmp_path: Path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch, _unreachable) as client:
        r = client.post("/api/auth/logout")

    assert r.status_code == 200
    assert r.json() == {"message": "Logged out"}
    names = {c.split("=", 1)[0] for c in _set_cookies(r)}
    assert names == {"token", "jwt", "access_token"}


def test_logout_forwards_cookie_token_as_bearer(tmp_path: Path, monkeypatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"message": "bye"})

    with _client(tmp_path, monkeypatch, handler) as client:
        r = client.post("/api/auth/logout", headers={"Cookie": "token=abc"})

    assert r.status_code == 200
    assert seen[0].headers["authorization"] == "Bearer abc"
    assert str(seen[0].url) == f"{UPSTREAM}/auth/logout"
    assert len(_set_cookies(r)) == 3


def test_logout_clears_cookies_when_upstream_is_down(tmp_path: Path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch, _unreachable) as client:
        r = client.post("/api/auth/logout", headers={"Authorization": "Bearer abc"})

    assert r.status_code == 502
    assert r.json() == {"message": "Upstream auth service unreachable"}
    assert len(_set_cookies(r)) == 3


def test_profile_requires_credentials(tmp_path: Path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch, _unreachable) as client:
        assert client.get("/api/auth/me").json() == {"message": "Unauthorized"}
        r = client.put("/api/auth/me", json={"nickname": "ada"})
        assert r.status_code == 401


def test_profile_get_and_put_are_forwarded(tmp_path: Path, monkeypatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"username": "ada"})

    with _client(tmp_path, monkeypatch, handler) as client:
        headers = {"Authorization": "Bearer abc"}
        assert client.get("/api/auth/me", headers=headers).json() == {"username": "ada"}
        r = client.put("/api/auth/me", headers=headers, json={"nickname": "Ada"})
        assert r.status_code == 200
        bad = client.put("/api/auth/me", headers=headers, content=b"nope")
        assert bad.status_code == 400

    assert [(req.method, req.url.path) for req in seen] == [
        ("GET", "/auth/profile"),
        ("PUT", "/auth/profile"),
    ]
    assert all(req.headers["authorization"] == "Bearer abc" for req in seen)
    assert json.loads(seen[1].content) == {"nickname": "Ada"}


def test_avatar_upload_is_forwarded_as_multipart(tmp_path: Path, monkeypatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"avatar": "/a.png"})

    with _client(tmp_path, monkeypatch, handler) as client:
        cookie = {"Cookie": "jwt=abc"}
        missing = client.post("/api/auth/me/avatar", headers=cookie, data={"note": "x"})
        assert missing.status_code == 400
        assert missing.json() == {"message": "Avatar file is required"}

        r = client.post(
            "/api/auth/me/avatar",
            headers=cookie,
            files={"avatar": ("a.png", b"\x89PNG", "image/png")},
            data={"note": "hello"},
        )

    assert r.status_code == 200
    upstream = seen[0]
    assert upstream.url.path == "/auth/profile/avatar"
    assert upstream.headers["authorization"] == "Bearer abc"
    assert upstream.headers["content-type"].startswith("multipart/form-data")
    assert b"\x89PNG" in upstream.content
    assert b"hello" in upstream.content


def test_captcha_and_purchase_routes(tmp_path: Path, monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"path": request.url.path})

    with _client(tmp_path, monkeypatch, handler) as client:
        assert client.get("/api/auth/captcha").json() == {"path": "/auth/captcha"}

        anon = client.post("/api/auth/tokens/purchase", json={"amount": 10})
        assert anon.status_code == 401

        r = client.post(
            "/api/auth/tokens/purchase",
            headers={"Authorization": "Bearer abc"},
            json={"amount": 10},
        )
        assert r.json() == {"path": "/auth/tokens/purchase"}


def test_unknown_api_path_is_json_404(tmp_path: Path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch, _unreachable) as client:
        r = client.get("/api/auth/nope")

    assert r.status_code == 404
    assert r.json() == {"message": "Not Found"}
