from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Final

from starlette.requests import Request

AUTHORIZATION_HEADER: Final[str] = "Authorization"
TOKEN_COOKIE: Final[str] = "token"
TOKEN_COOKIE_ALIASES: Final[tuple[str, ...]] = ("jwt",)
# Every cookie name a logout has to clear.
AUTH_COOKIE_KEYS: Final[tuple[str, ...]] = ("token", "jwt", "access_token")

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


def is_protected_path(path: str, prefixes: Iterable[str]) -> bool:
    for prefix in prefixes:
        prefix = prefix.rstrip("/")
        if not prefix:
            continue
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not _BEARER_PREFIX.match(authorization):
        return None
    return _BEARER_PREFIX.sub("", authorization).strip() or None


def extract_token_from_request(request: Request) -> str | None:
    """Session token from the ``token`` cookie, else a Bearer header."""

    cookie_token = (request.cookies.get(TOKEN_COOKIE) or "").strip()
    if cookie_token:
        return cookie_token
    return bearer_token(request.headers.get(AUTHORIZATION_HEADER))


def resolve_authorization(request: Request) -> str | None:
    """Authorization value to forward upstream.

    An explicit header is passed through untouched; otherwise the ``token``
    (then ``jwt``) cookie is turned into a Bearer credential.
    """

    header = request.headers.get(AUTHORIZATION_HEADER)
    if header and header.strip():
        return header

    for name in (TOKEN_COOKIE, *TOKEN_COOKIE_ALIASES):
        token = (request.cookies.get(name) or "").strip()
        if token:
            return f"Bearer {token}"
    return None
