from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from starlette.responses import Response

from auralis_portal.auth import AUTH_COOKIE_KEYS, TOKEN_COOKIE, TOKEN_COOKIE_ALIASES
from auralis_portal.session import parse_expiry, resolve_max_age


def apply_auth_cookies(
    response: Response,
    token: str,
    expire: str | datetime | None,
    *,
    secure: bool,
) -> None:
    """Set the httpOnly session cookie and its aliases on ``response``."""

    if not token:
        return

    max_age = resolve_max_age(expire)
    expires = parse_expiry(expire)
    if expires is not None:
        try:
            expires = expires.astimezone(UTC)
        except OverflowError:
            # Outside the datetime range once shifted to UTC; Max-Age still applies.
            expires = None
    for name in (TOKEN_COOKIE, *TOKEN_COOKIE_ALIASES):
        response.set_cookie(
            name,
            token,
            max_age=max_age,
            expires=expires,
            path="/",
            secure=secure,
            httponly=True,
            samesite="lax",
        )


def clear_auth_cookies(
    response: Response, names: Iterable[str] = (TOKEN_COOKIE, *TOKEN_COOKIE_ALIASES)
) -> None:
    for name in names:
        response.delete_cookie(name, path="/")


def clear_all_auth_cookies(response: Response) -> None:
    clear_auth_cookies(response, AUTH_COOKIE_KEYS)
