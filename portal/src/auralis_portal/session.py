"""Client-side persistence of the auth token.

The token is mirrored into three storage keys and one cookie so readers that
expect any of those names keep working. Every write is attempted on its own;
a failing location is logged and skipped, never raised to the caller.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Final, Protocol

logger = logging.getLogger(__name__)

TOKEN_STORAGE_KEYS: Final[tuple[str, ...]] = ("token", "jwt", "access_token")
TOKEN_COOKIE_NAME: Final[str] = "token"
DEFAULT_TOKEN_MAX_AGE: Final[int] = 60 * 60 * 24


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class CookieWriter(Protocol):
    def write_cookie(self, header: str) -> None: ...

    def get(self, name: str) -> str | None: ...


@dataclass(frozen=True)
class ClientContext:
    storage: KeyValueStorage
    cookies: CookieWriter


@dataclass(frozen=True)
class WriteOutcome:
    location: str
    ok: bool
    error: Exception | None = None


def parse_expiry(expire: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 or RFC 2822 timestamp; naive values are UTC."""

    if expire is None:
        return None
    if isinstance(expire, datetime):
        parsed = expire
    else:
        text = str(expire).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError):
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def resolve_max_age(expire: str | datetime | None, now: datetime | None = None) -> int:
    parsed = parse_expiry(expire)
    if parsed is None:
        return DEFAULT_TOKEN_MAX_AGE
    current = now or datetime.now(UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    try:
        delta = math.floor((parsed - current).total_seconds())
    except OverflowError:
        return DEFAULT_TOKEN_MAX_AGE
    if delta <= 0:
        return DEFAULT_TOKEN_MAX_AGE
    return delta


def format_token_cookie(token: str, max_age: int) -> str:
    return f"{TOKEN_COOKIE_NAME}={token}; Path=/; Max-Age={max_age}; SameSite=Lax"


def _attempt(location: str, action: Callable[[], None], failure: str) -> WriteOutcome:
    try:
        action()
    except Exception as exc:
        logger.warning("%s (%s): %s", failure, location, exc)
        return WriteOutcome(location=location, ok=False, error=exc)
    return WriteOutcome(location=location, ok=True)


class SessionTokenStore:
    """Persist, clear and read the session token for one client context.

    Without a context (no storage or cookies available) every operation is a
    no-op.
    """

    def __init__(
        self,
        context: ClientContext | None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._context = context
        self._clock = clock

    def _max_age(self, expire: str | datetime | None) -> int:
        now = self._clock() if self._clock is not None else None
        return resolve_max_age(expire, now=now)

    @property
    def available(self) -> bool:
        return self._context is not None

    def persist_token(
        self, token: str, expire: str | datetime | None = None
    ) -> list[WriteOutcome]:
        ctx = self._context
        if ctx is None:
            return []

        outcomes = [
            _attempt(
                f"storage:{key}",
                lambda key=key: ctx.storage.set_item(key, token),
                "Failed to persist token in storage",
            )
            for key in TOKEN_STORAGE_KEYS
        ]
        outcomes.append(
            _attempt(
                f"cookie:{TOKEN_COOKIE_NAME}",
                lambda: ctx.cookies.write_cookie(format_token_cookie(token, self._max_age(expire))),
                "Failed to persist token cookie",
            )
        )
        return outcomes

    def clear_token(self) -> list[WriteOutcome]:
        ctx = self._context
        if ctx is None:
            return []

        outcomes = [
            _attempt(
                f"storage:{key}",
                lambda key=key: ctx.storage.remove_item(key),
                "Failed to clear token from storage",
            )
            for key in TOKEN_STORAGE_KEYS
        ]
        outcomes.append(
            _attempt(
                f"cookie:{TOKEN_COOKIE_NAME}",
                lambda: ctx.cookies.write_cookie(format_token_cookie("", 0)),
                "Failed to clear token cookie",
            )
        )
        return outcomes

    def read_token(self) -> str | None:
        ctx = self._context
        if ctx is None:
            return None
        for key in TOKEN_STORAGE_KEYS:
            try:
                value = ctx.storage.get_item(key)
            except Exception as exc:
                logger.warning("Failed to read token from storage (%s): %s", key, exc)
                continue
            if value and value.strip():
                return value.strip()
        try:
            cookie = ctx.cookies.get(TOKEN_COOKIE_NAME)
        except Exception as exc:
            logger.warning("Failed to read token cookie: %s", exc)
            return None
        return cookie.strip() if cookie and cookie.strip() else None
