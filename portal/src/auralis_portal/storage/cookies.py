from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from http.cookies import SimpleCookie
from pathlib import Path

from auralis_portal.storage.files import read_json_object, write_json_object


@dataclass(frozen=True)
class StoredCookie:
    value: str
    path: str = "/"
    samesite: str = ""
    max_age: int | None = None
    expires_at: str | None = None

    def expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return datetime.fromisoformat(self.expires_at) <= now


class CookieJar:
    """Cookie store fed with ``Set-Cookie``-style header strings.

    ``write_cookie("token=abc; Path=/; Max-Age=60; SameSite=Lax")`` stores or
    replaces the cookie; ``Max-Age`` of zero or less deletes it. When ``path``
    is given the jar is persisted there as JSON.
    """

    def __init__(
        self,
        path: Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = path
        self._clock = clock or (lambda: datetime.now(UTC))
        self._cookies: dict[str, StoredCookie] = {}
        if path is not None:
            for name, raw in read_json_object(path).items():
                self._cookies[name] = StoredCookie(**raw)

    def _save(self) -> None:
        if self._path is None:
            return
        write_json_object(self._path, {k: asdict(v) for k, v in self._cookies.items()})

    def write_cookie(self, header: str) -> None:
        parsed = SimpleCookie()
        parsed.load(header)
        if not parsed:
            raise ValueError(f"Unparsable cookie header: {header!r}")

        for name, morsel in parsed.items():
            raw_max_age = morsel["max-age"]
            max_age = int(raw_max_age) if raw_max_age != "" else None
            if max_age is not None and max_age <= 0:
                self._cookies.pop(name, None)
                continue

            expires_at = None
            if max_age is not None:
                expires_at = (self._clock() + timedelta(seconds=max_age)).isoformat()
            self._cookies[name] = StoredCookie(
                value=morsel.value,
                path=morsel["path"] or "/",
                samesite=morsel["samesite"],
                max_age=max_age,
                expires_at=expires_at,
            )
        self._save()

    def cookie(self, name: str) -> StoredCookie | None:
        stored = self._cookies.get(name)
        if stored is None or stored.expired(self._clock()):
            return None
        return stored

    def get(self, name: str) -> str | None:
        stored = self.cookie(name)
        return stored.value if stored is not None else None

    def as_dict(self) -> dict[str, str]:
        now = self._clock()
        return {k: v.value for k, v in self._cookies.items() if not v.expired(now)}
