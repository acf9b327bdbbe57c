"""Talk to the portal's same-origin auth routes from Python.

``PortalClient`` stands in for the browser page: it submits logins through
``/api/auth/*``, persists the returned token with a ``SessionTokenStore`` and
attaches it to later requests.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from auralis_portal import messages
from auralis_portal.endpoints import ResolverConfig, build_api_url, location_from_url
from auralis_portal.session import ClientContext, SessionTokenStore

logger = logging.getLogger(__name__)

AUTH_PROXY_PATH = "/api/auth"


class AuthError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PortalClient:
    def __init__(
        self,
        portal_url: str,
        context: ClientContext | None,
        *,
        resolver_config: ResolverConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._portal_url = portal_url.rstrip("/")
        self._resolver_config = resolver_config or ResolverConfig()
        self._store = SessionTokenStore(context)
        self._http = httpx.Client(base_url=self._portal_url, transport=transport)

    def __enter__(self) -> PortalClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def store(self) -> SessionTokenStore:
        return self._store

    def api_url(self, path: str) -> str:
        """Direct (non-proxied) backend URL for ``path``."""

        return build_api_url(path, self._resolver_config, location_from_url(self._portal_url))

    def _auth_headers(self) -> dict[str, str]:
        token = self._store.read_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _post_json(self, path: str, payload: dict[str, Any], failure: str) -> httpx.Response:
        try:
            return self._http.post(
                f"{AUTH_PROXY_PATH}{path}",
                json=payload,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", path, exc)
            raise AuthError(failure) from exc

    def login(self, username: str, password: str) -> str:
        response = self._post_json(
            "/login",
            {"username": username.strip(), "password": password},
            messages.LOGIN_FAILED,
        )
        if not response.is_success:
            raise AuthError(
                messages.login_error_message(response.status_code), response.status_code
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthError(messages.LOGIN_NO_TOKEN, response.status_code)

        self._store.persist_token(str(token), data.get("expire"))
        return str(token)

    def register(self, username: str, password: str) -> None:
        response = self._post_json(
            "/register",
            {"username": username.strip(), "password": password},
            messages.REGISTER_FAILED,
        )
        if not response.is_success:
            raise AuthError(
                messages.register_error_message(response.status_code), response.status_code
            )

    def logout(self) -> None:
        """Tell the portal to end the session; local copies are always cleared."""

        try:
            self._http.post(f"{AUTH_PROXY_PATH}/logout", headers=self._auth_headers())
        except httpx.HTTPError as exc:
            logger.warning("Logout request failed: %s", exc)
        finally:
            self._store.clear_token()

    def profile(self) -> Any:
        headers = {"Accept": "application/json", **self._auth_headers()}
        try:
            response = self._http.get(f"{AUTH_PROXY_PATH}/me", headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Profile request failed: %s", exc)
            raise AuthError(messages.REQUEST_FAILED) from exc

        if response.status_code == 401:
            self._store.clear_token()
            raise AuthError(messages.SESSION_EXPIRED, 401)
        if not response.is_success:
            raise AuthError(
                messages.request_error_message(response.status_code), response.status_code
            )
        try:
            return response.json()
        except ValueError as exc:
            raise AuthError(messages.REQUEST_FAILED, response.status_code) from exc
