"""Forward a request to the upstream auth service and relay its answer."""

from __future__ import annotations

import json
import logging
from typing import Any, Final

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

logger = logging.getLogger(__name__)

UPSTREAM_UNREACHABLE: Final[str] = "Upstream auth service unreachable"
INVALID_JSON_BODY: Final[str] = "Invalid JSON body"
UNAUTHORIZED: Final[str] = "Unauthorized"

_NO_BODY = object()


class ProxyError(Exception):
    """Converted into a ``{"message": ...}`` JSON response by the app."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def message_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def preflight(methods: str) -> Response:
    return Response(
        status_code=204,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": methods,
            "Access-Control-Allow-Headers": "Content-Type, Authorization",
        },
    )


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


async def read_json_body(request: Request) -> Any:
    body = await request.body()
    try:
        # NaN and +/-Infinity are Python extensions, not JSON.
        return json.loads(body, parse_constant=_reject_constant)
    except ValueError as exc:
        raise ProxyError(400, INVALID_JSON_BODY) from exc


def upstream_url(request: Request, path: str) -> str:
    config = request.app.state.portal_config
    return f"{config.upstream.base_url}{path}"


async def forward(
    request: Request,
    method: str,
    path: str,
    *,
    authorization: str | None = None,
    json_body: Any = _NO_BODY,
    files: list[tuple[str, tuple[str, bytes, str]]] | None = None,
    data: dict[str, list[str]] | None = None,
) -> httpx.Response:
    """Send one request upstream.

    Transport failures become a 502 ``ProxyError``; the underlying exception is
    logged but never sent to the client.
    """

    client: httpx.AsyncClient = request.app.state.upstream_client
    url = upstream_url(request, path)

    headers = {"Accept": "application/json"}
    content: bytes | None = None
    if json_body is not _NO_BODY:
        headers["Content-Type"] = "application/json"
        content = json.dumps(json_body).encode("utf-8")
    if authorization:
        headers["Authorization"] = authorization

    try:
        return await client.request(
            method,
            url,
            headers=headers,
            content=content,
            files=files,
            data=data,
        )
    except httpx.HTTPError as exc:
        logger.warning("Upstream %s %s failed: %s", method, url, type(exc).__name__)
        raise ProxyError(502, UPSTREAM_UNREACHABLE) from exc


def relay(upstream: httpx.Response) -> Response:
    """Upstream status and body verbatim; only ``content-type`` is kept."""

    headers: dict[str, str] = {}
    content_type = upstream.headers.get("content-type")
    if content_type:
        headers["content-type"] = content_type
    return Response(content=upstream.content, status_code=upstream.status_code, headers=headers)


def json_payload(upstream: httpx.Response) -> Any:
    content_type = upstream.headers.get("content-type") or ""
    if "application/json" not in content_type:
        return None
    try:
        return upstream.json()
    except ValueError:
        return None
