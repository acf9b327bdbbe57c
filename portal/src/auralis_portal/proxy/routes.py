from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from starlette.datastructures import UploadFile
from starlette.responses import Response

from auralis_portal.auth import resolve_authorization
from auralis_portal.proxy.cookies import (
    apply_auth_cookies,
    clear_all_auth_cookies,
    clear_auth_cookies,
)
from auralis_portal.proxy.relay import (
    UNAUTHORIZED,
    ProxyError,
    forward,
    json_payload,
    message_response,
    preflight,
    read_json_body,
    relay,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

POST_METHODS = "POST, OPTIONS"


def _require_authorization(request: Request) -> str:
    authorization = resolve_authorization(request)
    if not authorization:
        raise ProxyError(401, UNAUTHORIZED)
    return authorization


@router.options("/register")
async def register_preflight() -> Response:
    return preflight(POST_METHODS)


@router.post("/register")
async def register(request: Request) -> Response:
    payload = await read_json_body(request)
    upstream = await forward(request, "POST", "/auth/register", json_body=payload)
    return relay(upstream)


@router.options("/login")
async def login_preflight() -> Response:
    return preflight(POST_METHODS)


@router.post("/login")
async def login(request: Request) -> Response:
    """Relay the login and mirror a returned token into httpOnly cookies."""

    payload = await read_json_body(request)
    upstream = await forward(request, "POST", "/auth/login", json_body=payload)
    response = relay(upstream)

    body = json_payload(upstream)
    if upstream.is_success:
        token = body.get("token") if isinstance(body, dict) else None
        if token:
            apply_auth_cookies(
                response,
                str(token),
                body.get("expire"),
                secure=request.app.state.portal_config.cookies.secure,
            )
    elif upstream.status_code in (401, 403):
        clear_auth_cookies(response)

    return response


@router.options("/logout")
async def logout_preflight() -> Response:
    return preflight(POST_METHODS)


@router.post("/logout")
async def logout(request: Request) -> Response:
    authorization = resolve_authorization(request)
    if not authorization:
        response: Response = message_response("Logged out", 200)
        clear_all_auth_cookies(response)
        return response

    try:
        upstream = await forward(request, "POST", "/auth/logout", authorization=authorization)
    except ProxyError as exc:
        response = message_response(exc.message, exc.status_code)
    else:
        response = relay(upstream)

    clear_all_auth_cookies(response)
    return response


@router.options("/me")
async def profile_preflight() -> Response:
    return preflight("GET, PUT, OPTIONS")


@router.get("/me")
async def get_profile(request: Request) -> Response:
    authorization = _require_authorization(request)
    upstream = await forward(request, "GET", "/auth/profile", authorization=authorization)
    return relay(upstream)


@router.put("/me")
async def update_profile(request: Request) -> Response:
    authorization = _require_authorization(request)
    payload = await read_json_body(request)
    upstream = await forward(
        request, "PUT", "/auth/profile", authorization=authorization, json_body=payload
    )
    return relay(upstream)


@router.options("/me/avatar")
async def avatar_preflight() -> Response:
    return preflight(POST_METHODS)


@router.post("/me/avatar")
async def upload_avatar(request: Request) -> Response:
    authorization = _require_authorization(request)

    try:
        form = await request.form()
    except Exception as exc:
        logger.info("Rejected avatar upload: %s", exc)
        raise ProxyError(400, "Invalid form data") from exc

    if "avatar" not in form:
        raise ProxyError(400, "Avatar file is required")

    files: list[tuple[str, tuple[str, bytes, str]]] = []
    data: dict[str, list[str]] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            content = await value.read()
            files.append(
                (
                    key,
                    (
                        value.filename or key,
                        content,
                        value.content_type or "application/octet-stream",
                    ),
                )
            )
        else:
            data.setdefault(key, []).append(value)

    upstream = await forward(
        request,
        "POST",
        "/auth/profile/avatar",
        authorization=authorization,
        files=files,
        data=data,
    )
    return relay(upstream)


@router.options("/captcha")
async def captcha_preflight() -> Response:
    return preflight("GET, OPTIONS")


@router.get("/captcha")
async def captcha(request: Request) -> Response:
    upstream = await forward(request, "GET", "/auth/captcha")
    return relay(upstream)


@router.options("/tokens/purchase")
async def purchase_preflight() -> Response:
    return preflight(POST_METHODS)


@router.post("/tokens/purchase")
async def purchase_tokens(request: Request) -> Response:
    authorization = _require_authorization(request)
    payload = await read_json_body(request)
    upstream = await forward(
        request,
        "POST",
        "/auth/tokens/purchase",
        authorization=authorization,
        json_body=payload,
    )
    return relay(upstream)
