from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

from auralis_portal import messages
from auralis_portal.auth import extract_token_from_request, resolve_authorization
from auralis_portal.endpoints import ResolverConfig, get_api_base_url, location_from_request
from auralis_portal.proxy.cookies import apply_auth_cookies, clear_all_auth_cookies
from auralis_portal.proxy.relay import ProxyError, forward, json_payload

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["ui"])


def _flash_from_request(request: Request) -> dict[str, Any] | None:
    msg = request.query_params.get("msg")
    if not msg:
        return None
    kind = request.query_params.get("kind") or ""
    return {"message": msg, "kind": kind}


def _redirect_with_flash(url: str, message: str, kind: str = "ok") -> RedirectResponse:
    query = urlencode({"msg": message, "kind": kind})
    return RedirectResponse(url=f"{url}?{query}", status_code=302)


def _resolver_config(request: Request) -> ResolverConfig:
    config = request.app.state.portal_config
    return ResolverConfig(configured_base=config.upstream.public_api_base_url)


def render_not_found(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "not_found.html",
        {"title": "404 • Auralis"},
        status_code=404,
    )


@router.get("/", response_class=HTMLResponse)
async def ui_home(request: Request) -> HTMLResponse:
    api_base = get_api_base_url(_resolver_config(request), location_from_request(request))
    return templates.TemplateResponse(
        request,
        "home.html",
        {
            "title": "Auralis",
            "flash": _flash_from_request(request),
            "logged_in": extract_token_from_request(request) is not None,
            "api_base": api_base,
        },
    )


@router.get("/login", response_class=HTMLResponse)
async def ui_login(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "login.html",
        {"title": "登录 • Auralis", "flash": _flash_from_request(request)},
    )


def _login_failed(request: Request, username: str, error: str, status_code: int) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "login.html",
        {"title": "登录 • Auralis", "error": error, "username": username},
        status_code=status_code,
    )


@router.post("/login", response_model=None)
async def ui_login_post(
    request: Request,
    username: str = Form(default=""),
    password: str = Form(default=""),
) -> Response:
    username = username.strip()
    try:
        upstream = await forward(
            request,
            "POST",
            "/auth/login",
            json_body={"username": username, "password": password},
        )
    except ProxyError as exc:
        return _login_failed(
            request, username, messages.login_error_message(exc.status_code), exc.status_code
        )

    if not upstream.is_success:
        return _login_failed(
            request,
            username,
            messages.login_error_message(upstream.status_code),
            upstream.status_code,
        )

    body = json_payload(upstream)
    token = body.get("token") if isinstance(body, dict) else None
    if not token:
        return _login_failed(request, username, messages.LOGIN_NO_TOKEN, 502)

    resp = RedirectResponse(url="/", status_code=302)
    apply_auth_cookies(
        resp,
        str(token),
        body.get("expire"),
        secure=request.app.state.portal_config.cookies.secure,
    )
    return resp


@router.get("/register", response_class=HTMLResponse)
async def ui_register(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "register.html",
        {"title": "注册 • Auralis", "flash": _flash_from_request(request)},
    )


@router.post("/register", response_model=None)
async def ui_register_post(
    request: Request,
    username: str = Form(default=""),
    password: str = Form(default=""),
) -> Response:
    username = username.strip()
    try:
        upstream = await forward(
            request,
            "POST",
            "/auth/register",
            json_body={"username": username, "password": password},
        )
        status_code = upstream.status_code
        ok = upstream.is_success
    except ProxyError as exc:
        status_code = exc.status_code
        ok = False

    if ok:
        return _redirect_with_flash("/login", messages.REGISTER_SUCCESS)

    return templates.TemplateResponse(
        request,
        "register.html",
        {
            "title": "注册 • Auralis",
            "error": messages.register_error_message(status_code),
            "username": username,
        },
        status_code=status_code,
    )


@router.post("/logout")
async def ui_logout(request: Request) -> RedirectResponse:
    authorization = resolve_authorization(request)
    if authorization:
        try:
            await forward(request, "POST", "/auth/logout", authorization=authorization)
        except ProxyError:
            # Already logged by forward(); the local session is cleared regardless.
            pass

    resp = _redirect_with_flash("/login", messages.LOGGED_OUT)
    clear_all_auth_cookies(resp)
    return resp


@router.get("/401", response_class=HTMLResponse)
async def ui_unauthorized(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "unauthorized.html", {"title": "Unauthorized"})
