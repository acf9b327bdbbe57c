from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from auralis_portal import __version__
from auralis_portal.auth import extract_token_from_request, is_protected_path
from auralis_portal.config import load_portal_config
from auralis_portal.home import ensure_portal_layout, resolve_portal_home
from auralis_portal.proxy import ProxyError
from auralis_portal.proxy import router as proxy_router
from auralis_portal.proxy.relay import message_response
from auralis_portal.ui.router import render_not_found
from auralis_portal.ui.router import router as ui_router

logger = logging.getLogger(__name__)


def create_app(*, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the portal app.

    ``transport`` replaces the network transport of the upstream HTTP client;
    tests pass an ``httpx.MockTransport`` here.
    """

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        home = resolve_portal_home()
        paths = ensure_portal_layout(home)
        config = load_portal_config(paths)

        log_path = paths.logs_dir / "portal.log"
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.logging.max_size_mb * 1024 * 1024,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)

        root = logging.getLogger()
        root.setLevel(logging.INFO)
        # Avoid adding duplicate handlers if reloaded
        if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
            root.addHandler(file_handler)

        logger.info("Auralis portal starting up")
        logger.info("Upstream auth API: %s", config.upstream.base_url)

        app.state.portal_home = home
        app.state.portal_paths = paths
        app.state.portal_config = config

        async with httpx.AsyncClient(transport=transport) as client:
            app.state.upstream_client = client
            yield

    app = FastAPI(title="Auralis Portal", version=__version__, lifespan=_lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    class _ProtectedPathMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next) -> Response:
            config = getattr(request.app.state, "portal_config", None)
            prefixes = config.guard.protected_prefixes if config is not None else []
            if is_protected_path(request.url.path, prefixes):
                if not extract_token_from_request(request):
                    return PlainTextResponse("Unauthorized", status_code=401)
            return await call_next(request)

    app.add_middleware(_ProtectedPathMiddleware)

    def _is_api_path(request: Request) -> bool:
        return request.url.path.startswith("/api/")

    @app.exception_handler(ProxyError)
    async def _proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
        return message_response(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"message": "Request validation failed", "details": exc.errors()},
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        if exc.status_code == 404 and not _is_api_path(request):
            return render_not_found(request)
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        return message_response(message, exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return message_response("Internal server error", 500)

    app.include_router(proxy_router)
    app.include_router(ui_router)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
