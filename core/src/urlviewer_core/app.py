from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from urlviewer_core import __version__
from urlviewer_core.api.image import router as image_router
from urlviewer_core.config import load_viewer_config
from urlviewer_core.errors import ValidationError
from urlviewer_core.fetcher import build_http_client
from urlviewer_core.home import ensure_viewer_layout, resolve_viewer_home
from urlviewer_core.ui.router import router as ui_router

logger = logging.getLogger(__name__)


class RequestLogMiddleware:
    """Log ``METHOD path - status`` for every HTTP request.

    Plain ASGI rather than ``@app.middleware("http")``: an exception raised while a
    body is streaming must reach the server untouched so it drops the connection
    instead of ending the body cleanly.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        status = 500

        async def send_with_status(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_with_status)
        except Exception:
            logger.info(f"{scope['method']} {scope['path']} - {status} (aborted)")
            raise
        logger.info(f"{scope['method']} {scope['path']} - {status}")


def create_app(*, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the viewer app.

    ``transport`` replaces the network layer of the outbound client (tests pass an
    ``httpx.MockTransport``).
    """

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        home = resolve_viewer_home()
        paths = ensure_viewer_layout(home)
        config = load_viewer_config(paths)

        file_handler = RotatingFileHandler(
            paths.log_path,
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
        else:
            file_handler.close()

        logger.info("URL Viewer starting up")
        logger.info(f"Logs directory: {paths.logs_dir}")

        app.state.viewer_home = home
        app.state.viewer_paths = paths
        app.state.viewer_config = config
        app.state.http_client = build_http_client(config.fetch, transport=transport)

        try:
            yield
        finally:
            await app.state.http_client.aclose()
            logger.info("URL Viewer shut down")

    app = FastAPI(title="URL Viewer", version=__version__, lifespan=_lifespan)

    app.add_middleware(RequestLogMiddleware)

    @app.exception_handler(ValidationError)
    async def _validation_error_handler(
        request: Request, exc: ValidationError
    ) -> PlainTextResponse:
        return PlainTextResponse(exc.message, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> PlainTextResponse:
        detail = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        return PlainTextResponse(detail, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return PlainTextResponse("Internal Server Error", status_code=500)

    app.include_router(ui_router)
    app.include_router(image_router)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
