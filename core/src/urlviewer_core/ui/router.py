from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from markupsafe import Markup

from urlviewer_core.classify import ContentClassification, classify_content_type
from urlviewer_core.errors import UnsupportedTypeError, ViewerError
from urlviewer_core.fetcher import fetch_upstream, get_http_client
from urlviewer_core.relay import MAX_SIZE, collect_text, escape_html

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["ui"])

# Characters encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def image_proxy_src(url: str) -> str:
    return "/image?url=" + quote(url, safe=_URI_COMPONENT_SAFE)


def _render(request: Request, name: str, context: dict[str, Any]) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        name,
        {"title": "URL Viewer", "max_size_mb": MAX_SIZE // (1024 * 1024), **context},
    )


@router.get("/", response_class=HTMLResponse)
async def ui_home(request: Request) -> HTMLResponse:
    return _render(request, "home.html", {})


@router.post("/fetch", response_class=HTMLResponse)
async def ui_fetch(request: Request, url: str = Form(default="")) -> HTMLResponse:
    url = (url or "").strip()
    if not url:
        return _render(request, "error.html", {"message": "Missing url"})

    try:
        return await _fetch_and_render(request, url)
    except ViewerError as e:
        return _render(request, "error.html", {"message": e.message})
    except Exception as e:
        # Errors on this page are always rendered, never surfaced as a raw 500.
        logger.exception("Unexpected failure fetching %s", url)
        return _render(request, "error.html", {"message": str(e) or "Internal error"})


async def _fetch_and_render(request: Request, url: str) -> HTMLResponse:
    client = get_http_client(request)
    upstream = await fetch_upstream(client, url, max_size=MAX_SIZE)
    try:
        content_type = upstream.content_type
        kind = classify_content_type(content_type)

        if kind is ContentClassification.UNSUPPORTED:
            raise UnsupportedTypeError(content_type)

        if kind is ContentClassification.IMAGE:
            # The browser pulls the bytes through /image; this body is never read.
            return _render(
                request,
                "image.html",
                {"content_type": content_type, "image_src": image_proxy_src(url)},
            )

        text = await collect_text(upstream.aiter_bytes(), limit=MAX_SIZE)
    finally:
        await upstream.aclose()

    return _render(
        request,
        "text.html",
        {"content_type": content_type, "content_html": Markup(escape_html(text))},
    )
