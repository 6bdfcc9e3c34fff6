from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from http import HTTPStatus

import anyio
import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.responses import Response

from urlviewer_core.classify import ContentClassification, classify_content_type
from urlviewer_core.errors import SizeLimitError, UpstreamError, ValidationError
from urlviewer_core.fetcher import UpstreamResponse, fetch_upstream, get_http_client
from urlviewer_core.relay import MAX_SIZE, relay_stream

logger = logging.getLogger(__name__)

router = APIRouter(tags=["image"])


def _status(code: int) -> Response:
    return PlainTextResponse(HTTPStatus(code).phrase, status_code=code)


@router.get("/image", response_model=None)
async def image_proxy(
    url: str | None = Query(default=None),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Stream an upstream image through to the client, capped at MAX_SIZE bytes.

    Status codes are only available until the first byte is sent. Once streaming has
    begun, exceeding the cap or losing the upstream raises out of the response body,
    which makes the server drop the connection instead of ending the body cleanly.
    """

    url = (url or "").strip()
    if not url:
        raise ValidationError("Missing url")

    try:
        upstream = await fetch_upstream(client, url)
    except UpstreamError as e:
        if e.status_code is not None:
            return _status(404)
        return _status(500)

    content_type = upstream.content_type
    if classify_content_type(content_type) is not ContentClassification.IMAGE:
        await upstream.aclose()
        return _status(415)

    chunks = relay_stream(upstream.aiter_bytes(), limit=MAX_SIZE)
    try:
        first = await anext(chunks, b"")
    except (UpstreamError, SizeLimitError) as e:
        logger.info("Image relay for %s failed before streaming: %s", url, e)
        await chunks.aclose()
        await upstream.aclose()
        return _status(500)

    return StreamingResponse(
        _body(first, chunks, upstream),
        media_type=content_type,
        background=BackgroundTask(upstream.aclose),
    )


async def _body(
    first: bytes, rest: AsyncGenerator[bytes, None], upstream: UpstreamResponse
) -> AsyncGenerator[bytes, None]:
    try:
        if first:
            yield first
        async for chunk in rest:
            yield chunk
    except (UpstreamError, SizeLimitError) as e:
        logger.warning("Aborting image relay for %s: %s", upstream.url, e)
        raise
    finally:
        # Runs on client disconnect too; shielded so the upstream is closed even while
        # the response task is being cancelled.
        with anyio.CancelScope(shield=True):
            await rest.aclose()
            await upstream.aclose()
