from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
from fastapi import HTTPException, Request

from urlviewer_core.config import FetchConfig
from urlviewer_core.errors import SizeLimitError, UpstreamError
from urlviewer_core.relay import SIZE_LIMIT_MESSAGE

logger = logging.getLogger(__name__)


@dataclass
class UpstreamResponse:
    """Headers of an upstream response whose body has not been read yet.

    The body can be iterated once. Callers own the response and must ``aclose`` it.
    """

    url: str
    status_code: int
    headers: dict[str, str]
    _response: httpx.Response

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type") or ""

    @property
    def content_length(self) -> int | None:
        raw = (self.headers.get("content-length") or "").strip()
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes()

    async def aclose(self) -> None:
        await self._response.aclose()


def build_http_client(
    config: FetchConfig, *, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(config.timeout_seconds),
        headers={"User-Agent": config.user_agent},
        transport=transport,
    )


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Return the outbound client the app lifespan stored on ``app.state``."""

    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise HTTPException(status_code=500, detail="HTTP client not initialized")
    return client


async def fetch_upstream(
    client: httpx.AsyncClient, url: str, *, max_size: int | None = None
) -> UpstreamResponse:
    """GET ``url`` (following redirects) and return once the headers have arrived.

    - Raises UpstreamError for non-http(s) URLs, when no response could be obtained,
      or when the status is not 2xx.
    - If ``max_size`` is given, raises SizeLimitError when the declared Content-Length
      exceeds it, before any of the body is read.
    """

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise UpstreamError(f"Invalid URL: {url}")

    try:
        request = client.build_request("GET", url)
        response = await client.send(request, stream=True)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.info("Upstream request to %s failed: %s", url, e)
        raise UpstreamError(str(e) or e.__class__.__name__) from e

    upstream = UpstreamResponse(
        url=str(response.url),
        status_code=response.status_code,
        headers=dict(response.headers.items()),
        _response=response,
    )

    if not response.is_success:
        await upstream.aclose()
        logger.info("Upstream %s answered %d", url, response.status_code)
        raise UpstreamError(
            f"Fetch failed: {response.status_code}", status_code=response.status_code
        )

    declared = upstream.content_length
    if max_size is not None and declared is not None and declared > max_size:
        await upstream.aclose()
        raise SizeLimitError(SIZE_LIMIT_MESSAGE)

    return upstream
