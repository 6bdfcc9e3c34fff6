from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import urlencode

import httpx
import pytest

from conftest import stream_bytes
from urlviewer_core.api.image import _body
from urlviewer_core.app import create_app
from urlviewer_core.config import FetchConfig
from urlviewer_core.errors import SizeLimitError
from urlviewer_core.fetcher import build_http_client, fetch_upstream
from urlviewer_core.relay import MAX_SIZE, relay_stream


async def _call_image(app, url: str) -> tuple[list[dict[str, Any]], BaseException | None]:
    """Drive one GET /image through the ASGI app and record every message it sends.

    Uses the raw ASGI interface rather than TestClient so an aborted body can be observed.
    """

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/image",
        "raw_path": b"/image",
        "root_path": "",
        "query_string": urlencode({"url": url}).encode(),
        "headers": [(b"host", b"testserver")],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    sent: list[dict[str, Any]] = []
    requested = False
    never = asyncio.Event()

    async def receive() -> dict[str, Any]:
        nonlocal requested
        if not requested:
            requested = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await never.wait()
        return {"type": "http.disconnect"}

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    error: BaseException | None = None
    try:
        await app(scope, receive, send)
    except Exception as e:
        error = e
    return sent, error


def _app_with_upstream(handler):
    app = create_app()
    app.state.http_client = build_http_client(
        FetchConfig(), transport=httpx.MockTransport(handler)
    )
    return app


def test_image_over_cap_aborts_after_exactly_cap_bytes(viewer_home, caplog) -> None:
    caplog.set_level(logging.INFO, logger="urlviewer_core")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"Content-Type": "image/png", "Content-Length": "20000000"},
            content=stream_bytes(20_000_000),
        )

    app = _app_with_upstream(handler)
    sent, error = asyncio.run(_call_image(app, "https://example.com/huge.png"))

    start = sent[0]
    assert start["type"] == "http.response.start"
    assert start["status"] == 200
    assert (b"content-type", b"image/png") in start["headers"]

    bodies = [m for m in sent if m["type"] == "http.response.body"]
    assert sum(len(m.get("body", b"")) for m in bodies) == MAX_SIZE
    # No clean end-of-body: the server is left to drop the connection.
    assert all(m.get("more_body", False) for m in bodies)
    assert error is not None
    assert "GET /image - 200 (aborted)" in caplog.text


def test_image_under_cap_ends_cleanly(viewer_home) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, headers={"Content-Type": "image/jpeg"}, content=stream_bytes(200_000)
        )

    app = _app_with_upstream(handler)
    sent, error = asyncio.run(_call_image(app, "https://example.com/small.jpg"))

    assert error is None
    bodies = [m for m in sent if m["type"] == "http.response.body"]
    assert sum(len(m.get("body", b"")) for m in bodies) == 200_000
    assert bodies[-1].get("more_body", False) is False


def test_image_body_closed_early_closes_upstream() -> None:
    reads = 0

    async def endless() -> AsyncIterator[bytes]:
        nonlocal reads
        while True:
            reads += 1
            yield b"\x89" * 1024

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"Content-Type": "image/png"}, content=endless())

    async def run() -> bool:
        async with build_http_client(
            FetchConfig(), transport=httpx.MockTransport(handler)
        ) as client:
            upstream = await fetch_upstream(client, "https://example.com/stream.png")
            rest = relay_stream(upstream.aiter_bytes())
            body = _body(await anext(rest), rest, upstream)
            assert len(await anext(body)) == 1024
            # What the server does when the client goes away mid-transfer.
            await body.aclose()
            return upstream._response.is_closed

    assert asyncio.run(run()) is True
    assert reads < 5


@pytest.mark.parametrize("limit", [1024, 4096])
def test_relay_never_emits_more_than_limit(limit: int) -> None:
    forwarded: list[bytes] = []

    async def run() -> None:
        async for chunk in relay_stream(stream_bytes(10 * limit, chunk_size=1000), limit=limit):
            forwarded.append(chunk)

    with pytest.raises(SizeLimitError):
        asyncio.run(run())
    assert sum(len(c) for c in forwarded) == (limit // 1000) * 1000
