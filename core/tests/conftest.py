from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from urlviewer_core.app import create_app

Handler = Callable[[httpx.Request], httpx.Response]


async def stream_bytes(total: int, *, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
    sent = 0
    while sent < total:
        n = min(chunk_size, total - sent)
        yield b"\x89" * n
        sent += n


@pytest.fixture
def viewer_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("URLVIEWER_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def make_client(viewer_home: Path):
    """Return a factory building a TestClient whose outbound requests go to ``handler``."""

    opened: list[TestClient] = []

    def _make(handler: Handler, **kwargs) -> TestClient:
        client = TestClient(create_app(transport=httpx.MockTransport(handler)), **kwargs)
        client.__enter__()
        opened.append(client)
        return client

    yield _make

    for client in opened:
        client.__exit__(None, None, None)
