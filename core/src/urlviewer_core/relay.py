"""Bounded streaming relay.

Both consumers of an upstream body go through the same counter:

- ``collect_text`` buffers the whole body and decodes it for display;
- ``relay_stream`` forwards chunks one at a time to a downstream response.

A ``TransferState`` never reports more than ``limit`` bytes delivered. The chunk that
would push the total over the limit is rejected with ``SizeLimitError`` and is never
buffered or emitted.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Final

import httpx

from urlviewer_core.errors import SizeLimitError, UpstreamError

logger = logging.getLogger(__name__)

MAX_SIZE: Final[int] = 10 * 1024 * 1024
SIZE_LIMIT_MESSAGE: Final[str] = "File exceeds 10 MB limit"


@dataclass
class TransferState:
    limit: int = MAX_SIZE
    bytes_transferred: int = 0

    def admit(self, chunk: bytes) -> None:
        """Count ``chunk`` towards the total, or raise if it would exceed the limit."""

        total = self.bytes_transferred + len(chunk)
        if total > self.limit:
            raise SizeLimitError(SIZE_LIMIT_MESSAGE)
        self.bytes_transferred = total


async def collect_text(chunks: AsyncIterable[bytes], *, limit: int = MAX_SIZE) -> str:
    """Read ``chunks`` to exhaustion and decode them as UTF-8.

    Malformed byte sequences are replaced with U+FFFD. Nothing is returned when the
    limit is exceeded; the buffered bytes are dropped with the raised error.
    """

    state = TransferState(limit=limit)
    buffer: list[bytes] = []
    async with aclosing(_guard_transport(chunks)) as guarded:
        async for chunk in guarded:
            if not chunk:
                continue
            state.admit(chunk)
            buffer.append(chunk)
    return b"".join(buffer).decode("utf-8", errors="replace")


async def relay_stream(
    chunks: AsyncIterable[bytes], *, limit: int = MAX_SIZE
) -> AsyncGenerator[bytes, None]:
    """Yield ``chunks`` in arrival order until the source ends or the limit is hit.

    Chunks are pulled only when the consumer asks for the next one, so a slow
    downstream pauses upstream reads. Closing the generator stops reading.
    """

    state = TransferState(limit=limit)
    async with aclosing(_guard_transport(chunks)) as guarded:
        async for chunk in guarded:
            if not chunk:
                continue
            try:
                state.admit(chunk)
            except SizeLimitError:
                logger.warning(
                    "Relay aborted after %d bytes: limit of %d bytes exceeded",
                    state.bytes_transferred,
                    state.limit,
                )
                raise
            yield chunk


async def _guard_transport(chunks: AsyncIterable[bytes]) -> AsyncGenerator[bytes, None]:
    """Re-raise httpx read failures as ``UpstreamError`` and close the source when done."""

    try:
        async for chunk in chunks:
            yield chunk
    except httpx.HTTPError as e:
        raise UpstreamError(f"Upstream read failed: {e}") from e
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()


def escape_html(text: str) -> str:
    # "&" must go first or the entities below would be escaped again.
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
