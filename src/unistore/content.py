# SPDX-License-Identifier: MIT
"""Normalization of ``put_file`` content into a single async byte stream.

Accepted content kinds:

- ``bytes`` / ``bytearray`` / ``memoryview``
- ``str`` (encoded as UTF-8)
- a synchronous binary file object (anything with ``read(size)``)
- a synchronous iterable of ``bytes`` chunks
- an async iterable of ``bytes`` chunks (e.g. ``httpx.Response.aiter_bytes()``)

Streams are consumed exactly once.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import Any, BinaryIO

import anyio

from .config import get_settings

Content = bytes | bytearray | memoryview | str | BinaryIO | Iterable[bytes] | AsyncIterable[bytes]


async def _single(data: bytes) -> AsyncIterator[bytes]:
    yield data


async def _from_file(fileobj: Any, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await anyio.to_thread.run_sync(fileobj.read, chunk_size)
        if not chunk:
            break
        yield chunk if isinstance(chunk, bytes) else bytes(chunk)


async def _from_iterable(chunks: Iterable[Any]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield _as_bytes(chunk)


async def _from_async_iterable(chunks: AsyncIterable[Any]) -> AsyncIterator[bytes]:
    async for chunk in chunks:
        yield _as_bytes(chunk)


def _as_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"Stream chunks must be bytes, got {type(chunk).__name__}")


def to_byte_stream(content: Content, chunk_size: int | None = None) -> AsyncIterator[bytes]:
    """Return an async iterator of ``bytes`` for any supported content kind.

    Raises:
        TypeError: If ``content`` is not a supported kind.
    """
    if chunk_size is None:
        chunk_size = get_settings().chunk_size
    if isinstance(content, str):
        return _single(content.encode("utf-8"))
    if isinstance(content, (bytes, bytearray, memoryview)):
        return _single(bytes(content))
    if isinstance(content, AsyncIterable):
        return _from_async_iterable(content)
    if hasattr(content, "read"):
        return _from_file(content, chunk_size)
    if isinstance(content, Iterable):
        return _from_iterable(content)
    raise TypeError(f"Unsupported content type: {type(content).__name__}")


async def collect(chunks: AsyncIterable[bytes]) -> bytes:
    """Drain a byte stream into memory."""
    buf = bytearray()
    async for chunk in chunks:
        buf.extend(chunk)
    return bytes(buf)
