# SPDX-License-Identifier: MIT
"""Concurrent fan-out for batch operations."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import anyio
from aioresult import ResultCapture

from .config import get_settings
from .response import StorageResponse

T = TypeVar("T")
R = TypeVar("R")


async def run_all(
    func: Callable[[T], Awaitable[StorageResponse[R]]],
    items: Sequence[T],
    limit: int | None = None,
) -> list[StorageResponse[R]]:
    """Run ``func`` for every item concurrently and collect every outcome.

    ``func`` reports failures through its envelope, so one failing item never
    cancels the others.  Results are returned in input order.

    Args:
        func: Enveloped per-item operation.
        items: Inputs, one task each.
        limit: Maximum concurrent tasks.  Defaults to ``UNISTORE_MAX_CONCURRENCY``.
    """
    if not items:
        return []
    limiter = anyio.CapacityLimiter(limit or get_settings().max_concurrency)

    async def _bounded(item: T) -> StorageResponse[R]:
        async with limiter:
            return await func(item)

    async with anyio.create_task_group() as tg:
        captures = [ResultCapture.start_soon(tg, _bounded, item) for item in items]
    return [c.result() for c in captures]
