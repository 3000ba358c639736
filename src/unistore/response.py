# SPDX-License-Identifier: MIT
"""Uniform result envelope returned by every bucket operation."""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, ParamSpec, TypeVar

import httpx

from .exceptions import StorageError, translate_backend_error

logger = logging.getLogger("unistore")

T = TypeVar("T")
P = ParamSpec("P")


@dataclass(frozen=True)
class StorageResponse(Generic[T]):
    """Outcome of a storage operation.

    Exactly one of ``result`` / ``error`` is meaningful.  For batch
    operations ``result`` is a list that may be shorter than the number of
    matched entries; compare counts to detect partial success.
    """

    result: T | None = None
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def native_error(self) -> BaseException | None:
        """The backend's own exception, when the failure came from a backend."""
        return self.error.native if self.error is not None else None

    def unwrap(self) -> T:
        """Return ``result`` or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.result  # type: ignore[return-value]


def success(result: T) -> StorageResponse[T]:
    return StorageResponse(result=result)


def failure(error: StorageError) -> StorageResponse[Any]:
    return StorageResponse(error=error)


def enveloped(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[StorageResponse[T]]]:
    """Wrap an async operation so failures land in the envelope instead of raising.

    :class:`StorageError` subclasses are stored as-is; ``OSError`` and
    ``httpx.HTTPError`` are translated with the native exception attached.
    Anything else is a programming error and propagates.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> StorageResponse[T]:
        try:
            return success(await func(*args, **kwargs))
        except (StorageError, OSError, httpx.HTTPError) as exc:
            error = translate_backend_error(exc, func.__name__)
            logger.debug("%s failed: %s", func.__qualname__, error)
            return failure(error)

    return wrapper
