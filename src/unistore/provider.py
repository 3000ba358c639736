# SPDX-License-Identifier: MIT
"""Configured providers and the buckets they own."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any

from .backends.protocol import StorageBackend
from .bucket import Bucket
from .config import BucketConfig, ProviderConfig
from .exceptions import DuplicateBucketError, NotFoundError
from .response import enveloped

if TYPE_CHECKING:
    from .registry import ProviderRegistry

logger = logging.getLogger("unistore")


class ProviderState(str, enum.Enum):
    REGISTERED = "registered"
    INITIALIZED = "initialized"
    DESTROYED = "destroyed"


class Provider:
    """A backend instance registered under a name, owning a set of buckets.

    Args:
        name: Registered provider name; also the URI scheme of its buckets.
        config: Validated provider configuration.
        backend: Backend implementing :class:`StorageBackend`.
        registry: Registry that owns this provider.
    """

    def __init__(
        self,
        name: str,
        config: ProviderConfig,
        backend: StorageBackend,
        registry: ProviderRegistry,
    ) -> None:
        self.name = name
        self.config = config
        self.backend = backend
        self.registry = registry
        self.state = ProviderState.REGISTERED
        self._buckets: dict[str, Bucket] = {}

    def __repr__(self) -> str:
        return f"Provider(name={self.name!r}, type={self.config.type!r}, state={self.state.value})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        await self.backend.initialize()
        self.state = ProviderState.INITIALIZED
        logger.info("Provider %r initialized (type=%s)", self.name, self.config.type)

    async def destroy(self) -> None:
        """Drop all buckets and close the backend.  Stored data is untouched."""
        if self.state is ProviderState.DESTROYED:
            return
        self._buckets.clear()
        await self.backend.aclose()
        self.state = ProviderState.DESTROYED
        logger.info("Provider %r destroyed", self.name)

    # ------------------------------------------------------------------
    # Access mode
    # ------------------------------------------------------------------

    def can_read(self) -> bool:
        return self.config.readable

    def can_write(self) -> bool:
        return self.config.writable

    # ------------------------------------------------------------------
    # Buckets
    # ------------------------------------------------------------------

    @property
    def buckets(self) -> dict[str, Bucket]:
        return dict(self._buckets)

    def has_bucket(self, name: str) -> bool:
        return name in self._buckets

    def get_bucket(self, name: str) -> Bucket:
        try:
            return self._buckets[name]
        except KeyError:
            raise NotFoundError(f"Bucket {name!r} not found in provider {self.name!r}") from None

    @enveloped
    async def add_bucket(self, name: str, config: BucketConfig | dict[str, Any] | None = None) -> Bucket:
        """Create the bucket's root directory and register the bucket."""
        if self.state is ProviderState.DESTROYED:
            raise NotFoundError(f"Provider {self.name!r} has been destroyed")
        if name in self._buckets:
            raise DuplicateBucketError(f"Bucket {name!r} already exists in provider {self.name!r}")
        if not isinstance(config, BucketConfig):
            config = BucketConfig.model_validate(config or {})

        bucket = Bucket(name, self, config)
        await self.backend.mkdir(bucket.key(), mode=bucket.mode)
        self._buckets[name] = bucket
        logger.info("Bucket %r added to provider %r (root=%s)", name, self.name, bucket.root)
        return bucket

    def detach_bucket(self, bucket: Bucket) -> None:
        """Unregister ``bucket`` without touching its contents.

        Raises:
            NotFoundError: If the bucket is not (or no longer) registered here.
        """
        if self._buckets.get(bucket.name) is not bucket:
            raise NotFoundError(f"Bucket {bucket.name!r} is not registered in provider {self.name!r}")
        del self._buckets[bucket.name]
        logger.info("Bucket %r detached from provider %r", bucket.name, self.name)

    @enveloped
    async def destroy_bucket(self, name: str) -> bool:
        """Unregister a bucket, keeping its contents."""
        return (await self.get_bucket(name).destroy()).unwrap()

    @enveloped
    async def remove_bucket(self, name: str) -> bool:
        """Delete a bucket's contents and unregister it."""
        return (await self.get_bucket(name).remove()).unwrap()
