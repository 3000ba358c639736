# SPDX-License-Identifier: MIT
"""Provider registry.

A :class:`ProviderRegistry` maps provider type names to backend factories and
provider names to live :class:`~unistore.provider.Provider` instances.
Registries are plain objects; :func:`get_registry` returns a cached
process-wide default and :func:`reset_registry` drops it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv

from .backends.local import LocalBackend
from .backends.protocol import StorageBackend
from .bucket import Bucket
from .config import ProviderConfig, configure_logging, provider_uris_from_env
from .exceptions import (
    DuplicateProviderError,
    DuplicateTypeError,
    NotFoundError,
    ResolutionError,
    UnknownProviderTypeError,
)
from .provider import Provider
from .uri import StorageURI, resolve

logger = logging.getLogger("unistore")

BackendFactory = Callable[[ProviderConfig], StorageBackend]


def _databricks_factory(config: ProviderConfig) -> StorageBackend:
    from .backends.databricks import DatabricksVolumesBackend

    return DatabricksVolumesBackend.from_config(config)


BUILTIN_TYPES: dict[str, BackendFactory] = {
    "fs": LocalBackend.from_config,
    "databricks": _databricks_factory,
}


class ProviderRegistry:
    """Registry of provider types and configured providers.

    Args:
        builtin_types: Pre-register the ``fs`` and ``databricks`` types.
    """

    def __init__(self, builtin_types: bool = True) -> None:
        self._types: dict[str, BackendFactory] = dict(BUILTIN_TYPES) if builtin_types else {}
        self._providers: dict[str, Provider] = {}

    @classmethod
    async def from_env(cls) -> ProviderRegistry:
        """Build a registry from ``.env`` and ``UNISTORE_PROVIDER_<NAME>`` variables."""
        load_dotenv()
        configure_logging()
        registry = cls()
        for name, uri in provider_uris_from_env().items():
            await registry.add_provider(name, uri)
        return registry

    # ------------------------------------------------------------------
    # Provider types
    # ------------------------------------------------------------------

    def register_provider_type(self, name: str, factory: BackendFactory) -> None:
        """Bind a provider type name to a backend factory.

        Re-registering the identical factory is a no-op.

        Raises:
            DuplicateTypeError: If ``name`` is bound to a different factory.
        """
        existing = self._types.get(name)
        if existing is not None:
            if existing == factory:
                return
            raise DuplicateTypeError(f"Provider type {name!r} is already registered")
        self._types[name] = factory
        logger.debug("Registered provider type %r", name)

    def has_provider_type(self, name: str) -> bool:
        return name in self._types

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    async def add_provider(
        self,
        name: str | None,
        config: ProviderConfig | Mapping[str, Any] | str,
    ) -> Provider:
        """Instantiate, initialize and register a provider.

        Args:
            name: Provider name.  May be ``None`` when the connection string
                carries ``?name=``.
            config: A :class:`ProviderConfig`, a mapping of its fields, or a
                connection string such as ``fs://./data?name=local&mode=0777``.

        Raises:
            DuplicateProviderError: If the name is already in use.
            UnknownProviderTypeError: If the config's type is not registered.
            ResolutionError: If no name can be determined.
        """
        if not isinstance(config, ProviderConfig):
            config = ProviderConfig.model_validate(dict(config) if isinstance(config, Mapping) else config)

        name = name or config.name
        if not name:
            raise ResolutionError("Provider needs a name (argument or ?name= in its URI)")
        if name in self._providers:
            raise DuplicateProviderError(f"Provider {name!r} is already registered")
        if not config.type or config.type not in self._types:
            raise UnknownProviderTypeError(f"Unknown provider type {config.type!r} for provider {name!r}")

        backend = self._types[config.type](config)
        provider = Provider(name, config, backend, self)
        await provider.initialize()
        self._providers[name] = provider
        return provider

    def has_provider(self, name: str) -> bool:
        return name in self._providers

    def get_provider(self, name: str) -> Provider:
        try:
            return self._providers[name]
        except KeyError:
            raise NotFoundError(f"Provider {name!r} not found") from None

    def get_bucket(self, provider: str, bucket: str) -> Bucket:
        return self.get_provider(provider).get_bucket(bucket)

    @property
    def providers(self) -> dict[str, Provider]:
        return dict(self._providers)

    async def remove_provider(self, name: str) -> None:
        """Destroy and unregister a provider.  Stored data is untouched.

        Raises:
            NotFoundError: If no provider has that name.
        """
        provider = self.get_provider(name)
        del self._providers[name]
        await provider.destroy()

    def resolve(self, ref: Any, context_bucket: Bucket | None = None) -> StorageURI:
        return resolve(ref, context_bucket, self)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Destroy every provider, keeping registered types."""
        providers, self._providers = list(self._providers.values()), {}
        for provider in providers:
            await provider.destroy()

    async def reset(self) -> None:
        """Destroy every provider and restore the built-in types only."""
        await self.aclose()
        self._types = dict(BUILTIN_TYPES)

    async def __aenter__(self) -> ProviderRegistry:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()


@lru_cache(maxsize=1)
def get_registry() -> ProviderRegistry:
    """Return the process-wide default :class:`ProviderRegistry` (cached singleton)."""
    return ProviderRegistry()


def reset_registry() -> None:
    """Forget the default registry so the next :func:`get_registry` starts empty.

    Providers of the dropped registry are not closed; call
    :meth:`ProviderRegistry.aclose` first when they hold clients.
    """
    get_registry.cache_clear()
