# SPDX-License-Identifier: MIT
"""Unified storage over pluggable providers.

Providers are registered by type, own named buckets, and every bucket
operation returns a :class:`StorageResponse` envelope instead of raising.

Usage::

    from unistore import ProviderRegistry

    async with ProviderRegistry() as registry:
        provider = await registry.add_provider("local", "fs://./data")
        bucket = (await provider.add_bucket("media")).unwrap()
        response = await bucket.put_file("hello.txt", b"hi")
        print(response.result)  # local://media/hello.txt
"""

from .bucket import Bucket, ListResult
from .config import BucketConfig, ProviderConfig, configure_logging, get_settings
from .entries import StorageDirectory, StorageEntry, StorageFile
from .exceptions import (
    BackendError,
    DuplicateBucketError,
    DuplicateProviderError,
    DuplicateTypeError,
    InvalidPathError,
    NotFoundError,
    ResolutionError,
    StorageError,
    StoragePermissionError,
    UnknownProviderTypeError,
)
from .patterns import match
from .provider import Provider
from .registry import ProviderRegistry, get_registry, reset_registry
from .response import StorageResponse
from .uri import NormalizedPath, StorageURI, resolve

__all__ = [
    "BackendError",
    "Bucket",
    "BucketConfig",
    "DuplicateBucketError",
    "DuplicateProviderError",
    "DuplicateTypeError",
    "InvalidPathError",
    "ListResult",
    "NormalizedPath",
    "NotFoundError",
    "Provider",
    "ProviderConfig",
    "ProviderRegistry",
    "ResolutionError",
    "StorageDirectory",
    "StorageEntry",
    "StorageError",
    "StorageFile",
    "StoragePermissionError",
    "StorageResponse",
    "StorageURI",
    "UnknownProviderTypeError",
    "configure_logging",
    "get_registry",
    "get_settings",
    "match",
    "reset_registry",
    "resolve",
]
