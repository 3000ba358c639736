# SPDX-License-Identifier: MIT
"""Shared pytest fixtures for unistore tests."""

import pathlib

import pytest

from unistore import ProviderRegistry
from unistore.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop cached env settings so monkeypatched variables take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def provider_root(tmp_path: pathlib.Path) -> pathlib.Path:
    """Root directory of the first local provider."""
    return tmp_path / "provider01"


@pytest.fixture
async def registry():
    """An empty registry, closed after the test."""
    async with ProviderRegistry() as reg:
        yield reg


@pytest.fixture
async def provider(registry, provider_root):
    """Local provider ``provider01`` rooted at ``provider_root``."""
    return await registry.add_provider("provider01", {"type": "fs", "root": str(provider_root)})


@pytest.fixture
async def bucket(provider):
    """Bucket ``bucket01`` of ``provider01``."""
    return (await provider.add_bucket("bucket01", {"root": "bucket01"})).unwrap()


@pytest.fixture
async def bucket2(provider):
    """Bucket ``bucket02`` of ``provider01``."""
    return (await provider.add_bucket("bucket02", {"root": "bucket02"})).unwrap()


@pytest.fixture
async def other_provider(registry, tmp_path: pathlib.Path):
    """A second local provider, ``provider02``, for cross-provider transfers."""
    return await registry.add_provider("provider02", {"type": "fs", "root": str(tmp_path / "provider02")})


@pytest.fixture
async def tree(bucket):
    """Populate ``bucket01`` with two top-level files and one nested file.

    Layout::

        file01.txt
        file02.md
        subdir01/nested/deep.txt
    """
    for path, content in [
        ("file01.txt", b"one"),
        ("file02.md", b"two"),
        ("subdir01/nested/deep.txt", b"deep"),
    ]:
        (await bucket.put_file(path, content)).unwrap()
    return bucket
