# SPDX-License-Identifier: MIT
"""Copy/move planning across buckets and providers.

Decision procedure for one file:

1. Same provider, same bucket: the backend's native copy/move when it has one.
2. Same provider, different bucket: native only when the backend declares
   ``cross_bucket_native``.
3. Anything else: stream the source into the destination and, for a move,
   delete the source only after the destination is confirmed.
"""

from __future__ import annotations

import enum
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .backends.protocol import SupportsNativeTransfer
from .batch import run_all
from .exceptions import InvalidPathError
from .response import enveloped
from .uri import NormalizedPath, StorageURI

if TYPE_CHECKING:
    from .registry import ProviderRegistry

logger = logging.getLogger("unistore")


class TransferStrategy(str, enum.Enum):
    SAME_BUCKET = "same_bucket"
    CROSS_BUCKET_NATIVE = "cross_bucket_native"
    STREAM = "stream"


@dataclass(frozen=True)
class TransferPlan:
    src: StorageURI
    dest: StorageURI
    strategy: TransferStrategy

    @property
    def native(self) -> bool:
        return self.strategy is not TransferStrategy.STREAM


def plan_transfer(src: StorageURI, dest: StorageURI, registry: ProviderRegistry) -> TransferPlan:
    """Pick the cheapest strategy for moving bytes from ``src`` to ``dest``.

    Raises:
        NotFoundError: If either provider is not registered.
    """
    src_provider = registry.get_provider(src.provider)
    registry.get_provider(dest.provider)

    strategy = TransferStrategy.STREAM
    if src.provider == dest.provider and isinstance(src_provider.backend, SupportsNativeTransfer):
        if src.bucket == dest.bucket:
            strategy = TransferStrategy.SAME_BUCKET
        elif src_provider.backend.cross_bucket_native:
            strategy = TransferStrategy.CROSS_BUCKET_NATIVE
    return TransferPlan(src, dest, strategy)


async def transfer(registry: ProviderRegistry, src: StorageURI, dest: StorageURI, *, move: bool) -> TransferPlan:
    """Copy or move one file from ``src`` to ``dest``.

    Raises:
        StoragePermissionError: If the source is not readable, the destination
            is not writable, or (for a move) the source is not writable.
        InvalidPathError: If the source is a directory.
        FileNotFoundError: If the source does not exist.
    """
    plan = plan_transfer(src, dest, registry)
    src_bucket = registry.get_bucket(src.provider, src.bucket)
    dest_bucket = registry.get_bucket(dest.provider, dest.bucket)

    src_bucket.require_read()
    dest_bucket.require_write()
    if move:
        src_bucket.require_write()

    src_backend = src_bucket.backend
    dest_backend = dest_bucket.backend
    src_key = src_bucket.key(src.path)
    dest_key = dest_bucket.key(dest.path)

    info = await src_backend.stat(src_key)
    if info.is_directory:
        raise InvalidPathError(f"{src} is a directory; use a directory operation")
    if src == dest:
        return plan

    if plan.native:
        if move:
            await src_backend.native_move(src_key, dest_key)  # type: ignore[attr-defined]
        else:
            await src_backend.native_copy(src_key, dest_key)  # type: ignore[attr-defined]
    else:
        async with aclosing(src_backend.read_stream(src_key)) as chunks:
            await dest_backend.write_stream(dest_key, chunks)
        if move:
            # raises if the write did not land; the source is kept in that case
            await dest_backend.stat(dest_key)
            await src_backend.delete(src_key)

    logger.debug("%s %s -> %s (%s)", "Moved" if move else "Copied", src, dest, plan.strategy.value)
    return plan


@enveloped
async def transfer_entry(registry: ProviderRegistry, src: StorageURI, dest: StorageURI, move: bool) -> StorageURI:
    await transfer(registry, src, dest, move=move)
    return dest


async def transfer_directory(
    registry: ProviderRegistry,
    src: StorageURI,
    dest: StorageURI,
    *,
    move: bool,
) -> list[StorageURI]:
    """Copy or move every file below ``src`` into ``dest``.

    Destination directories are created as needed.  The first per-file
    failure is raised after all transfers settle; a move only prunes the
    source tree when every file was moved.

    Raises:
        InvalidPathError: If ``dest`` lies inside ``src``.
    """
    if src.same_bucket(dest) and dest.path.is_relative_to(src.path):
        raise InvalidPathError(f"Cannot copy {src} into itself ({dest})")

    src_bucket = registry.get_bucket(src.provider, src.bucket)
    dest_bucket = registry.get_bucket(dest.provider, dest.bucket)
    src_bucket.require_read()
    dest_bucket.require_write()

    entries = await src_bucket.walk(src.path, recursive=True)
    await dest_bucket.backend.mkdir(dest_bucket.key(dest.path), mode=dest_bucket.mode)
    for path, info in entries:
        if info.is_directory:
            rel = path.relative_to(src.path)
            await dest_bucket.backend.mkdir(dest_bucket.key(dest.path.join(rel)), mode=dest_bucket.mode)

    pairs = [
        (src.with_path(path), relative_destination(src.path, path, dest))
        for path, info in entries
        if not info.is_directory
    ]
    results = await run_all(lambda pair: transfer_entry(registry, pair[0], pair[1], move), pairs)
    failures = [r.error for r in results if r.error is not None]
    if failures:
        raise failures[0]

    if move:
        await src_bucket.prune(src.path)
        if not src.path.is_root:
            await src_bucket.backend.rmdir(src_bucket.key(src.path))
    logger.debug("%s directory %s -> %s (%d files)", "Moved" if move else "Copied", src, dest, len(pairs))
    return [r.result for r in results if r.result is not None]


def relative_destination(src_root: NormalizedPath, path: NormalizedPath, dest_root: StorageURI) -> StorageURI:
    """Map ``path`` under ``src_root`` to the same relative location under ``dest_root``."""
    return dest_root.join(path.relative_to(src_root))
