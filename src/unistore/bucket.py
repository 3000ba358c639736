# SPDX-License-Identifier: MIT
"""Buckets: rooted subtrees of a provider and the public operation surface.

Every public coroutine returns a :class:`~unistore.response.StorageResponse`.
Paths given as plain strings resolve against the bucket; ``provider://bucket/``
URIs and entities may point anywhere in the registry.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from . import patterns
from .backends.protocol import EntryInfo, StorageBackend
from .batch import run_all
from .config import BucketConfig
from .content import Content, to_byte_stream
from .entries import StorageDirectory, StorageFile
from .exceptions import InvalidPathError, NotFoundError, StoragePermissionError
from .planner import relative_destination, transfer, transfer_directory, transfer_entry
from .response import StorageResponse, enveloped
from .uri import NormalizedPath, StorageURI, is_directory_reference, resolve

if TYPE_CHECKING:
    from .provider import Provider
    from .registry import ProviderRegistry

logger = logging.getLogger("unistore")


@dataclass
class ListResult:
    """Listing outcome: URI strings, or entities when ``returning`` was set."""

    path: str
    entries: list[Any] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)


def _batch_outcome(results: list[StorageResponse[Any]], action: str) -> list[Any]:
    """Keep successful results; raise only when every entry failed."""
    done = [r.result for r in results if r.ok]
    failed = [r.error for r in results if not r.ok]
    for error in failed:
        logger.warning("%s skipped an entry: %s", action, error)
    if results and not done:
        raise failed[0]  # type: ignore[misc]
    return done


class Bucket:
    """A named, rooted subtree of a provider.

    Args:
        name: Bucket name, unique within the provider.
        provider: Owning provider.  Only its name is kept; the provider is
            looked up through the registry when needed.
        config: Bucket configuration (root sub-path, access mode override).

    Raises:
        InvalidPathError: If the configured root escapes the provider root.
    """

    def __init__(self, name: str, provider: Provider, config: BucketConfig) -> None:
        self.name = name
        self.provider_name = provider.name
        self.registry: ProviderRegistry = provider.registry
        self.config = config
        self.root = NormalizedPath.parse(config.root if config.root is not None else name)
        self.mode = config.mode if config.mode is not None else provider.config.mode

    def __repr__(self) -> str:
        return f"Bucket({self.provider_name}://{self.name})"

    # ------------------------------------------------------------------
    # Handles and helpers
    # ------------------------------------------------------------------

    @property
    def provider(self) -> Provider:
        return self.registry.get_provider(self.provider_name)

    @property
    def backend(self) -> StorageBackend:
        return self.provider.backend

    @property
    def uri(self) -> StorageURI:
        return StorageURI(self.provider_name, self.name)

    def key(self, path: NormalizedPath | str = NormalizedPath()) -> str:
        """Provider-relative backend key for a bucket path."""
        return str(self.root.join(NormalizedPath.parse(path)))

    def resolve(self, ref: Any) -> StorageURI:
        return resolve(ref, self, self.registry)

    def _locate(self, ref: Any) -> tuple[StorageURI, Bucket]:
        self._ensure_registered()
        uri = self.resolve(ref)
        if uri.same_bucket(self.uri):
            return uri, self
        return uri, self.registry.get_bucket(uri.provider, uri.bucket)

    def _ensure_registered(self) -> None:
        provider = self.provider
        if not provider.has_bucket(self.name) or provider.get_bucket(self.name) is not self:
            raise NotFoundError(f"Bucket {self.name!r} is no longer registered in provider {self.provider_name!r}")

    def can_read(self) -> bool:
        return bool(self.mode & 0o400)

    def can_write(self) -> bool:
        return bool(self.mode & 0o200)

    def require_read(self) -> None:
        if not self.can_read():
            raise StoragePermissionError(f"Bucket {self} is not readable (mode {self.mode:o})")

    def require_write(self) -> None:
        if not self.can_write():
            raise StoragePermissionError(f"Bucket {self} is not writable (mode {self.mode:o})")

    def _file(self, uri: StorageURI, info: EntryInfo | None = None) -> StorageFile:
        return StorageFile(uri, self.registry, info)

    def _directory(self, uri: StorageURI, info: EntryInfo | None = None) -> StorageDirectory:
        return StorageDirectory(uri, self.registry, info)

    async def walk(
        self, path: NormalizedPath | str = NormalizedPath(), recursive: bool = True
    ) -> list[tuple[NormalizedPath, EntryInfo]]:
        """List entries below ``path`` as ``(bucket path, info)`` pairs.

        Traversal is breadth-first; callers must not rely on the order.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
        """
        start = NormalizedPath.parse(path)
        found: list[tuple[NormalizedPath, EntryInfo]] = []
        pending: deque[NormalizedPath] = deque([start])
        while pending:
            current = pending.popleft()
            for info in await self.backend.list(self.key(current)):
                child = current.join(NormalizedPath((info.name,)))
                found.append((child, info))
                if recursive and info.is_directory:
                    pending.append(child)
        return found

    async def prune(self, path: NormalizedPath | str = NormalizedPath()) -> list[NormalizedPath]:
        """Remove directories below ``path`` that hold no files, deepest first.

        ``path`` itself is kept.  Returns the removed paths.  A directory the
        backend refuses to remove counts as non-empty.
        """
        removed: list[NormalizedPath] = []

        async def _prune(current: NormalizedPath) -> bool:
            empty = True
            for info in await self.backend.list(self.key(current)):
                child = current.join(NormalizedPath((info.name,)))
                if not (info.is_directory and await _prune(child)):
                    empty = False
                    continue
                try:
                    await self.backend.rmdir(self.key(child))
                except OSError as e:
                    # hidden entries such as staged uploads keep the directory
                    logger.debug("Keeping %s: %s", child, e)
                    empty = False
                    continue
                removed.append(child)
            return empty

        await _prune(NormalizedPath.parse(path))
        return removed

    def native_path(self, path: Any = "") -> str:
        uri, bucket = self._locate(path)
        return bucket.backend.native_path(bucket.key(uri.path))

    def public_url(self, path: Any = "") -> str | None:
        uri, bucket = self._locate(path)
        base = bucket.provider.config.url
        if not base:
            return None
        return f"{base.rstrip('/')}/{quote(bucket.key(uri.path))}"

    def get_storage_uri(self, path: Any = "") -> str:
        return str(self.resolve(path))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @enveloped
    async def put_file(self, path: Any, content: Content, *, returning: bool = False) -> str | StorageFile:
        """Write ``content`` to ``path``.

        Returns:
            The storage URI string, or the :class:`StorageFile` with ``returning=True``.
        """
        if is_directory_reference(path):
            raise InvalidPathError(f"put_file needs a file path, got {path!r}")
        uri, bucket = self._locate(path)
        bucket.require_write()
        await bucket.backend.write_stream(bucket.key(uri.path), to_byte_stream(content))
        logger.debug("Wrote %s", uri)
        return bucket._file(uri) if returning else str(uri)

    @enveloped
    async def stat(self, path: Any) -> EntryInfo:
        uri, bucket = self._locate(path)
        bucket.require_read()
        return await bucket.backend.stat(bucket.key(uri.path))

    @enveloped
    async def read_file(self, path: Any) -> bytes:
        uri, bucket = self._locate(path)
        bucket.require_read()
        return await bucket.backend.read(bucket.key(uri.path))

    @enveloped
    async def open_stream(self, path: Any) -> AsyncIterator[bytes]:
        """Return a byte stream for a file after checking it exists."""
        uri, bucket = self._locate(path)
        bucket.require_read()
        key = bucket.key(uri.path)
        if (await bucket.backend.stat(key)).is_directory:
            raise InvalidPathError(f"{uri} is a directory")
        return bucket.backend.read_stream(key)

    @enveloped
    async def get_file(self, path: Any) -> StorageFile:
        uri, bucket = self._locate(path)
        bucket.require_read()
        info = await bucket.backend.stat(bucket.key(uri.path))
        if info.is_directory:
            raise NotFoundError(f"{uri} is a directory, not a file")
        return bucket._file(uri, info)

    @enveloped
    async def file_exists(self, path: Any, returning: bool = False) -> bool | StorageFile:
        """Whether a file exists; with ``returning=True`` the entity is returned when it does."""
        uri, bucket = self._locate(path)
        bucket.require_read()
        try:
            info = await bucket.backend.stat(bucket.key(uri.path))
        except FileNotFoundError:
            return False
        if info.is_directory:
            return False
        return bucket._file(uri, info) if returning else True

    @enveloped
    async def list_files(
        self,
        path: Any = "",
        *,
        recursive: bool = False,
        pattern: str | None = None,
        returning: bool = False,
        include_directories: bool = False,
    ) -> ListResult:
        """List files below ``path``.

        Args:
            path: Directory to list.
            recursive: Traverse the whole subtree instead of direct children.
            pattern: Glob matched against paths relative to ``path``.
            returning: Return entities instead of URI strings.
            include_directories: Also report directories.
        """
        uri, bucket = self._locate(path)
        bucket.require_read()
        entries = await bucket.walk(uri.path, recursive=recursive)
        if not include_directories:
            entries = [(p, info) for p, info in entries if not info.is_directory]
        if pattern:
            by_path = dict(entries)
            entries = [(p, by_path[p]) for p in patterns.match(list(by_path), pattern, root=uri.path)]

        result = ListResult(path=str(uri))
        for entry_path, info in entries:
            entry_uri = uri.with_path(entry_path)
            if not returning:
                result.entries.append(str(entry_uri))
            elif info.is_directory:
                result.entries.append(bucket._directory(entry_uri, info))
            else:
                result.entries.append(bucket._file(entry_uri, info))
        return result

    def _destination(self, src: StorageURI, dest: Any) -> StorageURI:
        dest_uri = self.resolve(dest)
        if is_directory_reference(dest):
            dest_uri = dest_uri.join(NormalizedPath((src.path.name,)))
        return dest_uri

    async def _transfer_file(self, src: Any, dest: Any, *, move: bool, returning: bool) -> str | StorageFile:
        self._ensure_registered()
        src_uri = self.resolve(src)
        dest_uri = self._destination(src_uri, dest)
        await transfer(self.registry, src_uri, dest_uri, move=move)
        if move and isinstance(src, StorageFile):
            src._relocate(dest_uri)
        return self._file(dest_uri) if returning else str(dest_uri)

    @enveloped
    async def copy_file(self, src: Any, dest: Any, *, returning: bool = False) -> str | StorageFile:
        """Copy one file.  ``dest`` ending in ``/`` keeps the source file name."""
        return await self._transfer_file(src, dest, move=False, returning=returning)

    @enveloped
    async def move_file(self, src: Any, dest: Any, *, returning: bool = False) -> str | StorageFile:
        """Move one file.  A :class:`StorageFile` source is relocated in place."""
        return await self._transfer_file(src, dest, move=True, returning=returning)

    async def _transfer_files(self, src_dir: Any, dest_dir: Any, pattern: str, *, move: bool) -> list[str]:
        src_uri, src_bucket = self._locate(src_dir)
        dest_uri = self.resolve(dest_dir)
        src_bucket.require_read()
        entries = await src_bucket.walk(src_uri.path, recursive=True)
        files = [p for p, info in entries if not info.is_directory]
        matched = patterns.match(files, pattern, root=src_uri.path)
        pairs = [(src_uri.with_path(p), relative_destination(src_uri.path, p, dest_uri)) for p in matched]

        results = await run_all(lambda pair: transfer_entry(self.registry, pair[0], pair[1], move), pairs)
        done = _batch_outcome(results, "move_files" if move else "copy_files")
        return [str(u) for u in done]

    @enveloped
    async def copy_files(self, src_dir: Any, dest_dir: Any, pattern: str = "**") -> list[str]:
        """Copy every file under ``src_dir`` matching ``pattern``, keeping relative paths.

        Failed entries are skipped; compare the result length with the match
        count to detect partial success.
        """
        return await self._transfer_files(src_dir, dest_dir, pattern, move=False)

    @enveloped
    async def move_files(self, src_dir: Any, dest_dir: Any, pattern: str = "**") -> list[str]:
        """Move every file under ``src_dir`` matching ``pattern``; see :meth:`copy_files`."""
        return await self._transfer_files(src_dir, dest_dir, pattern, move=True)

    @enveloped
    async def delete_file(self, path: Any) -> bool:
        """Delete one file.  A missing file counts as deleted."""
        uri, bucket = self._locate(path)
        bucket.require_write()
        try:
            await bucket.backend.delete(bucket.key(uri.path))
        except FileNotFoundError:
            logger.debug("Delete of missing %s treated as success", uri)
        return True

    @enveloped
    async def delete_files(self, path: Any = "", pattern: str = "**") -> list[str]:
        """Delete every file under ``path`` matching ``pattern``.

        Returns the URIs that were deleted; failed entries are skipped.
        """
        uri, bucket = self._locate(path)
        bucket.require_write()
        try:
            entries = await bucket.walk(uri.path, recursive=True)
        except FileNotFoundError:
            return []
        files = [uri.with_path(p) for p, info in entries if not info.is_directory]
        matched = patterns.match(files, pattern, root=uri.path)

        @enveloped
        async def _delete(target: StorageURI) -> str:
            try:
                await bucket.backend.delete(bucket.key(target.path))
            except FileNotFoundError:
                pass
            return str(target)

        results = await run_all(_delete, matched)
        return _batch_outcome(results, "delete_files")

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    @enveloped
    async def get_directory(self, path: Any) -> StorageDirectory:
        uri, bucket = self._locate(path)
        bucket.require_read()
        info = await bucket.backend.stat(bucket.key(uri.path))
        if not info.is_directory:
            raise NotFoundError(f"{uri} is a file, not a directory")
        return bucket._directory(uri, info)

    @enveloped
    async def make_directory(self, path: Any, *, returning: bool = False) -> str | StorageDirectory:
        """Create a directory and any missing parents."""
        uri, bucket = self._locate(path)
        bucket.require_write()
        await bucket.backend.mkdir(bucket.key(uri.path), mode=bucket.mode)
        return bucket._directory(uri) if returning else str(uri)

    async def _clear(self, bucket: Bucket, path: NormalizedPath) -> None:
        """Delete all files below ``path`` and then its subdirectories, deepest first."""
        entries = await bucket.walk(path, recursive=True)
        files = [p for p, info in entries if not info.is_directory]

        @enveloped
        async def _delete(target: NormalizedPath) -> bool:
            await bucket.backend.delete(bucket.key(target))
            return True

        for response in await run_all(_delete, files):
            if response.error is not None:
                raise response.error
        directories = sorted(
            (p for p, info in entries if info.is_directory), key=lambda p: len(p.segments), reverse=True
        )
        for directory in directories:
            await bucket.backend.rmdir(bucket.key(directory))

    @enveloped
    async def empty_directory(self, path: Any = "") -> bool:
        """Delete everything inside a directory, keeping the directory itself."""
        uri, bucket = self._locate(path)
        bucket.require_write()
        await self._clear(bucket, uri.path)
        return True

    @enveloped
    async def delete_directory(self, path: Any) -> bool:
        """Delete a directory and its contents.  A missing directory counts as deleted.

        Deleting the bucket root empties the bucket instead.
        """
        uri, bucket = self._locate(path)
        bucket.require_write()
        try:
            await self._clear(bucket, uri.path)
        except FileNotFoundError:
            return True
        if not uri.path.is_root:
            await bucket.backend.rmdir(bucket.key(uri.path))
        return True

    @enveloped
    async def remove_empty_directories(self, path: Any = "") -> bool:
        """Prune directories that contain no files, children before parents.

        The starting directory (by default the bucket root) is never removed.
        """
        uri, bucket = self._locate(path)
        bucket.require_write()
        removed = await bucket.prune(uri.path)
        logger.debug("Pruned %d empty directories under %s", len(removed), uri)
        return True

    async def _transfer_directory(self, src: Any, dest: Any, *, move: bool, returning: bool) -> str | StorageDirectory:
        self._ensure_registered()
        src_uri = self.resolve(src)
        dest_uri = self.resolve(dest)
        await transfer_directory(self.registry, src_uri, dest_uri, move=move)
        if move and isinstance(src, StorageDirectory):
            src._relocate(dest_uri)
        return self._directory(dest_uri) if returning else str(dest_uri)

    @enveloped
    async def copy_directory(self, src: Any, dest: Any, *, returning: bool = False) -> str | StorageDirectory:
        """Copy every file below ``src`` into the directory ``dest``."""
        return await self._transfer_directory(src, dest, move=False, returning=returning)

    @enveloped
    async def move_directory(self, src: Any, dest: Any, *, returning: bool = False) -> str | StorageDirectory:
        """Move every file below ``src`` into ``dest`` and remove the source tree."""
        return await self._transfer_directory(src, dest, move=True, returning=returning)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @enveloped
    async def get_native_path(self, path: Any = "") -> str:
        return self.native_path(path)

    @enveloped
    async def get_public_url(self, path: Any = "") -> str | None:
        return self.public_url(path)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @enveloped
    async def destroy(self) -> bool:
        """Unregister the bucket.  Its stored contents are kept."""
        self.provider.detach_bucket(self)
        return True

    @enveloped
    async def remove(self) -> bool:
        """Delete the bucket's contents and root directory, then unregister it."""
        self._ensure_registered()
        self.require_write()
        await self._clear(self, NormalizedPath())
        if not self.root.is_root:
            await self.backend.rmdir(self.key())
        self.provider.detach_bucket(self)
        return True
