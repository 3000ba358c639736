# SPDX-License-Identifier: MIT
"""File and directory entities.

Entities do not own their bucket: they keep a :class:`StorageURI` and look
the bucket up through the registry on every call, so a destroyed bucket
surfaces as :class:`~unistore.exceptions.NotFoundError` in the envelope.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from .backends.protocol import EntryInfo
from .response import enveloped
from .uri import NormalizedPath, StorageURI

if TYPE_CHECKING:
    from .bucket import Bucket, ListResult
    from .content import Content
    from .registry import ProviderRegistry


class StorageEntry:
    """Common base for :class:`StorageFile` and :class:`StorageDirectory`."""

    def __init__(self, uri: StorageURI, registry: ProviderRegistry, info: EntryInfo | None = None) -> None:
        self.uri = uri
        self._registry = registry
        self._info = info

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.uri)!r})"

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.uri == self.uri  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.uri))

    @property
    def bucket(self) -> Bucket:
        """The owning bucket.

        Raises:
            NotFoundError: If the provider or bucket no longer exists.
        """
        return self._registry.get_bucket(self.uri.provider, self.uri.bucket)

    @property
    def path(self) -> NormalizedPath:
        return self.uri.path

    @path.setter
    def path(self, value: str | NormalizedPath) -> None:
        self.uri = self.uri.with_path(value)
        self._info = None

    @property
    def name(self) -> str:
        return self.uri.path.name

    def get_absolute_path(self) -> str:
        """Bucket-root-relative path with a leading ``/``."""
        return f"/{self.uri.path}"

    def get_storage_uri(self) -> str:
        return str(self.uri)

    def get_native_path(self) -> str:
        return self.bucket.native_path(self.uri.path)

    def _relocate(self, uri: StorageURI) -> None:
        self.uri = uri
        self._info = None


class StorageFile(StorageEntry):
    """A file inside a bucket.  Metadata is fetched lazily and cached."""

    @enveloped
    async def get_metadata(self, refresh: bool = False) -> EntryInfo:
        if self._info is None or refresh:
            self._info = (await self.bucket.stat(self.uri.path)).unwrap()
        return self._info

    @property
    def size(self) -> int | None:
        return self._info.size_bytes if self._info else None

    @property
    def mime_type(self) -> str | None:
        return self._info.mime_type if self._info else None

    @property
    def last_modified(self) -> float | None:
        return self._info.modified_timestamp if self._info else None

    @enveloped
    async def get_contents(self) -> bytes:
        return (await self.bucket.read_file(self.uri.path)).unwrap()

    @enveloped
    async def get_stream(self) -> AsyncIterator[bytes]:
        return (await self.bucket.open_stream(self.uri.path)).unwrap()

    def get_public_url(self) -> str | None:
        return self.bucket.public_url(self.uri.path)

    @enveloped
    async def exists(self) -> bool:
        return bool((await self.bucket.file_exists(self)).unwrap())

    @enveloped
    async def copy(self, dest: Any) -> StorageFile:
        return (await self.bucket.copy_file(self, dest, returning=True)).unwrap()

    @enveloped
    async def move(self, dest: Any) -> StorageFile:
        """Move the file; on success this entity points at the new location."""
        moved = (await self.bucket.move_file(self, dest, returning=True)).unwrap()
        self._relocate(moved.uri)
        return moved

    @enveloped
    async def save(self, content: Content) -> StorageFile:
        self._info = None
        return (await self.bucket.put_file(self, content, returning=True)).unwrap()

    @enveloped
    async def delete(self) -> bool:
        return (await self.bucket.delete_file(self)).unwrap()


class StorageDirectory(StorageEntry):
    """A directory inside a bucket."""

    def _child_reference(self, dest: str | StorageEntry) -> str | StorageURI:
        """Resolve ``dest`` below this directory unless it is an absolute URI."""
        if isinstance(dest, StorageEntry):
            return self.uri.join(dest.uri.path)
        if "://" in dest:
            return dest
        return self.uri.join(dest)

    @enveloped
    async def list(self, recursive: bool = False, pattern: str | None = None) -> ListResult:
        response = await self.bucket.list_files(self, recursive=recursive, pattern=pattern, returning=True)
        return response.unwrap()

    @enveloped
    async def save(self) -> StorageDirectory:
        return (await self.bucket.make_directory(self, returning=True)).unwrap()

    @enveloped
    async def make_directory(self, dest: str | StorageDirectory) -> StorageDirectory:
        """Create ``dest`` below this directory."""
        return (await self.bucket.make_directory(self._child_reference(dest), returning=True)).unwrap()

    @enveloped
    async def empty(self) -> bool:
        return (await self.bucket.empty_directory(self)).unwrap()

    @enveloped
    async def delete(self) -> bool:
        return (await self.bucket.delete_directory(self)).unwrap()

    @enveloped
    async def copy(self, dest: Any) -> StorageDirectory:
        return (await self.bucket.copy_directory(self, dest, returning=True)).unwrap()

    @enveloped
    async def move(self, dest: Any) -> StorageDirectory:
        moved = (await self.bucket.move_directory(self, dest, returning=True)).unwrap()
        self._relocate(moved.uri)
        return moved
