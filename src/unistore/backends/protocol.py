# SPDX-License-Identifier: MIT
"""Backend capability protocol and shared types.

Defines the interface that every provider backend must implement.  Keys are
provider-relative POSIX paths (``<bucket root>/<path in bucket>``); the empty
string is the provider root.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class EntryInfo:
    """Metadata about a stored file or directory."""

    name: str
    is_directory: bool = False
    size_bytes: int = 0
    modified_timestamp: float = 0.0
    mime_type: str | None = None


@runtime_checkable
class StorageBackend(Protocol):
    """Protocol for pluggable provider backends.

    Implementations handle path-traversal prevention internally and report
    missing entries with :class:`FileNotFoundError`.
    """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Prepare the backend (e.g. create the provider root)."""
        ...

    async def aclose(self) -> None:
        """Release clients and other resources."""
        ...

    # ------------------------------------------------------------------
    # Byte-level I/O
    # ------------------------------------------------------------------

    async def read(self, key: str) -> bytes:
        """Read entire file contents.

        Raises:
            FileNotFoundError: If file does not exist.
        """
        ...

    def read_stream(self, key: str) -> AsyncGenerator[bytes, None]:
        """Stream file contents in chunks.

        Raises:
            FileNotFoundError: If file does not exist (on first iteration).
        """
        ...

    async def write(self, key: str, data: bytes) -> None:
        """Write entire file contents, creating parent directories."""
        ...

    async def write_stream(self, key: str, chunks: AsyncIterator[bytes]) -> None:
        """Write a file from an async byte-chunk stream.

        The file must never be visible under ``key`` partially written.
        """
        ...

    # ------------------------------------------------------------------
    # Metadata / listing
    # ------------------------------------------------------------------

    async def stat(self, key: str) -> EntryInfo:
        """Get entry metadata.

        Raises:
            FileNotFoundError: If nothing exists at ``key``.
        """
        ...

    async def list(self, key: str) -> list[EntryInfo]:
        """List the direct children of a directory.

        Raises:
            FileNotFoundError: If the directory does not exist.
        """
        ...

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def delete(self, key: str) -> None:
        """Delete one file.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        ...

    async def mkdir(self, key: str, mode: int = 0o777) -> None:
        """Create a directory and any missing parents (no error if present)."""
        ...

    async def rmdir(self, key: str) -> None:
        """Remove an empty directory."""
        ...

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def native_path(self, key: str) -> str:
        """Backend-native path or URI for ``key``."""
        ...


@runtime_checkable
class SupportsNativeTransfer(Protocol):
    """Optional server-side copy/move primitives.

    ``cross_bucket_native`` tells the planner whether the primitives also work
    between buckets of the same provider.
    """

    cross_bucket_native: bool

    async def native_copy(self, src_key: str, dest_key: str) -> None: ...

    async def native_move(self, src_key: str, dest_key: str) -> None: ...
