# SPDX-License-Identifier: MIT
"""Local filesystem backend (provider type ``fs``).

Writes go to a hidden staging file next to the target and are renamed into
place, so a partially written file is never visible under its final name.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import pathlib
import shutil
import uuid
from collections.abc import AsyncGenerator, AsyncIterator

import aiofiles
import aiofiles.os
import anyio

from ..config import ProviderConfig, get_settings
from ..exceptions import InvalidPathError
from .protocol import EntryInfo

logger = logging.getLogger("unistore")

STAGING_SUFFIX = ".unistore-part"


class LocalBackend:
    """Local-disk storage rooted at one directory.

    Args:
        root: Provider root.  Relative roots resolve against the working
            directory at construction time.
        mode: Permission bits for directories the backend creates.
    """

    cross_bucket_native = True

    def __init__(self, root: str | pathlib.Path, mode: int = 0o777) -> None:
        self._root = pathlib.Path(root).expanduser().resolve()
        self._mode = mode

    @classmethod
    def from_config(cls, config: ProviderConfig) -> LocalBackend:
        if not config.root:
            raise ValueError("Local provider requires a root directory")
        return cls(config.root, mode=config.mode)

    @property
    def root(self) -> pathlib.Path:
        return self._root

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        if await aiofiles.os.path.exists(self._root) and not await aiofiles.os.path.isdir(self._root):
            raise NotADirectoryError(f"Provider root is not a directory: {self._root}")
        await aiofiles.os.makedirs(self._root, mode=self._mode, exist_ok=True)
        logger.debug("Local provider root ready: %s", self._root)

    async def aclose(self) -> None:
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _safe(self, key: str) -> pathlib.Path:
        """Map a key to a path, rejecting anything that resolves outside the root."""
        path = self._root / key if key else self._root
        try:
            path.resolve().relative_to(self._root)
        except ValueError as e:
            raise InvalidPathError(f"Invalid key: path traversal detected: {key!r}") from e
        return path

    def _staging_path(self, target: pathlib.Path) -> pathlib.Path:
        return target.with_name(f".{target.name}.{uuid.uuid4().hex}{STAGING_SUFFIX}")

    async def _ensure_parent(self, path: pathlib.Path) -> None:
        await aiofiles.os.makedirs(path.parent, mode=self._mode, exist_ok=True)

    # ------------------------------------------------------------------
    # Byte-level I/O
    # ------------------------------------------------------------------

    async def read(self, key: str) -> bytes:
        async with aiofiles.open(self._safe(key), "rb") as f:
            return await f.read()

    async def read_stream(self, key: str) -> AsyncGenerator[bytes, None]:
        chunk_size = get_settings().chunk_size
        async with aiofiles.open(self._safe(key), "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    async def write(self, key: str, data: bytes) -> None:
        async def _once() -> AsyncIterator[bytes]:
            yield data

        await self.write_stream(key, _once())

    async def write_stream(self, key: str, chunks: AsyncIterator[bytes]) -> None:
        target = self._safe(key)
        await self._ensure_parent(target)
        staging = self._staging_path(target)
        try:
            async with aiofiles.open(staging, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
            await aiofiles.os.replace(staging, target)
        except BaseException:
            staging.unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Metadata / listing
    # ------------------------------------------------------------------

    @staticmethod
    def _info(name: str, st: os.stat_result, is_directory: bool) -> EntryInfo:
        if is_directory:
            return EntryInfo(name=name, is_directory=True, modified_timestamp=st.st_mtime)
        return EntryInfo(
            name=name,
            size_bytes=st.st_size,
            modified_timestamp=st.st_mtime,
            mime_type=mimetypes.guess_type(name)[0],
        )

    async def stat(self, key: str) -> EntryInfo:
        path = self._safe(key)
        try:
            st = await aiofiles.os.stat(path)
        except NotADirectoryError as e:
            raise FileNotFoundError(f"Not found: {key}") from e
        return self._info(path.name, st, await aiofiles.os.path.isdir(path))

    async def list(self, key: str) -> list[EntryInfo]:
        path = self._safe(key)

        def _scan() -> list[EntryInfo]:
            results: list[EntryInfo] = []
            try:
                it = os.scandir(path)
            except NotADirectoryError as e:
                raise FileNotFoundError(f"Not a directory: {key}") from e
            with it:
                for entry in it:
                    if entry.name.endswith(STAGING_SUFFIX):
                        continue
                    if entry.is_symlink():
                        logger.debug("Skipping symlink in listing: %s", entry.path)
                        continue
                    is_dir = entry.is_dir()
                    results.append(self._info(entry.name, entry.stat(), is_dir))
            return results

        return await anyio.to_thread.run_sync(_scan)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def delete(self, key: str) -> None:
        path = self._safe(key)
        if await aiofiles.os.path.isdir(path):
            raise IsADirectoryError(f"Not a file: {key}")
        try:
            await aiofiles.os.remove(path)
        except NotADirectoryError as e:
            raise FileNotFoundError(f"Not found: {key}") from e

    async def mkdir(self, key: str, mode: int = 0o777) -> None:
        await aiofiles.os.makedirs(self._safe(key), mode=mode, exist_ok=True)

    async def rmdir(self, key: str) -> None:
        await aiofiles.os.rmdir(self._safe(key))

    # ------------------------------------------------------------------
    # Native transfer
    # ------------------------------------------------------------------

    async def native_copy(self, src_key: str, dest_key: str) -> None:
        src = self._safe(src_key)
        dest = self._safe(dest_key)
        await self._ensure_parent(dest)
        staging = self._staging_path(dest)
        try:
            await anyio.to_thread.run_sync(shutil.copyfile, src, staging)
            await aiofiles.os.replace(staging, dest)
        except BaseException:
            staging.unlink(missing_ok=True)
            raise

    async def native_move(self, src_key: str, dest_key: str) -> None:
        src = self._safe(src_key)
        dest = self._safe(dest_key)
        if not await aiofiles.os.path.exists(src):
            raise FileNotFoundError(f"File not found: {src_key}")
        await self._ensure_parent(dest)
        await aiofiles.os.replace(src, dest)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def native_path(self, key: str) -> str:
        return str(self._safe(key))
