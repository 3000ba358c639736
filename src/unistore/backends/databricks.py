# SPDX-License-Identifier: MIT
"""Databricks Unity Catalog Volumes backend (provider type ``databricks``).

Uses the Databricks Files API (REST) for all file and directory operations,
with OAuth client credentials for authentication.  The provider root is the
volume path (``catalog/schema/volume``); buckets are directories inside it.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import AsyncGenerator, AsyncIterator
from email.utils import parsedate_to_datetime
from urllib.parse import quote

import httpx

from ..config import ProviderConfig
from ..content import collect
from ..exceptions import InvalidPathError
from .protocol import EntryInfo

logger = logging.getLogger("unistore")


class DatabricksVolumesBackend:
    """Databricks Unity Catalog Volumes storage backend.

    Reads/writes files via the Files API and manages directories via the
    Directories API.  Uploads are atomic on the service side, so no staging
    file is needed.  There is no server-side copy, so every copy or move
    goes through the stream fallback.

    Credentials come from the provider config (``host``, ``client_id``,
    ``client_secret``) or from the environment::

        DATABRICKS_HOST            https://adb-123.11.azuredatabricks.net
        DATABRICKS_CLIENT_ID       OAuth service principal client ID
        DATABRICKS_CLIENT_SECRET   OAuth service principal client secret
        DATABRICKS_VOLUME_PATH     Volume path, when the provider root is empty
    """

    def __init__(
        self,
        volume_path: str,
        *,
        host: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        values = {
            "DATABRICKS_HOST": (host or os.getenv("DATABRICKS_HOST", "")).strip(),
            "DATABRICKS_CLIENT_ID": (client_id or os.getenv("DATABRICKS_CLIENT_ID", "")).strip(),
            "DATABRICKS_CLIENT_SECRET": (client_secret or os.getenv("DATABRICKS_CLIENT_SECRET", "")).strip(),
            "DATABRICKS_VOLUME_PATH": (volume_path or os.getenv("DATABRICKS_VOLUME_PATH", "")).strip(),
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            details = "\n".join(f"  - {name}" for name in missing)
            raise RuntimeError(f"Missing required Databricks setting(s):\n{details}")

        host_value = values["DATABRICKS_HOST"].rstrip("/")
        if not host_value.startswith(("http://", "https://")):
            host_value = f"https://{host_value}"
        self._host = host_value
        self._client_id = values["DATABRICKS_CLIENT_ID"]
        self._client_secret = values["DATABRICKS_CLIENT_SECRET"]
        self._volume_path = values["DATABRICKS_VOLUME_PATH"].strip("/")

        self._client = client or httpx.AsyncClient(timeout=300.0)
        self._token: str | None = None
        self._token_expires_at: float = 0.0

    @classmethod
    def from_config(cls, config: ProviderConfig) -> DatabricksVolumesBackend:
        extras = config.extras
        return cls(
            config.root,
            host=extras.get("host"),
            client_id=extras.get("client_id"),
            client_secret=extras.get("client_secret"),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        await self.mkdir("")

    async def aclose(self) -> None:
        """Close the underlying httpx client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> DatabricksVolumesBackend:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def _get_token(self) -> str:
        """Get an OAuth token, refreshing if expired or near-expiry."""
        now = time.monotonic()
        if self._token and now < self._token_expires_at - 60:
            return self._token

        resp = await self._client.post(
            f"{self._host}/oidc/v1/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "scope": "all-apis",
            },
        )
        resp.raise_for_status()
        payload = resp.json()
        self._token = payload["access_token"]
        # Default to 1-hour expiry if not provided
        self._token_expires_at = now + payload.get("expires_in", 3600)
        logger.debug("Acquired Databricks OAuth token (expires in %ds)", payload.get("expires_in", 3600))
        return self._token

    async def _headers(self) -> dict[str, str]:
        token = await self._get_token()
        return {"Authorization": f"Bearer {token}"}

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _volume_key(self, key: str) -> str:
        if ".." in key.split("/"):
            raise InvalidPathError(f"Path traversal detected: {key}")
        path = f"/Volumes/{self._volume_path}"
        return f"{path}/{key}" if key else path

    def _file_url(self, key: str) -> str:
        return f"{self._host}/api/2.0/fs/files{quote(self._volume_key(key))}"

    def _dir_url(self, key: str) -> str:
        return f"{self._host}/api/2.0/fs/directories{quote(self._volume_key(key))}"

    @staticmethod
    def _not_found(resp: httpx.Response, key: str) -> None:
        if resp.status_code == 404:
            raise FileNotFoundError(f"Not found: {key}")

    # ------------------------------------------------------------------
    # Byte-level I/O
    # ------------------------------------------------------------------

    async def read(self, key: str) -> bytes:
        headers = await self._headers()
        resp = await self._client.get(self._file_url(key), headers=headers)
        self._not_found(resp, key)
        resp.raise_for_status()
        return resp.content

    async def read_stream(self, key: str) -> AsyncGenerator[bytes, None]:
        headers = await self._headers()
        async with self._client.stream("GET", self._file_url(key), headers=headers) as resp:
            self._not_found(resp, key)
            resp.raise_for_status()
            async for chunk in resp.aiter_bytes():
                yield chunk

    async def write(self, key: str, data: bytes) -> None:
        headers = await self._headers()
        headers["Content-Type"] = "application/octet-stream"
        resp = await self._client.put(
            self._file_url(key), headers=headers, params={"overwrite": "true"}, content=data
        )
        resp.raise_for_status()

    async def write_stream(self, key: str, chunks: AsyncIterator[bytes]) -> None:
        """Write file from an async byte-chunk stream.

        .. warning::

            **Full in-memory buffering.** The Files API requires a complete
            PUT request body, so the entire stream is buffered before upload.
        """
        await self.write(key, await collect(chunks))

    # ------------------------------------------------------------------
    # Metadata / listing
    # ------------------------------------------------------------------

    async def stat(self, key: str) -> EntryInfo:
        headers = await self._headers()
        name = key.rsplit("/", 1)[-1]
        resp = await self._client.head(self._file_url(key), headers=headers)
        if resp.status_code == 200:
            modified = 0.0
            if resp.headers.get("Last-Modified"):
                modified = parsedate_to_datetime(resp.headers["Last-Modified"]).timestamp()
            return EntryInfo(
                name=name,
                size_bytes=int(resp.headers.get("Content-Length", 0)),
                modified_timestamp=modified,
                mime_type=resp.headers.get("Content-Type"),
            )
        if resp.status_code != 404:
            resp.raise_for_status()

        resp = await self._client.head(self._dir_url(key), headers=headers)
        self._not_found(resp, key)
        resp.raise_for_status()
        return EntryInfo(name=name, is_directory=True)

    async def list(self, key: str) -> list[EntryInfo]:
        headers = await self._headers()
        results: list[EntryInfo] = []
        params: dict[str, str] = {}
        while True:
            resp = await self._client.get(self._dir_url(key), headers=headers, params=params)
            self._not_found(resp, key)
            resp.raise_for_status()
            payload = resp.json()
            for entry in payload.get("contents", []):
                name = entry.get("name") or entry.get("path", "").rstrip("/").rsplit("/", 1)[-1]
                if not name:
                    continue
                results.append(
                    EntryInfo(
                        name=name,
                        is_directory=entry.get("is_directory", False),
                        size_bytes=entry.get("file_size", 0),
                        modified_timestamp=entry.get("last_modified", 0) / 1000.0,
                    )
                )
            token = payload.get("next_page_token")
            if not token:
                return results
            params = {"page_token": token}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def delete(self, key: str) -> None:
        headers = await self._headers()
        resp = await self._client.delete(self._file_url(key), headers=headers)
        self._not_found(resp, key)
        resp.raise_for_status()

    async def mkdir(self, key: str, mode: int = 0o777) -> None:
        # Volumes have no POSIX permissions; ``mode`` is accepted for protocol parity.
        headers = await self._headers()
        resp = await self._client.put(self._dir_url(key), headers=headers)
        resp.raise_for_status()

    async def rmdir(self, key: str) -> None:
        headers = await self._headers()
        resp = await self._client.delete(self._dir_url(key), headers=headers)
        self._not_found(resp, key)
        resp.raise_for_status()

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def native_path(self, key: str) -> str:
        return self._volume_key(key)
