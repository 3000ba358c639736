# SPDX-License-Identifier: MIT
"""Configuration management for unistore.

This module handles:
- Logging setup
- Process settings from environment variables
- Provider and bucket configuration models
- Provider connection strings (``scheme://root?name=alias&mode=0777``)
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

logger = logging.getLogger("unistore")

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_PROVIDER_ENV_PREFIX = "UNISTORE_PROVIDER_"


# ---------- Logging configuration ----------
def configure_logging(level: str | None = None) -> None:
    """Configure root logging to stderr.

    Args:
        level: Log level name.  Defaults to ``LOG_LEVEL`` or ``INFO``.
    """
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format=_LOG_FORMAT,
        stream=sys.stderr,
    )


# ---------- Process settings (runtime) ----------
@dataclass(frozen=True)
class Settings:
    """Process-wide tunables read from the environment."""

    max_concurrency: int = 16
    chunk_size: int = 64 * 1024


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return settings from ``UNISTORE_MAX_CONCURRENCY`` / ``UNISTORE_CHUNK_SIZE`` (cached).

    Raises:
        RuntimeError: If a variable is set but not a positive integer.
    """
    return Settings(
        max_concurrency=_int_env("UNISTORE_MAX_CONCURRENCY", Settings.max_concurrency),
        chunk_size=_int_env("UNISTORE_CHUNK_SIZE", Settings.chunk_size),
    )


def provider_uris_from_env() -> dict[str, str]:
    """Collect ``UNISTORE_PROVIDER_<NAME>=<connection string>`` entries.

    Provider names are lowercased.
    """
    found: dict[str, str] = {}
    for key, value in os.environ.items():
        if key.startswith(_PROVIDER_ENV_PREFIX) and value.strip():
            name = key[len(_PROVIDER_ENV_PREFIX) :].lower()
            if name:
                found[name] = value.strip()
    return found


# ---------- Provider / bucket models ----------
def parse_connection_string(uri: str) -> dict[str, Any]:
    """Split a provider connection string into config fields.

    ``fs://./data/store?name=local&mode=0755`` becomes
    ``{"type": "fs", "root": "./data/store", "name": "local", "mode": "0755"}``.
    Extra query parameters are kept as backend-specific options.

    Raises:
        ValueError: If the string has no scheme.
    """
    parts = urlsplit(uri)
    if not parts.scheme:
        raise ValueError(f"Provider connection string needs a scheme: {uri!r}")
    fields: dict[str, Any] = {"type": parts.scheme, "root": f"{parts.netloc}{parts.path}"}
    fields.update(parse_qsl(parts.query, keep_blank_values=False))
    return fields


def _parse_mode(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return int(value.strip(), 8)
        except ValueError as e:
            raise ValueError(f"Invalid octal mode: {value!r}") from e
    return value


class ProviderConfig(BaseModel):
    """Configuration of one provider instance.

    Backend-specific options (e.g. Databricks credentials) are accepted as
    extra fields and passed through to the backend factory.
    """

    model_config = ConfigDict(extra="allow")

    type: str | None = None
    uri: str | None = None
    name: str | None = None
    root: str = ""
    mode: int = 0o777
    url: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _expand_uri(cls, data: Any) -> Any:
        if isinstance(data, str):
            data = {"uri": data}
        if isinstance(data, dict) and data.get("uri"):
            parsed = parse_connection_string(data["uri"])
            # explicit keys win over the connection string
            data = {**parsed, **{k: v for k, v in data.items() if v is not None}}
        return data

    @field_validator("mode", mode="before")
    @classmethod
    def _validate_mode(cls, v: Any) -> Any:
        return _parse_mode(v)

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    @property
    def readable(self) -> bool:
        return bool(self.mode & 0o400)

    @property
    def writable(self) -> bool:
        return bool(self.mode & 0o200)


class BucketConfig(BaseModel):
    """Configuration of one bucket inside a provider.

    ``root`` is the bucket's sub-path under the provider root and defaults to
    the bucket name.  ``mode`` overrides the provider's access mode.
    """

    model_config = ConfigDict(extra="allow")

    root: str | None = None
    mode: int | None = None

    @field_validator("mode", mode="before")
    @classmethod
    def _validate_mode(cls, v: Any) -> Any:
        return _parse_mode(v)
