# SPDX-License-Identifier: MIT
"""Storage URI parsing and path normalization.

A storage URI has the form ``provider://bucket/segment/segment``.  Paths are
always relative to a bucket root; ``..`` segments may move up inside the
bucket but never above it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import InvalidPathError, NotFoundError, ResolutionError

if TYPE_CHECKING:
    from .bucket import Bucket
    from .registry import ProviderRegistry

_SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z0-9][A-Za-z0-9_.+-]*)://(?P<rest>.*)$", re.DOTALL)


@dataclass(frozen=True)
class NormalizedPath:
    """An ordered sequence of non-empty path segments.

    The root is the empty sequence.  ``str()`` joins segments with ``/``
    without a leading separator.
    """

    segments: tuple[str, ...] = ()

    @classmethod
    def parse(cls, raw: str | NormalizedPath) -> NormalizedPath:
        """Normalize a raw ``/``-separated path.

        Raises:
            InvalidPathError: If a ``..`` segment ascends above the root.
        """
        if isinstance(raw, NormalizedPath):
            return raw
        segments: list[str] = []
        for part in raw.replace("\\", "/").split("/"):
            if not part or part == ".":
                continue
            if part == "..":
                if not segments:
                    raise InvalidPathError(f"Path escapes bucket root: {raw!r}")
                segments.pop()
                continue
            segments.append(part)
        return cls(tuple(segments))

    def __str__(self) -> str:
        return "/".join(self.segments)

    def __truediv__(self, other: str | NormalizedPath) -> NormalizedPath:
        return self.join(other)

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""

    @property
    def parent(self) -> NormalizedPath:
        return NormalizedPath(self.segments[:-1])

    def join(self, other: str | NormalizedPath) -> NormalizedPath:
        """Append ``other`` to this path.

        ``..`` in ``other`` may consume segments of ``self`` but not escape
        the root.
        """
        if isinstance(other, NormalizedPath):
            return NormalizedPath(self.segments + other.segments)
        return NormalizedPath.parse(f"{self}/{other}")

    def is_relative_to(self, other: NormalizedPath) -> bool:
        return self.segments[: len(other.segments)] == other.segments

    def relative_to(self, other: NormalizedPath) -> NormalizedPath:
        if not self.is_relative_to(other):
            raise InvalidPathError(f"{self!s} is not inside {other!s}")
        return NormalizedPath(self.segments[len(other.segments) :])


@dataclass(frozen=True)
class StorageURI:
    """A fully resolved ``(provider, bucket, path)`` reference."""

    provider: str
    bucket: str
    path: NormalizedPath = NormalizedPath()

    def __str__(self) -> str:
        return f"{self.provider}://{self.bucket}/{self.path}"

    def with_path(self, path: str | NormalizedPath) -> StorageURI:
        return StorageURI(self.provider, self.bucket, NormalizedPath.parse(path))

    def join(self, other: str | NormalizedPath) -> StorageURI:
        return StorageURI(self.provider, self.bucket, self.path.join(other))

    def same_bucket(self, other: StorageURI) -> bool:
        return self.provider == other.provider and self.bucket == other.bucket


def split_scheme(raw: str) -> tuple[str | None, str]:
    """Split ``scheme://rest`` into its parts; the scheme is ``None`` when absent."""
    match = _SCHEME_RE.match(raw)
    if match is None:
        return None, raw
    return match.group("scheme"), match.group("rest")


def parse_uri(raw: str) -> StorageURI:
    """Parse an absolute ``provider://bucket/path`` string without a registry.

    Raises:
        ResolutionError: If ``raw`` has no scheme or no bucket.
    """
    scheme, rest = split_scheme(raw)
    if scheme is None:
        raise ResolutionError(f"Not an absolute storage URI: {raw!r}")
    bucket, _, path = rest.partition("/")
    if not bucket:
        raise ResolutionError(f"Storage URI has no bucket: {raw!r}")
    return StorageURI(scheme, bucket, NormalizedPath.parse(path))


def is_directory_reference(ref: Any) -> bool:
    """Whether ``ref`` names a directory rather than a file.

    Strings ending in a separator, bare ``scheme://bucket`` URIs and directory
    entities are directory references.
    """
    from .entries import StorageDirectory

    if isinstance(ref, StorageDirectory):
        return True
    if isinstance(ref, StorageURI):
        return ref.path.is_root
    if isinstance(ref, str):
        if ref == "" or ref.endswith(("/", "\\")):
            return True
        scheme, rest = split_scheme(ref)
        return scheme is not None and "/" not in rest
    return False


def resolve(
    ref: Any,
    context_bucket: Bucket | None = None,
    registry: ProviderRegistry | None = None,
) -> StorageURI:
    """Resolve a string, entity, or URI to a :class:`StorageURI`.

    Args:
        ref: ``provider://bucket/path``, a bucket-relative path, a
            :class:`~unistore.entries.StorageEntry`, or a :class:`StorageURI`.
        context_bucket: Bucket that relative paths resolve against.
        registry: Registry used to recognise provider names.  Defaults to the
            context bucket's registry.

    Raises:
        ResolutionError: If ``ref`` is relative and no context bucket is given,
            or the scheme names neither a provider nor a bucket.
        InvalidPathError: If the path escapes the bucket root.
    """
    from .entries import StorageEntry

    if isinstance(ref, StorageURI):
        return ref
    if isinstance(ref, StorageEntry):
        return ref.uri
    if isinstance(ref, NormalizedPath):
        ref = str(ref)
    if not isinstance(ref, str):
        raise ResolutionError(f"Cannot resolve reference of type {type(ref).__name__}")

    if registry is None and context_bucket is not None:
        registry = context_bucket.registry

    scheme, rest = split_scheme(ref)
    if scheme is None:
        if context_bucket is None:
            raise ResolutionError(f"Relative path {ref!r} needs a context bucket")
        return StorageURI(context_bucket.provider_name, context_bucket.name, NormalizedPath.parse(rest))

    if registry is None or registry.has_provider(scheme):
        return parse_uri(ref)

    # ``bucket://path`` shorthand on the context bucket's provider
    if context_bucket is not None:
        try:
            provider = context_bucket.provider
        except NotFoundError:
            provider = None
        if provider is not None and provider.has_bucket(scheme):
            return StorageURI(provider.name, scheme, NormalizedPath.parse(rest))

    raise ResolutionError(f"Unknown provider or bucket {scheme!r} in {ref!r}")
