# SPDX-License-Identifier: MIT
"""Exception hierarchy for unistore.

Every error raised by the core derives from :class:`StorageError`.  Errors
that originate in a backend keep the backend's own exception on
:attr:`StorageError.native` so callers can inspect it verbatim.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for all unistore errors."""

    def __init__(self, message: str, *, native: BaseException | None = None) -> None:
        super().__init__(message)
        self.native = native


class InvalidPathError(StorageError, ValueError):
    """A path escapes its bucket root or is otherwise malformed."""


class ResolutionError(StorageError):
    """A reference cannot be resolved to a (provider, bucket, path) triple."""


class NotFoundError(StorageError, LookupError):
    """A provider, bucket, or entry does not exist."""


class DuplicateProviderError(StorageError):
    """A provider name is already registered."""


class DuplicateBucketError(StorageError):
    """A bucket name is already used inside its provider."""


class DuplicateTypeError(StorageError):
    """A provider type name is already bound to a different factory."""


class UnknownProviderTypeError(StorageError):
    """No factory is registered for the requested provider type."""


class StoragePermissionError(StorageError, PermissionError):
    """The operation violates the provider's access mode."""


class BackendError(StorageError):
    """A backend failure that has no more specific translation."""


def translate_backend_error(exc: BaseException, context: str) -> StorageError:
    """Map a native backend exception onto the unistore taxonomy.

    Already-translated errors pass through unchanged.
    """
    if isinstance(exc, StorageError):
        return exc
    if isinstance(exc, FileNotFoundError):
        return NotFoundError(f"{context}: not found", native=exc)
    if isinstance(exc, PermissionError):
        return StoragePermissionError(f"{context}: permission denied", native=exc)
    return BackendError(f"{context}: {exc}", native=exc)
