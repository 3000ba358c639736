# SPDX-License-Identifier: MIT
"""Provider backends.

``fs`` (local disk) is always available.  ``databricks`` (Unity Catalog
Volumes over the Files API) is imported on first use.
"""

from .local import LocalBackend
from .protocol import EntryInfo, StorageBackend, SupportsNativeTransfer

__all__ = ["EntryInfo", "LocalBackend", "StorageBackend", "SupportsNativeTransfer"]
