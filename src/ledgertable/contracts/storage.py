# src/ledgertable/contracts/storage.py
"""StorageClient protocol for the append-only, content-addressed substrate.

The substrate only supports "append an immutable blob, get back its
address". Bundles are never updated or deleted in place.

Implementations:
- core/storage/memory.py (MemoryStorageClient)
- core/storage/filesystem.py (FilesystemStorageClient)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class StorageItem:
    """A bundle as written to, or read back from, the substrate.

    Attributes:
        bundle_hash: Content-derived address of the bundle (64 hex chars)
        transaction_hashes: Hashes of the fragments the payload was split into
        attachment_timestamp: Milliseconds since epoch, assigned by the
            substrate when the write was committed. Trust anchor for
            freshness checks; writers cannot choose it.
        data: Raw payload bytes
        address: Collection address the bundle was written to
        tag: Tag the bundle was written with
    """

    bundle_hash: str
    transaction_hashes: tuple[str, ...]
    attachment_timestamp: int
    data: bytes
    address: str = ""
    tag: str = ""


@runtime_checkable
class StorageClient(Protocol):
    """Protocol for substrate clients.

    Both methods are single attempts. Network or write failures surface
    as exceptions and are not retried by the table.
    """

    async def save(self, address: str, data: bytes, tag: str = "") -> StorageItem:
        """Append a bundle to the substrate.

        Args:
            address: Collection address to write to
            data: Payload bytes
            tag: Free-form tag stored with the bundle

        Returns:
            The committed StorageItem, including its new bundle hash
        """
        ...

    async def load(self, ids: Sequence[str]) -> list[StorageItem]:
        """Load bundles by hash.

        Args:
            ids: Bundle hashes to load

        Returns:
            Successfully resolved bundles. Unknown ids are simply absent
            from the result.
        """
        ...
