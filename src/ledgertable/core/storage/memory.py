# src/ledgertable/core/storage/memory.py
"""In-memory append-only storage client.

Bundles live in a dict keyed by bundle hash for the lifetime of the
client. Nothing is verified on load: the client models a substrate that
serves whatever it holds, leaving authentication to the table.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from ledgertable.contracts.storage import StorageItem
from ledgertable.core.clock import DEFAULT_CLOCK, Clock
from ledgertable.core.storage._bundle import build_bundle, new_nonce

__all__ = ["MemoryStorageClient"]


class MemoryStorageClient:
    """Dict-backed StorageClient.

    Each call yields to the event loop once so concurrent table
    operations interleave the way they would against a network store.
    """

    def __init__(self, clock: Clock = DEFAULT_CLOCK) -> None:
        self._clock = clock
        self._bundles: dict[str, StorageItem] = {}
        self.save_count = 0
        self.load_count = 0

    def __len__(self) -> int:
        return len(self._bundles)

    def __contains__(self, bundle_hash: object) -> bool:
        return bundle_hash in self._bundles

    async def save(self, address: str, data: bytes, tag: str = "") -> StorageItem:
        await asyncio.sleep(0)
        item = build_bundle(address, data, tag, self._clock.now_ms(), new_nonce())
        self._bundles[item.bundle_hash] = item
        self.save_count += 1
        return item

    async def load(self, ids: Sequence[str]) -> list[StorageItem]:
        await asyncio.sleep(0)
        self.load_count += 1
        return [self._bundles[bundle_hash] for bundle_hash in ids if bundle_hash in self._bundles]

    def find_by_tag(self, tag: str) -> list[StorageItem]:
        """Return every bundle written with tag, in write order."""
        return [item for item in self._bundles.values() if item.tag == tag]
