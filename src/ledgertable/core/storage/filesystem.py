# src/ledgertable/core/storage/filesystem.py
"""Filesystem-backed append-only storage client.

Each bundle is one JSON envelope holding the payload (base64) and the
metadata needed to re-derive its hashes. Envelopes are write-once.
Integrity is re-verified on every load; an envelope that fails the check,
like a malformed id, is logged and left out of the result the same way a
missing bundle is.

Structure: base_path/ab/abcdef123....json
"""

from __future__ import annotations

import asyncio
import base64
import json
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ledgertable.contracts.errors import IntegrityError
from ledgertable.contracts.storage import StorageItem
from ledgertable.core.clock import DEFAULT_CLOCK, Clock
from ledgertable.core.logging import get_logger
from ledgertable.core.storage._bundle import BUNDLE_HASH_PATTERN, build_bundle, new_nonce, verify_bundle

__all__ = ["FilesystemStorageClient"]

logger = get_logger(__name__)


class FilesystemStorageClient:
    """StorageClient writing one envelope file per bundle.

    Uses the first 2 characters of the bundle hash as subdirectory for
    better file distribution. Blocking file I/O runs in worker threads.
    """

    def __init__(self, base_path: Path, clock: Clock = DEFAULT_CLOCK) -> None:
        """Initialize filesystem store.

        Args:
            base_path: Root directory for bundle storage
            clock: Source of attachment timestamps
        """
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._clock = clock

    def _path_for_hash(self, bundle_hash: str) -> Path:
        """Get filesystem path for a bundle hash.

        Raises:
            ValueError: If bundle_hash is not a valid SHA-256 hex digest
                        or if resolved path escapes base_path
        """
        if not BUNDLE_HASH_PATTERN.match(bundle_hash):
            raise ValueError(f"Invalid bundle_hash: must be 64 lowercase hex characters, got {repr(bundle_hash)[:50]}")

        path = self.base_path / bundle_hash[:2] / f"{bundle_hash}.json"

        try:
            resolved = path.resolve()
            base_resolved = self.base_path.resolve()
            if not resolved.is_relative_to(base_resolved):
                raise ValueError(f"Invalid bundle_hash: path traversal detected, resolved path {resolved} is not under {base_resolved}")
        except (OSError, ValueError) as e:
            raise ValueError(f"Invalid bundle_hash: path resolution failed for {repr(bundle_hash)[:50]}") from e

        return path

    async def save(self, address: str, data: bytes, tag: str = "") -> StorageItem:
        nonce = new_nonce()
        item = build_bundle(address, data, tag, self._clock.now_ms(), nonce)
        await asyncio.to_thread(self._write_envelope, item, nonce)
        return item

    async def load(self, ids: Sequence[str]) -> list[StorageItem]:
        return await asyncio.to_thread(self._read_many, list(ids))

    def _write_envelope(self, item: StorageItem, nonce: str) -> None:
        path = self._path_for_hash(item.bundle_hash)
        if path.exists():
            raise IntegrityError("Bundle already exists; the substrate is append-only", item.bundle_hash)
        envelope = {
            "address": item.address,
            "tag": item.tag,
            "attachment_timestamp": item.attachment_timestamp,
            "nonce": nonce,
            "transaction_hashes": list(item.transaction_hashes),
            "data": base64.b64encode(item.data).decode("ascii"),
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file and rename so readers never see partial envelopes
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(envelope, f, sort_keys=True)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read_many(self, ids: list[str]) -> list[StorageItem]:
        items = []
        for bundle_hash in ids:
            try:
                path = self._path_for_hash(bundle_hash)
            except ValueError as e:
                logger.warning("Skipping malformed bundle id", bundle_hash=repr(bundle_hash)[:50], error=str(e))
                continue
            if not path.exists():
                continue
            try:
                items.append(self._read_envelope(bundle_hash, path))
            except IntegrityError as e:
                logger.warning("Skipping bundle that failed integrity check", address=bundle_hash, error=str(e))
        return items

    def _read_envelope(self, bundle_hash: str, path: Path) -> StorageItem:
        try:
            envelope: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
            item = StorageItem(
                bundle_hash=bundle_hash,
                transaction_hashes=tuple(envelope["transaction_hashes"]),
                attachment_timestamp=envelope["attachment_timestamp"],
                data=base64.b64decode(envelope["data"], validate=True),
                address=envelope["address"],
                tag=envelope["tag"],
            )
            nonce = envelope["nonce"]
        except (ValueError, KeyError, TypeError) as e:
            raise IntegrityError(f"Bundle envelope is malformed: {e}", bundle_hash) from e
        verify_bundle(item, nonce)
        return item
