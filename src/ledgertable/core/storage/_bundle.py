# src/ledgertable/core/storage/_bundle.py
"""Bundle construction shared by the reference storage clients.

A payload is split into fixed-size fragments ("transactions"). Each
fragment hash covers the bundle header and the fragment bytes; the bundle
hash covers the ordered fragment hashes. A random nonce in the header
makes every write produce a distinct bundle hash, even for identical
payloads written in the same millisecond.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets

from ledgertable.contracts.errors import IntegrityError
from ledgertable.contracts.storage import StorageItem

# Payload bytes carried by a single fragment
FRAGMENT_SIZE = 2187

# SHA-256 hex digest: exactly 64 lowercase hex characters
BUNDLE_HASH_PATTERN = re.compile(r"^[a-f0-9]{64}$")


def new_nonce() -> str:
    return secrets.token_hex(16)


def split_fragments(data: bytes) -> list[bytes]:
    """Split data into FRAGMENT_SIZE chunks. Empty data is one empty fragment."""
    if not data:
        return [b""]
    return [data[i : i + FRAGMENT_SIZE] for i in range(0, len(data), FRAGMENT_SIZE)]


def _fragment_hashes(address: str, tag: str, attachment_timestamp: int, nonce: str, data: bytes) -> tuple[str, ...]:
    header = f"{address}|{tag}|{attachment_timestamp}|{nonce}".encode()
    return tuple(
        hashlib.sha256(header + b"|" + str(position).encode() + b"|" + fragment).hexdigest()
        for position, fragment in enumerate(split_fragments(data))
    )


def _bundle_hash(transaction_hashes: tuple[str, ...]) -> str:
    return hashlib.sha256("".join(transaction_hashes).encode("ascii")).hexdigest()


def build_bundle(address: str, data: bytes, tag: str, attachment_timestamp: int, nonce: str) -> StorageItem:
    """Compute fragment and bundle hashes for a new write."""
    transaction_hashes = _fragment_hashes(address, tag, attachment_timestamp, nonce, data)
    return StorageItem(
        bundle_hash=_bundle_hash(transaction_hashes),
        transaction_hashes=transaction_hashes,
        attachment_timestamp=attachment_timestamp,
        data=data,
        address=address,
        tag=tag,
    )


def verify_bundle(item: StorageItem, nonce: str) -> None:
    """Recompute hashes for a stored bundle.

    Raises:
        IntegrityError: If fragment or bundle hashes don't match the content
    """
    expected = _fragment_hashes(item.address, item.tag, item.attachment_timestamp, nonce, item.data)
    if len(expected) != len(item.transaction_hashes) or not all(
        hmac.compare_digest(a, b) for a, b in zip(expected, item.transaction_hashes, strict=True)
    ):
        raise IntegrityError("Bundle integrity check failed: fragment hashes don't match content", item.bundle_hash)
    actual = _bundle_hash(item.transaction_hashes)
    if not hmac.compare_digest(actual, item.bundle_hash):
        raise IntegrityError(f"Bundle integrity check failed: expected {item.bundle_hash}, got {actual}", item.bundle_hash)
