# src/ledgertable/core/table/signed_item.py
"""Signing and validation of SignedItems.

The signed message is codec.encode(data) followed by the decimal
timestamp. Validation also bounds the gap between signing time and the
substrate's attachment time, so a captured signed payload cannot be
replayed as fresh long after it was produced.
"""

from __future__ import annotations

from typing import Any, TypeVar

from ledgertable.contracts.errors import CodecError, ConfigurationError
from ledgertable.contracts.signing import Codec, Signer
from ledgertable.contracts.table import SignedItem
from ledgertable.core.clock import DEFAULT_CLOCK, Clock

U = TypeVar("U")

# Maximum permitted gap between signing and attachment, in milliseconds
TIMESTAMP_TTL_MS = 60_000


def signed_message(codec: Codec, data: Any, timestamp: int) -> bytes:
    return codec.encode(data) + str(timestamp).encode("ascii")


def create_signed_item(
    data: U,
    private_key: str | None,
    *,
    signer: Signer | None,
    codec: Codec,
    clock: Clock = DEFAULT_CLOCK,
) -> SignedItem[U]:
    """Sign data with the current time.

    Raises:
        ConfigurationError: If no signer or private key is available
        CodecError: If data cannot be encoded
    """
    if signer is None:
        raise ConfigurationError("No signer configured; records cannot be signed")
    if not private_key:
        raise ConfigurationError("No private key configured; records cannot be signed")

    timestamp = clock.now_ms()
    signature = signer.sign(private_key, signed_message(codec, data, timestamp))
    return SignedItem(data=data, signature=signature, timestamp=timestamp)


def _is_positive_number(value: object) -> bool:
    # bool is an int subclass but never a timestamp
    return isinstance(value, int | float) and not isinstance(value, bool) and value > 0


def validate_signed_item(
    item: SignedItem[Any],
    attachment_timestamp: object,
    public_key: str,
    *,
    signer: Signer,
    codec: Codec,
    ttl_ms: int = TIMESTAMP_TTL_MS,
) -> bool:
    """Check freshness and signature of a SignedItem.

    Only gaps of ttl_ms or more are rejected. An attachment timestamp
    earlier than the signing timestamp passes the freshness check.

    Returns:
        True if the item is fresh and its signature verifies
    """
    if not isinstance(item.signature, str) or not item.signature:
        return False
    if not _is_positive_number(attachment_timestamp) or not _is_positive_number(item.timestamp):
        return False
    if attachment_timestamp - item.timestamp >= ttl_ms:  # type: ignore[operator]
        return False

    try:
        message = signed_message(codec, item.data, item.timestamp)
        return bool(signer.verify(public_key, message, item.signature))
    except (CodecError, ValueError, TypeError):
        return False
