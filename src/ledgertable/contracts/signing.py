# src/ledgertable/contracts/signing.py
"""Injected capabilities: message signing and payload encoding.

The table never looks these up globally. They are passed to its
constructor so tests can substitute deterministic implementations.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Signer(Protocol):
    """Sign and verify byte messages with string-encoded keys and signatures."""

    def sign(self, private_key: str, message: bytes) -> str:
        """Return the signature of message under private_key."""
        ...

    def verify(self, public_key: str, message: bytes, signature: str) -> bool:
        """Return True if signature is valid for message under public_key."""
        ...


@runtime_checkable
class Codec(Protocol):
    """Reversible encoding between structured values and bytes.

    Applied uniformly to records, table indexes, and the signed items
    wrapping either. encode() must be deterministic: the same value
    always encodes to the same bytes, or signatures cannot be verified.
    """

    def encode(self, obj: Any) -> bytes: ...

    def decode(self, data: bytes) -> Any: ...
