# src/ledgertable/core/security/signing.py
"""Signers for table records and indexes.

Two schemes are provided:

- Ed25519Signer: asymmetric. Writers hold the private key; readers only
  need the public key. Keys are hex-encoded raw 32-byte values.
- HmacSigner: symmetric HMAC-SHA256. The same secret is passed as both
  "private" and "public" key. Suitable for single-party tables and tests.

Usage:
    from ledgertable.core.security import Ed25519Signer, generate_ed25519_keypair

    private_key, public_key = generate_ed25519_keypair()
    signer = Ed25519Signer()
    signature = signer.sign(private_key, b"message")
    assert signer.verify(public_key, b"message", signature)
"""

from __future__ import annotations

import hashlib
import hmac

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from ledgertable.contracts.errors import ConfigurationError


def generate_ed25519_keypair() -> tuple[str, str]:
    """Generate a fresh Ed25519 key pair.

    Returns:
        (private_key_hex, public_key_hex)
    """
    private_key = ed25519.Ed25519PrivateKey.generate()
    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return private_bytes.hex(), public_bytes.hex()


def derive_ed25519_public_key(private_key: str) -> str:
    """Return the hex public key for a hex private key.

    Raises:
        ConfigurationError: If private_key is not a valid Ed25519 key
    """
    key = _load_private_key(private_key)
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    ).hex()


def _load_private_key(private_key: str) -> ed25519.Ed25519PrivateKey:
    try:
        return ed25519.Ed25519PrivateKey.from_private_bytes(bytes.fromhex(private_key))
    except ValueError as e:
        raise ConfigurationError("Ed25519 private key must be 32 bytes, hex encoded") from e


class Ed25519Signer:
    """Ed25519 signatures, hex encoded."""

    scheme = "ed25519"

    def sign(self, private_key: str, message: bytes) -> str:
        """Sign message.

        Raises:
            ConfigurationError: If private_key is malformed
        """
        return _load_private_key(private_key).sign(message).hex()

    def verify(self, public_key: str, message: bytes, signature: str) -> bool:
        """Verify signature. Malformed keys or signatures verify as False."""
        try:
            key = ed25519.Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key))
            key.verify(bytes.fromhex(signature), message)
        except (ValueError, InvalidSignature):
            return False
        return True


class HmacSigner:
    """HMAC-SHA256 signatures over a shared secret, hex encoded."""

    scheme = "hmac-sha256"

    def sign(self, private_key: str, message: bytes) -> str:
        """Sign message.

        Raises:
            ConfigurationError: If private_key is empty
        """
        if not private_key:
            raise ConfigurationError("HMAC signing key must not be empty")
        return hmac.new(
            key=private_key.encode("utf-8"),
            msg=message,
            digestmod=hashlib.sha256,
        ).hexdigest()

    def verify(self, public_key: str, message: bytes, signature: str) -> bool:
        if not public_key:
            return False
        expected = hmac.new(
            key=public_key.encode("utf-8"),
            msg=message,
            digestmod=hashlib.sha256,
        ).hexdigest()
        # Timing-safe comparison
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


SIGNERS: dict[str, type[Ed25519Signer] | type[HmacSigner]] = {
    Ed25519Signer.scheme: Ed25519Signer,
    HmacSigner.scheme: HmacSigner,
}


def get_signer(scheme: str) -> Ed25519Signer | HmacSigner:
    """Instantiate a signer by scheme name.

    Raises:
        ConfigurationError: If scheme is unknown
    """
    try:
        return SIGNERS[scheme]()
    except KeyError:
        raise ConfigurationError(f"Unknown signing scheme {scheme!r}; expected one of {sorted(SIGNERS)}") from None
