"""Security utilities for ledgertable.

Exports:
- Ed25519Signer, HmacSigner: Signer implementations
- generate_ed25519_keypair, derive_ed25519_public_key: Key helpers
- get_signer: Look up a signer by scheme name
"""

from ledgertable.core.security.signing import (
    SIGNERS,
    Ed25519Signer,
    HmacSigner,
    derive_ed25519_public_key,
    generate_ed25519_keypair,
    get_signer,
)

__all__ = [
    "SIGNERS",
    "Ed25519Signer",
    "HmacSigner",
    "derive_ed25519_public_key",
    "generate_ed25519_keypair",
    "get_signer",
]
