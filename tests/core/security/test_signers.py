# tests/core/security/test_signers.py
"""Tests for Ed25519 and HMAC signers."""

import hashlib
import hmac

import pytest

from ledgertable.contracts import ConfigurationError, Signer
from ledgertable.core.security import (
    Ed25519Signer,
    HmacSigner,
    derive_ed25519_public_key,
    generate_ed25519_keypair,
    get_signer,
)


class TestEd25519Signer:
    def test_satisfies_signer_protocol(self) -> None:
        assert isinstance(Ed25519Signer(), Signer)

    def test_keypair_is_hex(self) -> None:
        private_key, public_key = generate_ed25519_keypair()

        assert len(private_key) == 64
        assert len(public_key) == 64
        bytes.fromhex(private_key)
        bytes.fromhex(public_key)

    def test_derive_public_key(self) -> None:
        private_key, public_key = generate_ed25519_keypair()

        assert derive_ed25519_public_key(private_key) == public_key

    def test_sign_and_verify(self, keypair) -> None:
        private_key, public_key = keypair
        signer = Ed25519Signer()

        signature = signer.sign(private_key, b"message")

        assert len(signature) == 128
        assert signer.verify(public_key, b"message", signature)

    def test_signature_is_deterministic(self, keypair) -> None:
        private_key, _ = keypair
        signer = Ed25519Signer()

        assert signer.sign(private_key, b"m") == signer.sign(private_key, b"m")

    def test_tampered_message_fails(self, keypair) -> None:
        private_key, public_key = keypair
        signer = Ed25519Signer()

        signature = signer.sign(private_key, b"message")

        assert not signer.verify(public_key, b"messagE", signature)

    def test_other_public_key_fails(self, keypair) -> None:
        private_key, _ = keypair
        _, other_public = generate_ed25519_keypair()
        signer = Ed25519Signer()

        assert not signer.verify(other_public, b"m", signer.sign(private_key, b"m"))

    @pytest.mark.parametrize("signature", ["", "zz", "ab" * 10, "ab" * 64])
    def test_malformed_signature_fails(self, keypair, signature: str) -> None:
        _, public_key = keypair

        assert not Ed25519Signer().verify(public_key, b"m", signature)

    @pytest.mark.parametrize("public_key", ["", "not-hex", "ab" * 8])
    def test_malformed_public_key_fails(self, keypair, public_key: str) -> None:
        private_key, _ = keypair
        signer = Ed25519Signer()

        assert not signer.verify(public_key, b"m", signer.sign(private_key, b"m"))

    @pytest.mark.parametrize("private_key", ["", "not-hex", "ab" * 8])
    def test_malformed_private_key_is_configuration_error(self, private_key: str) -> None:
        with pytest.raises(ConfigurationError):
            Ed25519Signer().sign(private_key, b"m")


class TestHmacSigner:
    def test_matches_hmac_sha256(self) -> None:
        expected = hmac.new(b"secret", b"message", hashlib.sha256).hexdigest()

        assert HmacSigner().sign("secret", b"message") == expected

    def test_verify(self) -> None:
        signer = HmacSigner()
        signature = signer.sign("secret", b"message")

        assert signer.verify("secret", b"message", signature)
        assert not signer.verify("other", b"message", signature)
        assert not signer.verify("secret", b"other", signature)

    def test_non_ascii_signature_fails_cleanly(self) -> None:
        assert not HmacSigner().verify("secret", b"m", "é" * 64)

    def test_empty_key(self) -> None:
        signer = HmacSigner()

        with pytest.raises(ConfigurationError):
            signer.sign("", b"m")
        assert not signer.verify("", b"m", "ab" * 32)


class TestGetSigner:
    def test_known_schemes(self) -> None:
        assert isinstance(get_signer("ed25519"), Ed25519Signer)
        assert isinstance(get_signer("hmac-sha256"), HmacSigner)

    def test_unknown_scheme(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown signing scheme"):
            get_signer("rsa")
