# src/ledgertable/core/__init__.py
"""Core infrastructure: signed table, codec, signers, storage, providers, configuration, logging."""

from ledgertable.core.canonical import CanonicalJsonCodec, canonical_json
from ledgertable.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from ledgertable.core.config import (
    LedgerTableSettings,
    LoggingSettings,
    SigningSettings,
    StorageSettings,
    TableSettings,
    load_settings,
)
from ledgertable.core.logging import configure_logging, get_logger
from ledgertable.core.providers import MemoryTableConfigProvider, YamlTableConfigProvider
from ledgertable.core.security import Ed25519Signer, HmacSigner, generate_ed25519_keypair
from ledgertable.core.storage import FilesystemStorageClient, MemoryStorageClient
from ledgertable.core.table import INDEX_TAG, SignedDataTable

__all__ = [
    "DEFAULT_CLOCK",
    "INDEX_TAG",
    "CanonicalJsonCodec",
    "Clock",
    "Ed25519Signer",
    "FilesystemStorageClient",
    "HmacSigner",
    "LedgerTableSettings",
    "LoggingSettings",
    "MemoryStorageClient",
    "MemoryTableConfigProvider",
    "MockClock",
    "SignedDataTable",
    "SigningSettings",
    "StorageSettings",
    "SystemClock",
    "TableSettings",
    "YamlTableConfigProvider",
    "canonical_json",
    "configure_logging",
    "generate_ed25519_keypair",
    "get_logger",
    "load_settings",
]
