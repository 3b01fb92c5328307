"""CLI helper functions for wiring tables from settings."""

from __future__ import annotations

from dataclasses import dataclass

from ledgertable.contracts import ConfigurationError, Signer, StorageClient
from ledgertable.core.config import LedgerTableSettings
from ledgertable.core.providers import YamlTableConfigProvider
from ledgertable.core.security import derive_ed25519_public_key, get_signer
from ledgertable.core.storage import FilesystemStorageClient, MemoryStorageClient
from ledgertable.core.table import SignedDataTable


@dataclass(frozen=True)
class TableEnvironment:
    """Collaborators shared by every table opened from one settings object."""

    storage_client: StorageClient
    config_provider: YamlTableConfigProvider
    signer: Signer
    public_key: str
    private_key: str | None

    def open_table(self, table_name: str, settings: LedgerTableSettings) -> SignedDataTable[object]:
        return SignedDataTable(
            self.storage_client,
            self.config_provider,
            table_name,
            self.public_key,
            self.private_key,
            signer=self.signer,
            ttl_ms=settings.table.ttl_ms,
            max_index_retries=settings.table.max_index_retries,
            index_retry_delay=settings.table.index_retry_delay,
        )


def resolve_keys(settings: LedgerTableSettings) -> tuple[str, str | None]:
    """Work out (public_key, private_key) for the configured scheme.

    Raises:
        ConfigurationError: If no key is configured or an ed25519 private key
            is malformed
    """
    signing = settings.signing
    if signing.public_key:
        return signing.public_key, signing.private_key
    if not signing.private_key:
        raise ConfigurationError("Signing settings need a private_key, a public_key, or both")
    if signing.scheme == "ed25519":
        return derive_ed25519_public_key(signing.private_key), signing.private_key
    return signing.private_key, signing.private_key


def build_environment(settings: LedgerTableSettings) -> TableEnvironment:
    """Instantiate storage, config provider and signer from settings."""
    storage_client: StorageClient
    if settings.storage.backend == "memory":
        storage_client = MemoryStorageClient()
    else:
        storage_client = FilesystemStorageClient(base_path=settings.storage.base_path)

    public_key, private_key = resolve_keys(settings)
    return TableEnvironment(
        storage_client=storage_client,
        config_provider=YamlTableConfigProvider(settings.tables_file),
        signer=get_signer(settings.signing.scheme),
        public_key=public_key,
        private_key=private_key,
    )
