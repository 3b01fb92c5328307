"""Shared contracts for the table and its collaborators.

This package is a LEAF MODULE with no outbound dependencies to core.
Collaborators (storage clients, config providers, signers, codecs) are
specified here as Protocols; reference implementations live in core.
"""

from ledgertable.contracts.errors import (
    CodecError,
    ConfigurationError,
    IndexConflictError,
    IntegrityError,
    InvalidSignatureError,
    StorageError,
)
from ledgertable.contracts.signing import Codec, Signer
from ledgertable.contracts.storage import StorageClient, StorageItem
from ledgertable.contracts.table import (
    Progress,
    ProgressCallback,
    SignedItem,
    StoredRecord,
    TableConfig,
    TableConfigProvider,
    TableIndex,
    VersionedTableConfigProvider,
)

__all__ = [
    # errors
    "CodecError",
    "ConfigurationError",
    "IndexConflictError",
    "IntegrityError",
    "InvalidSignatureError",
    "StorageError",
    # capabilities
    "Codec",
    "Signer",
    # storage
    "StorageClient",
    "StorageItem",
    # table
    "Progress",
    "ProgressCallback",
    "SignedItem",
    "StoredRecord",
    "TableConfig",
    "TableConfigProvider",
    "TableIndex",
    "VersionedTableConfigProvider",
]
