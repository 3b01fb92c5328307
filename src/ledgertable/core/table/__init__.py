"""Signed table: signed items, index operations, and the table orchestrator."""

from ledgertable.core.table.signed_item import (
    TIMESTAMP_TTL_MS,
    create_signed_item,
    validate_signed_item,
)
from ledgertable.core.table.signed_table import (
    DEFAULT_INDEX_RETRY_DELAY,
    DEFAULT_MAX_INDEX_RETRIES,
    INDEX_TAG,
    SignedDataTable,
)

__all__ = [
    "DEFAULT_INDEX_RETRY_DELAY",
    "DEFAULT_MAX_INDEX_RETRIES",
    "INDEX_TAG",
    "TIMESTAMP_TTL_MS",
    "SignedDataTable",
    "create_signed_item",
    "validate_signed_item",
]
