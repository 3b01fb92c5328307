# src/ledgertable/contracts/table.py
"""Table-level contracts: configuration, signed items, results, progress.

TableConfig is the single versioned reference cell for a table. Snapshots
are frozen; every index write produces a new snapshot with a new
index_bundle_hash rather than mutating the cached one.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

U = TypeVar("U")

# Ordered bundle hashes of the records currently in the table
TableIndex = list[str]


class TableConfig(BaseModel):
    """Per-table storage locations and the current index pointer.

    data_address and index_address are provisioned out-of-band and never
    change. index_bundle_hash is rewritten after every index write; None
    means no index has been written and the table is empty.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    data_address: str = Field(min_length=1, description="Collection address for record bundles")
    index_address: str = Field(min_length=1, description="Collection address for index bundles")
    index_bundle_hash: str | None = Field(default=None, description="Bundle hash of the latest index")

    @property
    def has_index(self) -> bool:
        """Whether an index has ever been written for this table."""
        return bool(self.index_bundle_hash)


@runtime_checkable
class TableConfigProvider(Protocol):
    """Loads and persists TableConfig by table name."""

    async def load(self, table_name: str) -> TableConfig | None:
        """Return the stored config, or None if the table is unknown."""
        ...

    async def save(self, table_name: str, config: TableConfig) -> None:
        """Persist config, overwriting any previous value."""
        ...


@runtime_checkable
class VersionedTableConfigProvider(TableConfigProvider, Protocol):
    """Provider that can swap the index pointer atomically.

    Tables detect this capability and switch from last-writer-wins to
    optimistic compare-and-swap with bounded retry.
    """

    async def compare_and_save(
        self,
        table_name: str,
        expected_index_bundle_hash: str | None,
        config: TableConfig,
    ) -> bool:
        """Persist config only if the stored index pointer is still expected.

        Returns:
            True if saved, False if another writer moved the pointer first
        """
        ...


@dataclass(frozen=True, slots=True)
class SignedItem(Generic[U]):
    """Data wrapped with a signature and its creation time.

    The signature always covers codec.encode(data) followed by the
    decimal timestamp. A changed payload needs a new SignedItem.

    Attributes:
        data: Wrapped payload (a record or a TableIndex)
        signature: Signer-specific string encoding
        timestamp: Milliseconds since epoch at signing time
    """

    data: U
    signature: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "signature": self.signature, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, obj: Any) -> SignedItem[Any]:
        """Build from a decoded payload.

        Raises:
            ValueError: If obj is not a mapping with exactly the expected keys
        """
        if not isinstance(obj, dict) or set(obj) != {"data", "signature", "timestamp"}:
            raise ValueError(f"Not a signed item: expected keys data/signature/timestamp, got {type(obj).__name__}")
        return cls(data=obj["data"], signature=obj["signature"], timestamp=obj["timestamp"])


@dataclass(frozen=True, slots=True)
class StoredRecord(Generic[U]):
    """Result of a successful store or update.

    The caller's record is returned untouched alongside the write outputs.

    Attributes:
        record: The record as supplied by the caller
        address: Bundle hash of the new record; use it as the record id
        fragments: Transaction hashes of the bundle fragments
    """

    record: U
    address: str
    fragments: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Progress:
    """Advisory progress for slow network round trips."""

    num_items: int
    total_items: int
    percent: int
    status: str


ProgressCallback = Callable[[Progress], None]
