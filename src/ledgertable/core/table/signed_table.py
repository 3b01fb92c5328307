# src/ledgertable/core/table/signed_table.py
"""SignedDataTable: mutable table semantics over an append-only substrate.

Records are written as signed bundles to the table's data address and
never touched again. Table membership lives in a signed index bundle
written to the index address; the table configuration holds a single
pointer (index_bundle_hash) to the latest index.

Every mutation is a read-modify-write of that pointer:

    read index -> compute new index -> write index bundle -> swap pointer

With a plain TableConfigProvider the swap is an overwrite and the last
writer wins: a concurrent writer's records stay retrievable by address
but drop out of the index. With a VersionedTableConfigProvider the swap
is compare-and-swap; on conflict the table reloads the pointer, re-reads
the index and re-applies the same change after a jittered backoff, up to
max_index_retries times.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ledgertable.contracts.errors import (
    CodecError,
    ConfigurationError,
    IndexConflictError,
    InvalidSignatureError,
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
from ledgertable.core.canonical import CanonicalJsonCodec
from ledgertable.core.clock import DEFAULT_CLOCK, Clock
from ledgertable.core.logging import get_logger
from ledgertable.core.table.index import append_ids, remove_ids, replace_id, validate_index
from ledgertable.core.table.signed_item import TIMESTAMP_TTL_MS, create_signed_item, validate_signed_item

__all__ = ["DEFAULT_INDEX_RETRY_DELAY", "DEFAULT_MAX_INDEX_RETRIES", "INDEX_TAG", "SignedDataTable"]

T = TypeVar("T")

# Reserved tag for index bundles; data writes may not use it
INDEX_TAG = "INDEX"

DEFAULT_MAX_INDEX_RETRIES = 3

# First backoff after a compare-and-swap conflict, in seconds; doubles per retry
DEFAULT_INDEX_RETRY_DELAY = 0.05
MAX_INDEX_RETRY_DELAY = 2.0

IndexMutation = Callable[[TableIndex], bool]


def _check_tag(tag: str) -> None:
    if tag == INDEX_TAG:
        raise ValueError(f"Tag {INDEX_TAG!r} is reserved for index bundles")


class _IndexConflict(Exception):
    """Another writer moved the index pointer between read and swap."""

    def __init__(self, expected_hash: str | None) -> None:
        super().__init__(expected_hash)
        self.expected_hash = expected_hash


class SignedDataTable(Generic[T]):
    """A table of signed records with a signed index.

    Args:
        storage_client: Substrate client for bundle reads and writes
        config_provider: Source of the table's TableConfig
        table_name: Key passed to the config provider
        public_key: Key used to verify records and indexes
        private_key: Key used to sign writes. Read-only tables may omit it.
        signer: Sign/verify capability
        codec: Record encoding, canonical JSON by default
        clock: Source of signing timestamps
        record_model: Optional pydantic model retrieved records are validated into
        ttl_ms: Maximum gap between signing and attachment
        max_index_retries: Extra attempts after a compare-and-swap conflict
        index_retry_delay: First backoff in seconds after a conflict, jittered and
            doubled on each further retry
        progress_callback: Receives Progress for each network round trip
        logger: structlog logger, module logger by default
    """

    def __init__(
        self,
        storage_client: StorageClient,
        config_provider: TableConfigProvider,
        table_name: str,
        public_key: str,
        private_key: str | None = None,
        *,
        signer: Signer | None,
        codec: Codec | None = None,
        clock: Clock = DEFAULT_CLOCK,
        record_model: type[BaseModel] | None = None,
        ttl_ms: int = TIMESTAMP_TTL_MS,
        max_index_retries: int = DEFAULT_MAX_INDEX_RETRIES,
        index_retry_delay: float = DEFAULT_INDEX_RETRY_DELAY,
        progress_callback: ProgressCallback | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if max_index_retries < 0:
            raise ValueError(f"max_index_retries must be >= 0, got {max_index_retries}")
        if index_retry_delay < 0:
            raise ValueError(f"index_retry_delay must be >= 0, got {index_retry_delay}")
        self._storage_client = storage_client
        self._config_provider = config_provider
        self._table_name = table_name
        self._public_key = public_key
        self._private_key = private_key
        self._signer = signer
        self._codec: Codec = codec if codec is not None else CanonicalJsonCodec()
        self._clock = clock
        self._record_model = record_model
        self._ttl_ms = ttl_ms
        self._max_index_retries = max_index_retries
        self._index_retry_delay = index_retry_delay
        self._progress_callback = progress_callback
        self._logger = (logger if logger is not None else get_logger(__name__)).bind(table=table_name)
        self._supports_cas = isinstance(config_provider, VersionedTableConfigProvider)
        self._config: TableConfig | None = None

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def config(self) -> TableConfig | None:
        """Cached configuration, None until the first operation loads it."""
        return self._config

    def set_progress_callback(self, progress_callback: ProgressCallback | None) -> None:
        self._progress_callback = progress_callback

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    async def index(self) -> TableIndex | None:
        """Return the current index, or None if the table has none.

        Raises:
            InvalidSignatureError: If the index bundle fails validation
        """
        self._logger.debug("Reading index")
        await self._load_config()
        return await self._read_index(report=True)

    async def clear_index(self) -> None:
        """Forget all records by writing an empty index.

        Record bundles are not touched; the substrate never reclaims them.
        """
        self._logger.debug("Clearing index")
        await self._load_config()
        await self._mutate_index(lambda index: True, start_empty=True)
        self._logger.info("Index cleared")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def store(self, record: T, tag: str = "") -> StoredRecord[T]:
        """Sign and store a record, appending it to the index.

        Raises:
            ValueError: If tag is the reserved index tag
        """
        _check_tag(tag)
        self._logger.debug("Storing record", tag=tag)
        await self._load_config()

        self._update_progress(0, 1, "Storing Item")
        item = await self._write_record(record, tag)
        self._update_progress(1, 1, "Storing Item")

        await self._mutate_index(lambda index: append_ids(index, [item.bundle_hash]))

        self._logger.info("Stored record", address=item.bundle_hash)
        return StoredRecord(record=record, address=item.bundle_hash, fragments=item.transaction_hashes)

    async def store_multiple(
        self,
        records: Sequence[T],
        tags: Sequence[str] | None = None,
        clear_index: bool = False,
    ) -> list[StoredRecord[T]]:
        """Store several records with a single index write.

        Args:
            records: Records to store, in index order
            tags: Optional tag per record, matched by position
            clear_index: Start from an empty index, dropping current members

        Raises:
            ValueError: If tags is given with a different length than records,
                or any tag is the reserved index tag
        """
        if tags is not None and len(tags) != len(records):
            raise ValueError(f"Got {len(tags)} tags for {len(records)} records")
        for tag in tags or ():
            _check_tag(tag)
        self._logger.debug("Storing records", count=len(records), clear_index=clear_index)
        await self._load_config()

        total = len(records)
        stored: list[StoredRecord[T]] = []
        self._update_progress(0, total, "Storing Items")
        for position, record in enumerate(records):
            item = await self._write_record(record, tags[position] if tags is not None else "")
            stored.append(StoredRecord(record=record, address=item.bundle_hash, fragments=item.transaction_hashes))
            self._update_progress(position + 1, total, "Storing Items")

        addresses = [result.address for result in stored]
        await self._mutate_index(
            lambda index: append_ids(index, addresses) or clear_index,
            start_empty=clear_index,
        )

        self._logger.info("Stored records", count=len(stored))
        return stored

    async def update(self, original_id: str, record: T, tag: str = "") -> StoredRecord[T]:
        """Store a new version of a record.

        The new address takes original_id's position in the index. If
        original_id is not indexed, the new address is appended.

        Raises:
            ValueError: If tag is the reserved index tag
        """
        _check_tag(tag)
        self._logger.debug("Updating record", original_id=original_id, tag=tag)
        await self._load_config()

        self._update_progress(0, 1, "Updating Item")
        item = await self._write_record(record, tag)
        self._update_progress(1, 1, "Updating Item")

        await self._mutate_index(lambda index: replace_id(index, original_id, item.bundle_hash))

        self._logger.info("Updated record", original_id=original_id, address=item.bundle_hash)
        return StoredRecord(record=record, address=item.bundle_hash, fragments=item.transaction_hashes)

    async def remove(self, record_id: str) -> bool:
        """Remove a record from the index.

        Returns:
            True if the record was indexed and has been removed. Nothing is
            written when it was not indexed.
        """
        self._logger.debug("Removing record", record_id=record_id)
        removed = await self._remove_ids([record_id])
        if removed:
            self._logger.info("Removed record", record_id=record_id)
        else:
            self._logger.info("Nothing to remove", record_id=record_id)
        return bool(removed)

    async def remove_multiple(self, record_ids: Sequence[str]) -> list[str]:
        """Remove several records with at most one index write.

        Returns:
            The ids that were indexed and have been removed
        """
        self._logger.debug("Removing records", count=len(record_ids))
        removed = await self._remove_ids(record_ids)
        missing = len(record_ids) - len(removed)
        self._logger.info("Removed records", removed=len(removed), not_indexed=missing)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def retrieve(self, record_id: str) -> T | None:
        """Load and authenticate a single record.

        Returns:
            The record, or None if it was not found or failed validation
        """
        self._logger.debug("Retrieving record", record_id=record_id)
        await self._load_config()

        self._update_progress(0, 1, "Retrieving Item")
        items = await self._storage_client.load([record_id])
        self._update_progress(1, 1, "Retrieving Item")

        if not items:
            self._logger.info("Record not found", record_id=record_id)
            return None

        valid, record = self._unwrap_record(items[0])
        return record if valid else None

    async def retrieve_multiple(self, record_ids: Sequence[str] | None = None) -> list[T]:
        """Load several records in one storage call.

        Args:
            record_ids: Ids to load. None loads every record in the index.

        Returns:
            Records that were found and validated. Invalid records are
            skipped so one bad bundle doesn't deny access to the rest.

        Raises:
            TypeError: If record_ids contains non-string ids
            InvalidSignatureError: If ids come from an index that fails validation
        """
        await self._load_config()
        if record_ids is None:
            load_ids = await self._read_index(report=True) or []
        else:
            load_ids = list(record_ids)
            if not all(isinstance(record_id, str) for record_id in load_ids):
                raise TypeError("record_ids must be a sequence of str")
        self._logger.debug("Retrieving records", count=len(load_ids))

        if not load_ids:
            return []

        total = len(load_ids)
        self._update_progress(0, total, "Retrieving Items")
        items = await self._storage_client.load(load_ids)
        self._update_progress(total, total, "Retrieving Items")

        records: list[T] = []
        for item in items:
            valid, record = self._unwrap_record(item)
            if valid:
                records.append(record)

        self._logger.info("Retrieved records", requested=total, returned=len(records))
        return records

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_config(self) -> TableConfig:
        if self._config is None:
            self._logger.debug("Loading table configuration")
            loaded: Any = await self._config_provider.load(self._table_name)
            if loaded is None:
                raise ConfigurationError(
                    f"No configuration for table {self._table_name!r}; it must contain at least index_address and data_address"
                )
            if not isinstance(loaded, TableConfig):
                try:
                    loaded = TableConfig.model_validate(loaded)
                except ValidationError as e:
                    raise ConfigurationError(
                        f"Configuration for table {self._table_name!r} must contain at least index_address and data_address: {e}"
                    ) from e
            self._config = loaded
            self._logger.debug("Loaded table configuration", index_bundle_hash=loaded.index_bundle_hash)
        return self._config

    async def _reload_config(self) -> TableConfig:
        self._config = None
        return await self._load_config()

    def _require_signer(self) -> Signer:
        if self._signer is None:
            raise ConfigurationError("No signer configured; signatures cannot be verified")
        return self._signer

    def _validate(self, signed: SignedItem[Any], attachment_timestamp: int) -> bool:
        return validate_signed_item(
            signed,
            attachment_timestamp,
            self._public_key,
            signer=self._require_signer(),
            codec=self._codec,
            ttl_ms=self._ttl_ms,
        )

    def _sign(self, data: Any) -> bytes:
        signed = create_signed_item(
            data,
            self._private_key,
            signer=self._signer,
            codec=self._codec,
            clock=self._clock,
        )
        return self._codec.encode(signed.to_dict())

    def _decode_signed(self, data: bytes) -> SignedItem[Any]:
        return SignedItem.from_dict(self._codec.decode(data))

    async def _write_record(self, record: T, tag: str) -> StorageItem:
        config = await self._load_config()
        return await self._storage_client.save(config.data_address, self._sign(record), tag)

    def _unwrap_record(self, item: StorageItem) -> tuple[bool, Any]:
        """Decode and authenticate a record bundle.

        Returns:
            (True, record) on success, (False, None) if the bundle must be
            treated as absent
        """
        try:
            signed = self._decode_signed(item.data)
        except (CodecError, ValueError) as e:
            self._logger.warning("Record payload could not be decoded", address=item.bundle_hash, error=str(e))
            return False, None

        if not self._validate(signed, item.attachment_timestamp):
            self._logger.warning("Record signature was not valid", address=item.bundle_hash)
            return False, None

        if self._record_model is None:
            return True, signed.data
        try:
            return True, self._record_model.model_validate(signed.data)
        except ValidationError as e:
            self._logger.warning(
                "Record does not match model",
                address=item.bundle_hash,
                model=self._record_model.__name__,
                error=str(e),
            )
            return False, None

    async def _read_index(self, *, report: bool) -> TableIndex | None:
        config = await self._load_config()
        index_hash = config.index_bundle_hash
        if not index_hash:
            self._logger.debug("No index written yet")
            return None

        if report:
            self._update_progress(0, 1, "Retrieving Index")
        items = await self._storage_client.load([index_hash])
        if report:
            self._update_progress(1, 1, "Retrieving Index")

        if not items:
            self._logger.warning("Index bundle not found", address=index_hash)
            return None

        item = items[0]
        try:
            signed = self._decode_signed(item.data)
        except (CodecError, ValueError) as e:
            raise InvalidSignatureError("Index payload could not be decoded", index_hash) from e

        if not self._validate(signed, item.attachment_timestamp):
            self._logger.warning("Index signature was not valid", address=index_hash)
            raise InvalidSignatureError("Index signature was not valid", index_hash)

        try:
            return validate_index(signed.data)
        except ValueError as e:
            raise InvalidSignatureError("Index payload is not a list of record ids", index_hash) from e

    async def _mutate_index(self, mutate: IndexMutation, *, start_empty: bool = False) -> TableIndex | None:
        """Apply mutate to the current index and persist the result.

        mutate edits the list in place and returns whether anything
        changed; unchanged indexes are not written. On a compare-and-swap
        conflict the config is reloaded after a jittered backoff and mutate
        is re-applied to the freshly read index.

        Returns:
            The persisted index, or None if nothing changed

        Raises:
            IndexConflictError: If every compare-and-swap attempt conflicted
        """
        try:
            async for attempt_state in AsyncRetrying(
                stop=stop_after_attempt(self._max_index_retries + 1),
                wait=wait_exponential_jitter(
                    initial=self._index_retry_delay,
                    max=MAX_INDEX_RETRY_DELAY,
                    jitter=self._index_retry_delay,
                ),
                retry=retry_if_exception_type(_IndexConflict),
                before_sleep=self._log_index_conflict,
                reraise=False,  # RetryError becomes IndexConflictError below
            ):
                with attempt_state:
                    if attempt_state.retry_state.attempt_number > 1:
                        await self._reload_config()
                    return await self._try_mutate_index(mutate, start_empty=start_empty)
        except RetryError as e:
            conflict = e.last_attempt.exception()
            expected_hash = conflict.expected_hash if isinstance(conflict, _IndexConflict) else None
            raise IndexConflictError(
                f"Index for table {self._table_name!r} changed concurrently on every attempt",
                expected_hash,
                attempts=e.last_attempt.attempt_number,
            ) from e

        # AsyncRetrying always returns or raises
        raise RuntimeError("Unexpected state in index retry loop")  # pragma: no cover

    async def _try_mutate_index(self, mutate: IndexMutation, *, start_empty: bool) -> TableIndex | None:
        config = await self._load_config()
        expected_hash = config.index_bundle_hash
        index: TableIndex = [] if start_empty else (await self._read_index(report=False) or [])

        if not mutate(index):
            return None
        if not await self._save_index(index, expected_hash):
            raise _IndexConflict(expected_hash)
        return index

    def _log_index_conflict(self, retry_state: RetryCallState) -> None:
        conflict = retry_state.outcome.exception() if retry_state.outcome is not None else None
        self._logger.info(
            "Index changed concurrently, retrying",
            attempt=retry_state.attempt_number,
            expected=conflict.expected_hash if isinstance(conflict, _IndexConflict) else None,
            delay=retry_state.upcoming_sleep,
        )

    async def _save_index(self, index: TableIndex, expected_hash: str | None) -> bool:
        """Write index as a new bundle and swap the config pointer to it.

        Returns:
            False if a compare-and-swap provider rejected the swap
        """
        config = await self._load_config()
        payload = self._sign(index)

        self._update_progress(0, 1, "Storing Index")
        item = await self._storage_client.save(config.index_address, payload, INDEX_TAG)
        new_config = config.model_copy(update={"index_bundle_hash": item.bundle_hash})

        if self._supports_cas:
            provider: VersionedTableConfigProvider = self._config_provider  # type: ignore[assignment]
            if not await provider.compare_and_save(self._table_name, expected_hash, new_config):
                return False
        else:
            await self._config_provider.save(self._table_name, new_config)

        self._config = new_config
        self._logger.debug("Saved index", address=item.bundle_hash, size=len(index))
        self._update_progress(1, 1, "Storing Index")
        return True

    def _update_progress(self, num_items: int, total_items: int, status: str) -> None:
        if self._progress_callback is None:
            return
        percent = math.ceil(num_items / total_items * 100) if total_items > 0 else 100
        self._progress_callback(
            Progress(num_items=num_items, total_items=total_items, percent=percent, status=status)
        )

    async def _remove_ids(self, record_ids: Sequence[str]) -> list[str]:
        removed: list[str] = []

        def mutate(index: TableIndex) -> bool:
            removed[:] = remove_ids(index, record_ids)
            return bool(removed)

        await self._load_config()
        await self._mutate_index(mutate)
        return removed
