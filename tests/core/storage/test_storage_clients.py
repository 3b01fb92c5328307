# tests/core/storage/test_storage_clients.py
"""Tests for the append-only storage clients."""

import asyncio
import json
from pathlib import Path

import pytest

from ledgertable.contracts import IntegrityError, StorageClient
from ledgertable.core.clock import MockClock
from ledgertable.core.storage import FilesystemStorageClient, MemoryStorageClient
from ledgertable.core.storage._bundle import FRAGMENT_SIZE, split_fragments


@pytest.fixture(params=["memory", "filesystem"])
def client(request: pytest.FixtureRequest, tmp_path: Path, clock: MockClock) -> StorageClient:
    if request.param == "memory":
        return MemoryStorageClient(clock=clock)
    return FilesystemStorageClient(base_path=tmp_path / "bundles", clock=clock)


class TestSplitFragments:
    def test_empty_payload_is_one_fragment(self) -> None:
        assert split_fragments(b"") == [b""]

    def test_exact_multiple(self) -> None:
        fragments = split_fragments(b"x" * (FRAGMENT_SIZE * 2))

        assert [len(f) for f in fragments] == [FRAGMENT_SIZE, FRAGMENT_SIZE]

    def test_remainder(self) -> None:
        fragments = split_fragments(b"x" * (FRAGMENT_SIZE + 1))

        assert [len(f) for f in fragments] == [FRAGMENT_SIZE, 1]


class TestStorageClientContract:
    """Behaviour shared by every StorageClient implementation."""

    def test_satisfies_protocol(self, client: StorageClient) -> None:
        assert isinstance(client, StorageClient)

    async def test_save_then_load(self, client: StorageClient, clock: MockClock) -> None:
        item = await client.save("people-data", b"payload", "tag1")

        assert len(item.bundle_hash) == 64
        assert item.attachment_timestamp == clock.now_ms()
        assert item.address == "people-data"
        assert item.tag == "tag1"

        loaded = await client.load([item.bundle_hash])
        assert loaded == [item]

    async def test_identical_payloads_get_distinct_hashes(self, client: StorageClient) -> None:
        first = await client.save("a", b"same")
        second = await client.save("a", b"same")

        assert first.bundle_hash != second.bundle_hash

    async def test_large_payload_has_multiple_fragments(self, client: StorageClient) -> None:
        data = bytes(range(256)) * 20  # 5120 bytes

        item = await client.save("a", data)

        assert len(item.transaction_hashes) == 3
        (loaded,) = await client.load([item.bundle_hash])
        assert loaded.data == data

    async def test_load_skips_missing_and_keeps_request_order(self, client: StorageClient) -> None:
        first = await client.save("a", b"1")
        second = await client.save("a", b"2")

        loaded = await client.load([second.bundle_hash, "0" * 64, first.bundle_hash])

        assert [item.data for item in loaded] == [b"2", b"1"]

    async def test_load_nothing(self, client: StorageClient) -> None:
        assert await client.load([]) == []

    async def test_concurrent_saves(self, client: StorageClient) -> None:
        items = await asyncio.gather(*(client.save("a", str(i).encode()) for i in range(10)))

        loaded = await client.load([item.bundle_hash for item in items])
        assert [item.data for item in loaded] == [str(i).encode() for i in range(10)]


class TestMemoryStorageClient:
    async def test_counts_and_membership(self, clock: MockClock) -> None:
        client = MemoryStorageClient(clock=clock)

        item = await client.save("a", b"x", "INDEX")
        await client.load([item.bundle_hash])

        assert len(client) == 1
        assert item.bundle_hash in client
        assert client.save_count == 1
        assert client.load_count == 1
        assert client.find_by_tag("INDEX") == [item]
        assert client.find_by_tag("") == []


class TestFilesystemStorageClient:
    async def test_envelope_layout(self, tmp_path: Path, clock: MockClock) -> None:
        client = FilesystemStorageClient(base_path=tmp_path, clock=clock)

        item = await client.save("people-data", b"hello", "t")

        path = tmp_path / item.bundle_hash[:2] / f"{item.bundle_hash}.json"
        assert path.exists()
        envelope = json.loads(path.read_text())
        assert envelope["address"] == "people-data"
        assert envelope["tag"] == "t"
        assert envelope["transaction_hashes"] == list(item.transaction_hashes)
        assert "nonce" in envelope

    async def test_survives_new_client_instance(self, tmp_path: Path, clock: MockClock) -> None:
        item = await FilesystemStorageClient(base_path=tmp_path, clock=clock).save("a", b"persisted")

        (loaded,) = await FilesystemStorageClient(base_path=tmp_path, clock=clock).load([item.bundle_hash])

        assert loaded.data == b"persisted"

    @pytest.mark.parametrize("bad_hash", ["../etc/passwd", "ABC", "a" * 63, "g" * 64])
    async def test_invalid_hash_rejected_by_path_lookup(self, tmp_path: Path, bad_hash: str) -> None:
        client = FilesystemStorageClient(base_path=tmp_path)

        with pytest.raises(ValueError, match="Invalid bundle_hash"):
            client._path_for_hash(bad_hash)

    @pytest.mark.parametrize("bad_hash", ["../etc/passwd", "ABC", "a" * 63, "g" * 64])
    async def test_invalid_hash_skipped_on_load(self, tmp_path: Path, clock: MockClock, bad_hash: str) -> None:
        client = FilesystemStorageClient(base_path=tmp_path, clock=clock)
        item = await client.save("a", b"x")

        loaded = await client.load([bad_hash, item.bundle_hash])

        assert [i.bundle_hash for i in loaded] == [item.bundle_hash]

    async def test_tampered_payload_fails_integrity_check(self, tmp_path: Path, clock: MockClock) -> None:
        client = FilesystemStorageClient(base_path=tmp_path, clock=clock)
        item = await client.save("a", b"original")
        path = tmp_path / item.bundle_hash[:2] / f"{item.bundle_hash}.json"
        envelope = json.loads(path.read_text())
        envelope["data"] = "dGFtcGVyZWQ="  # "tampered"
        path.write_text(json.dumps(envelope))

        with pytest.raises(IntegrityError) as exc_info:
            client._read_envelope(item.bundle_hash, path)

        assert exc_info.value.address == item.bundle_hash

    async def test_tampered_payload_skipped_on_load(self, tmp_path: Path, clock: MockClock) -> None:
        client = FilesystemStorageClient(base_path=tmp_path, clock=clock)
        kept = await client.save("a", b"kept")
        tampered = await client.save("a", b"original")
        path = tmp_path / tampered.bundle_hash[:2] / f"{tampered.bundle_hash}.json"
        envelope = json.loads(path.read_text())
        envelope["data"] = "dGFtcGVyZWQ="
        path.write_text(json.dumps(envelope))

        loaded = await client.load([tampered.bundle_hash, kept.bundle_hash])

        assert [i.data for i in loaded] == [b"kept"]

    async def test_malformed_envelope_fails_integrity_check(self, tmp_path: Path, clock: MockClock) -> None:
        client = FilesystemStorageClient(base_path=tmp_path, clock=clock)
        item = await client.save("a", b"x")
        path = tmp_path / item.bundle_hash[:2] / f"{item.bundle_hash}.json"
        path.write_text("{not json")

        with pytest.raises(IntegrityError, match="malformed"):
            client._read_envelope(item.bundle_hash, path)
        assert await client.load([item.bundle_hash]) == []

    async def test_existing_bundle_is_never_overwritten(self, tmp_path: Path, clock: MockClock) -> None:
        client = FilesystemStorageClient(base_path=tmp_path, clock=clock)
        item = await client.save("a", b"x")

        with pytest.raises(IntegrityError, match="append-only"):
            client._write_envelope(item, "0" * 32)
