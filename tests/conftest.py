# tests/conftest.py
"""Shared test fixtures and helpers.

Tables under test share one MockClock between signing and the in-memory
substrate, so signing and attachment timestamps are identical unless a
test advances the clock in between.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from ledgertable.contracts import Progress, TableConfig
from ledgertable.core.clock import MockClock
from ledgertable.core.providers import MemoryTableConfigProvider
from ledgertable.core.security import Ed25519Signer, generate_ed25519_keypair
from ledgertable.core.storage import MemoryStorageClient
from ledgertable.core.table import SignedDataTable

TABLE_NAME = "people"


class ProgressRecorder:
    """Progress callback that keeps every report."""

    def __init__(self) -> None:
        self.events: list[Progress] = []

    def __call__(self, progress: Progress) -> None:
        self.events.append(progress)

    @property
    def statuses(self) -> list[str]:
        return [event.status for event in self.events]

    def clear(self) -> None:
        self.events.clear()


class PlainConfigProvider:
    """Provider with load/save only, so tables fall back to last-writer-wins."""

    def __init__(self, configs: dict[str, TableConfig]) -> None:
        self.configs = dict(configs)
        self.save_count = 0
        self.load_count = 0

    async def load(self, table_name: str) -> TableConfig | None:
        self.load_count += 1
        return self.configs.get(table_name)

    async def save(self, table_name: str, config: TableConfig) -> None:
        self.configs[table_name] = config
        self.save_count += 1


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture(scope="session")
def keypair() -> tuple[str, str]:
    """(private_key, public_key) shared by the session; generation is not what's under test."""
    return generate_ed25519_keypair()


@pytest.fixture
def signer() -> Ed25519Signer:
    return Ed25519Signer()


@pytest.fixture
def storage(clock: MockClock) -> MemoryStorageClient:
    return MemoryStorageClient(clock=clock)


@pytest.fixture
def table_config() -> TableConfig:
    return TableConfig(data_address="people-data", index_address="people-index")


@pytest.fixture
def provider(table_config: TableConfig) -> MemoryTableConfigProvider:
    return MemoryTableConfigProvider({TABLE_NAME: table_config})


@pytest.fixture
def plain_provider(table_config: TableConfig) -> PlainConfigProvider:
    return PlainConfigProvider({TABLE_NAME: table_config})


@pytest.fixture
def progress() -> ProgressRecorder:
    return ProgressRecorder()


@pytest.fixture
def make_table(
    storage: MemoryStorageClient,
    provider: MemoryTableConfigProvider,
    keypair: tuple[str, str],
    signer: Ed25519Signer,
    clock: MockClock,
) -> Callable[..., SignedDataTable[Any]]:
    """Factory for tables over the shared storage and provider.

    Keyword arguments override the defaults passed to SignedDataTable.
    """
    private_key, public_key = keypair

    def _make(**overrides: Any) -> SignedDataTable[Any]:
        kwargs: dict[str, Any] = {
            "storage_client": storage,
            "config_provider": provider,
            "table_name": TABLE_NAME,
            "public_key": public_key,
            "private_key": private_key,
            "signer": signer,
            "clock": clock,
        }
        kwargs.update(overrides)
        return SignedDataTable(**kwargs)

    return _make


@pytest.fixture
def table(make_table: Callable[..., SignedDataTable[Any]]) -> SignedDataTable[Any]:
    return make_table()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
