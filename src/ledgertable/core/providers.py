# src/ledgertable/core/providers.py
"""Table configuration providers.

Both providers implement VersionedTableConfigProvider, so tables using
them get compare-and-swap index updates. The swap is atomic within one
process only; the YAML provider does not lock across processes.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ledgertable.contracts.errors import ConfigurationError
from ledgertable.contracts.table import TableConfig

__all__ = ["MemoryTableConfigProvider", "YamlTableConfigProvider"]


class MemoryTableConfigProvider:
    """Dict-backed provider, mainly for tests and embedding."""

    def __init__(self, configs: dict[str, TableConfig] | None = None) -> None:
        self._configs: dict[str, TableConfig] = dict(configs or {})
        self._lock = asyncio.Lock()
        self.save_count = 0

    async def load(self, table_name: str) -> TableConfig | None:
        await asyncio.sleep(0)
        return self._configs.get(table_name)

    async def save(self, table_name: str, config: TableConfig) -> None:
        async with self._lock:
            self._configs[table_name] = config
            self.save_count += 1

    async def compare_and_save(
        self,
        table_name: str,
        expected_index_bundle_hash: str | None,
        config: TableConfig,
    ) -> bool:
        async with self._lock:
            current = self._configs.get(table_name)
            current_hash = current.index_bundle_hash if current is not None else None
            if (current_hash or None) != (expected_index_bundle_hash or None):
                return False
            self._configs[table_name] = config
            self.save_count += 1
            return True


class YamlTableConfigProvider:
    """Provider persisting every table's config in one YAML file.

    File layout:
        tables:
          customers:
            data_address: customers-data
            index_address: customers-index
            index_bundle_hash: 3f2a...
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    async def load(self, table_name: str) -> TableConfig | None:
        return await asyncio.to_thread(self._load_sync, table_name)

    async def save(self, table_name: str, config: TableConfig) -> None:
        await asyncio.to_thread(self._save_sync, table_name, config, None, False)

    async def compare_and_save(
        self,
        table_name: str,
        expected_index_bundle_hash: str | None,
        config: TableConfig,
    ) -> bool:
        return await asyncio.to_thread(self._save_sync, table_name, config, expected_index_bundle_hash, True)

    def table_names(self) -> list[str]:
        with self._lock:
            return sorted(self._read_tables())

    def _load_sync(self, table_name: str) -> TableConfig | None:
        with self._lock:
            raw = self._read_tables().get(table_name)
        if raw is None:
            return None
        try:
            return TableConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration for table {table_name!r} in {self.path}: {e}") from e

    def _save_sync(
        self,
        table_name: str,
        config: TableConfig,
        expected_index_bundle_hash: str | None,
        compare: bool,
    ) -> bool:
        with self._lock:
            tables = self._read_tables()
            if compare:
                current = tables.get(table_name) or {}
                if (current.get("index_bundle_hash") or None) != (expected_index_bundle_hash or None):
                    return False
            tables[table_name] = config.model_dump()
            self._write_tables(tables)
            return True

    def _read_tables(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with self.path.open(encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}
        if not isinstance(document, dict) or not isinstance(document.get("tables", {}), dict):
            raise ConfigurationError(f"Table config file {self.path} must be a mapping with a 'tables' mapping")
        tables: dict[str, Any] = document.get("tables") or {}
        return tables

    def _write_tables(self, tables: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".tmp-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump({"tables": tables}, f, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
