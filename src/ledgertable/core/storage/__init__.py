"""Reference StorageClient implementations."""

from ledgertable.core.storage.filesystem import FilesystemStorageClient
from ledgertable.core.storage.memory import MemoryStorageClient

__all__ = [
    "FilesystemStorageClient",
    "MemoryStorageClient",
]
