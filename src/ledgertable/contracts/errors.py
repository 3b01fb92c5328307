# src/ledgertable/contracts/errors.py
"""Exception hierarchy for table and storage operations.

Every error raised by the table derives from StorageError so callers can
catch the whole family in one place. Errors that concern a specific bundle
carry its address for diagnosis.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for table and storage failures.

    Attributes:
        address: Bundle hash or storage address implicated, if any
    """

    def __init__(self, message: str, address: str | None = None) -> None:
        super().__init__(message)
        self.address = address

    def __str__(self) -> str:
        message = super().__str__()
        if self.address:
            return f"{message} (address={self.address})"
        return message


class ConfigurationError(StorageError):
    """Raised when the table cannot function at all.

    Missing table configuration, missing data/index addresses, or an
    unavailable signing capability. Never retried.
    """


class InvalidSignatureError(StorageError):
    """Raised when the table index fails signature validation.

    An unauthenticated index cannot drive further mutation, so the calling
    operation is aborted rather than treating the table as empty.
    """


class IndexConflictError(StorageError):
    """Raised when a compare-and-swap index update keeps losing the race.

    Only raised when the configuration provider supports compare_and_save
    and every retry observed a different index pointer.
    """

    def __init__(self, message: str, address: str | None = None, *, attempts: int) -> None:
        super().__init__(message, address)
        self.attempts = attempts


class IntegrityError(StorageError):
    """Raised when stored bytes don't match their recorded fragment hashes.

    Indicates corruption or tampering below the table layer, or a write
    that would overwrite an existing bundle. Loads log and skip the bundle.
    """


class CodecError(StorageError):
    """Raised when a payload cannot be encoded or decoded."""
