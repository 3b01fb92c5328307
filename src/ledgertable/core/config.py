# src/ledgertable/core/config.py
"""
Configuration schema and loading for ledgertable.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

_REDACTED = "***"


class StorageSettings(BaseModel):
    """Substrate backend configuration."""

    model_config = {"frozen": True}

    backend: Literal["filesystem", "memory"] = Field(default="filesystem", description="Storage backend type")
    base_path: Path = Field(
        default=Path(".ledgertable/bundles"),
        description="Base path for filesystem backend",
    )


class SigningSettings(BaseModel):
    """Signing scheme and keys.

    For ed25519 the public key is derived from the private key when only
    the private key is given. For hmac-sha256 both keys are the same
    shared secret, so public_key defaults to private_key.
    """

    model_config = {"frozen": True}

    scheme: Literal["ed25519", "hmac-sha256"] = Field(default="ed25519", description="Signature scheme")
    private_key: str | None = Field(default=None, description="Signing key; required for writes")
    public_key: str | None = Field(default=None, description="Verification key")

    @model_validator(mode="after")
    def validate_some_key(self) -> "SigningSettings":
        """A table without any key can neither read nor write."""
        if not self.private_key and not self.public_key:
            raise ValueError("signing requires private_key, public_key, or both")
        return self


class TableSettings(BaseModel):
    """Behaviour of SignedDataTable instances."""

    model_config = {"frozen": True}

    ttl_ms: int = Field(default=60_000, gt=0, description="Maximum gap between signing and attachment")
    max_index_retries: int = Field(
        default=3,
        ge=0,
        description="Extra compare-and-swap attempts when the index pointer moved concurrently",
    )
    index_retry_delay: float = Field(
        default=0.05,
        ge=0,
        description="First backoff in seconds between compare-and-swap attempts, doubled per retry",
    )


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")
    json_output: bool = Field(default=False, description="Emit JSON log lines")


class LedgerTableSettings(BaseModel):
    """Top-level configuration.

    Example YAML:
        storage:
          backend: filesystem
          base_path: ./data/bundles
        tables_file: ./data/tables.yaml
        signing:
          scheme: ed25519
          private_key: ${LEDGERTABLE_PRIVATE_KEY}
        table:
          ttl_ms: 60000
    """

    model_config = {"frozen": True}

    signing: SigningSettings = Field(description="Signing scheme and keys")
    storage: StorageSettings = Field(default_factory=StorageSettings)
    tables_file: Path = Field(
        default=Path(".ledgertable/tables.yaml"),
        description="YAML file holding per-table configuration",
    )
    table: TableSettings = Field(default_factory=TableSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values."""

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            # No env var and no default - keep original (will likely fail validation)
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    # Dynaconf keeps the case of nested keys set via LEDGERTABLE_SECTION__KEY
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> LedgerTableSettings:
    """Load settings from YAML file with environment variable overrides.

    Precedence:
    1. Environment variables (LEDGERTABLE_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: LEDGERTABLE_SIGNING__PRIVATE_KEY for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given and doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="LEDGERTABLE",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _expand_env_vars(raw_config)

    return LedgerTableSettings(**raw_config)


def redacted_settings(settings: LedgerTableSettings) -> dict[str, Any]:
    """Settings as a JSON-safe dict with key material masked, for display and logs."""
    data = settings.model_dump(mode="json")
    for field in ("private_key", "public_key"):
        if data["signing"][field]:
            data["signing"][field] = _REDACTED
    return data
