# src/ledgertable/cli.py
"""ledgertable Command Line Interface.

Entry point for the ledgertable CLI tool. Records are passed and printed
as JSON; log output goes to stderr.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import typer
from pydantic import ValidationError

from ledgertable import __version__
from ledgertable.contracts import StorageError, TableConfig
from ledgertable.core.canonical import canonical_json
from ledgertable.core.config import LedgerTableSettings, load_settings, redacted_settings
from ledgertable.core.logging import configure_logging, get_logger
from ledgertable.core.security import SIGNERS, generate_ed25519_keypair

__all__ = ["app"]

R = TypeVar("R")

app = typer.Typer(
    name="ledgertable",
    help="ledgertable: signed tables over append-only storage.",
    no_args_is_help=True,
)

logger = get_logger(__name__)


@dataclass
class CliState:
    settings_path: Path | None = None
    verbose: bool = False
    json_logs: bool = False


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"ledgertable version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    settings_path: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML (defaults plus LEDGERTABLE_* env vars if omitted).",
    ),
    no_dotenv: bool = typer.Option(False, "--no-dotenv", help="Skip loading .env file."),
    env_file: Path | None = typer.Option(None, "--env-file", help="Path to .env file (skips automatic search)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Output structured JSON logs."),
) -> None:
    """ledgertable: signed tables over append-only storage."""
    if not no_dotenv:
        _load_dotenv(env_file)
    ctx.obj = CliState(settings_path=settings_path, verbose=verbose, json_logs=json_logs)


def _fail(message: str, code: int = 1) -> typer.Exit:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    return typer.Exit(code)


def _settings(ctx: typer.Context) -> LedgerTableSettings:
    state: CliState = ctx.obj
    try:
        settings = load_settings(state.settings_path)
    except FileNotFoundError as e:
        raise _fail(str(e)) from e
    except ValidationError as e:
        raise _fail(f"Invalid settings:\n{e}") from e
    configure_logging(
        json_output=state.json_logs or settings.logging.json_output,
        level="DEBUG" if state.verbose else settings.logging.level,
    )
    if state.verbose:
        logger.debug("Loaded settings", settings=redacted_settings(settings))
    return settings


def _run(ctx: typer.Context, operation: Callable[[Any, LedgerTableSettings], Awaitable[R]]) -> R:
    """Build the table environment from settings and run an async operation."""
    from ledgertable.cli_helpers import build_environment

    settings = _settings(ctx)
    try:
        environment = build_environment(settings)
        return asyncio.run(operation(environment, settings))
    except StorageError as e:
        logger.error("Operation failed", error=str(e), error_type=type(e).__name__)
        raise _fail(str(e)) from e


def _echo_json(value: Any) -> None:
    typer.echo(canonical_json(value))


def _parse_record(text: str) -> Any:
    if text == "-":
        text = sys.stdin.read()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise _fail(f"Record is not valid JSON: {e}", code=2) from e


@app.command()
def keygen(
    scheme: str = typer.Option("ed25519", "--scheme", help=f"Signature scheme: {', '.join(sorted(SIGNERS))}."),
) -> None:
    """Generate signing keys and print them as JSON."""
    if scheme == "ed25519":
        private_key, public_key = generate_ed25519_keypair()
    elif scheme == "hmac-sha256":
        import secrets

        private_key = public_key = secrets.token_hex(32)
    else:
        raise _fail(f"Unknown scheme {scheme!r}", code=2)
    _echo_json({"scheme": scheme, "private_key": private_key, "public_key": public_key})


@app.command()
def init(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="Table name."),
    data_address: str | None = typer.Option(None, "--data-address", help="Defaults to '<table>-data'."),
    index_address: str | None = typer.Option(None, "--index-address", help="Defaults to '<table>-index'."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing table configuration."),
) -> None:
    """Create the configuration for a new, empty table."""

    async def operation(environment: Any, settings: LedgerTableSettings) -> TableConfig:
        provider = environment.config_provider
        if not force and await provider.load(table) is not None:
            raise _fail(f"Table {table!r} already exists (use --force to reset it)")
        config = TableConfig(
            data_address=data_address or f"{table}-data",
            index_address=index_address or f"{table}-index",
        )
        await provider.save(table, config)
        return config

    config = _run(ctx, operation)
    _echo_json(config.model_dump())


@app.command()
def store(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="Table name."),
    record: str = typer.Argument(..., help="Record as JSON, or '-' to read stdin."),
    tag: str = typer.Option("", "--tag", help="Tag stored with the bundle."),
) -> None:
    """Store a record and print its address."""
    data = _parse_record(record)

    async def operation(environment: Any, settings: LedgerTableSettings) -> Any:
        return await environment.open_table(table, settings).store(data, tag)

    try:
        stored = _run(ctx, operation)
    except ValueError as e:
        raise _fail(str(e), code=2) from e
    _echo_json({"address": stored.address, "fragments": list(stored.fragments)})


@app.command()
def update(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="Table name."),
    record_id: str = typer.Argument(..., help="Address of the record to replace."),
    record: str = typer.Argument(..., help="New record as JSON, or '-' to read stdin."),
    tag: str = typer.Option("", "--tag", help="Tag stored with the bundle."),
) -> None:
    """Store a new version of a record in place of an old one."""
    data = _parse_record(record)

    async def operation(environment: Any, settings: LedgerTableSettings) -> Any:
        return await environment.open_table(table, settings).update(record_id, data, tag)

    try:
        stored = _run(ctx, operation)
    except ValueError as e:
        raise _fail(str(e), code=2) from e
    _echo_json({"address": stored.address, "fragments": list(stored.fragments)})


@app.command()
def get(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="Table name."),
    record_id: str = typer.Argument(..., help="Record address."),
) -> None:
    """Print one record. Exits 1 if it is missing or fails validation."""

    async def operation(environment: Any, settings: LedgerTableSettings) -> Any:
        return await environment.open_table(table, settings).retrieve(record_id)

    result = _run(ctx, operation)
    if result is None:
        raise _fail(f"Record {record_id} not found or not valid")
    _echo_json(result)


@app.command("list")
def list_records(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="Table name."),
) -> None:
    """Print every valid record in the table index as a JSON array."""

    async def operation(environment: Any, settings: LedgerTableSettings) -> Any:
        return await environment.open_table(table, settings).retrieve_multiple()

    _echo_json(_run(ctx, operation))


@app.command()
def index(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="Table name."),
) -> None:
    """Print the table index as a JSON array of addresses."""

    async def operation(environment: Any, settings: LedgerTableSettings) -> Any:
        return await environment.open_table(table, settings).index()

    _echo_json(_run(ctx, operation) or [])


@app.command()
def rm(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="Table name."),
    record_ids: list[str] = typer.Argument(..., help="Addresses to remove from the index."),
) -> None:
    """Remove records from the index and print the ones that were removed."""

    async def operation(environment: Any, settings: LedgerTableSettings) -> Any:
        return await environment.open_table(table, settings).remove_multiple(record_ids)

    _echo_json(_run(ctx, operation))


@app.command()
def clear(
    ctx: typer.Context,
    table: str = typer.Argument(..., help="Table name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation."),
) -> None:
    """Write an empty index. Stored bundles remain addressable."""
    if not yes:
        typer.confirm(f"Clear the index of table {table!r}?", abort=True)

    async def operation(environment: Any, settings: LedgerTableSettings) -> None:
        await environment.open_table(table, settings).clear_index()

    _run(ctx, operation)
    typer.echo(f"Cleared index of {table}")


if __name__ == "__main__":
    app()
