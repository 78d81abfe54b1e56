"""Typer-based console interface for ``bankfeed``.

Commands
--------
- ``pull``: run a batch over the configured sources and optionally sync the
  result to the ledger.
- ``sync``: replay a snapshot (``output.json`` of an earlier run) into the
  ledger.
- ``parse``: parse a single export and print combined-CSV rows.

The root callback loads ``.env`` from the working directory (without
overriding already-set variables) and configures logging. Business logic
lives in :mod:`bankfeed.pull`, :mod:`bankfeed.aggregate` and
:mod:`bankfeed.ledger.adapter`.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Normalize bank exports into one transaction list and sync it to a ledger.",
)


CONFIG_OPTION: OptionInfo = typer.Option(
    ...,
    "--config",
    help="Path to the bankfeed TOML configuration file.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # load_config reports a readable error
)


def _print_sync(sync, sync_error: str | None) -> None:
    if sync_error is not None:
        print(f"Error: {sync_error}", file=sys.stderr)
    if sync is None:
        return
    for acc in sync.accounts:
        if acc.ok:
            typer.echo(f"synced {acc.account} -> {acc.destination}: {acc.submitted} transaction(s)")
        else:
            print(f"Error: sync of {acc.account} -> {acc.destination} failed: {acc.error}", file=sys.stderr)


def _load(config_path: Path):
    from .config import load_config
    from .errors import ConfigurationError

    try:
        return load_config(config_path)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e


@app.command("pull")
def pull_cmd(
    config_path: Annotated[Path, CONFIG_OPTION],
    *,
    sync: bool = typer.Option(False, help="Submit the batch to the configured ledger."),
) -> None:
    """Parse every configured source and write the run outputs."""

    from .pull import run_pull

    config = _load(config_path)
    report = run_pull(config, sync=sync)

    for failure in report.failures:
        where = f"{failure.source}/{failure.document}" if failure.document else failure.source
        print(f"Error: {where}: {failure.error}", file=sys.stderr)

    typer.echo(f"{len(report.transactions)} transaction(s)")
    for path in report.written:
        typer.echo(f"wrote {path}")
    _print_sync(report.sync, report.sync_error)

    if not report.ok:
        raise typer.Exit(1)


@app.command("sync")
def sync_cmd(
    config_path: Annotated[Path, CONFIG_OPTION],
    snapshot: Path = typer.Option(
        ..., "--snapshot", help="Snapshot file (output.json) of an earlier run.", dir_okay=False
    ),
) -> None:
    """Submit a stored snapshot to the ledger."""

    from pydantic import ValidationError

    from .aggregate import load_snapshot
    from .errors import ConfigurationError, LedgerError
    from .ledger.adapter import run_ledger_sync

    config = _load(config_path)
    if config.ledger is None:
        print("Error: no [ledger] section configured", file=sys.stderr)
        raise typer.Exit(1)

    try:
        transactions = load_snapshot(snapshot)
    except (OSError, ValidationError) as e:
        print(f"Error: cannot read snapshot {snapshot}: {e}", file=sys.stderr)
        raise typer.Exit(1) from e

    sync = None
    sync_error = None
    try:
        sync = run_ledger_sync(config.ledger, transactions)
    except ConfigurationError as e:
        sync_error = str(e)
    except LedgerError as e:
        sync_error = f"sync failed: {e}"

    _print_sync(sync, sync_error)
    if sync_error is not None or (sync is not None and not sync.ok):
        raise typer.Exit(1)


@app.command("parse")
def parse_cmd(
    file: Path = typer.Option(..., "--file", help="Raw export to parse.", dir_okay=False),
    kind: str = typer.Option(..., "--kind", help="Source kind: dbs or citi."),
    csv_out: Path | None = typer.Option(
        None, "--csv-out", help="Write the Citi CSV re-serialization here.", dir_okay=False
    ),
) -> None:
    """Parse one export and print ``date,description,amount,account,status`` rows."""

    from .aggregate import to_combined_csv
    from .drivers import RawDocument, get_driver
    from .errors import BankfeedError

    driver = get_driver(kind)
    if driver is None:
        print(f"Error: unknown source kind: {kind!r}", file=sys.stderr)
        raise typer.Exit(1)

    try:
        data = file.read_bytes()
    except OSError as e:
        print(f"Error: cannot read {file}: {e}", file=sys.stderr)
        raise typer.Exit(1) from e

    try:
        parsed = driver.parse(RawDocument(name=file.name, content=data))
    except BankfeedError as e:
        print(f"Error: failed to parse {file}: {e}", file=sys.stderr)
        raise typer.Exit(1) from e

    if csv_out is not None:
        if not parsed.artifacts:
            print(f"Error: {kind} exports have no CSV re-serialization", file=sys.stderr)
            raise typer.Exit(1)
        csv_out.write_text(next(iter(parsed.artifacts.values())), encoding="utf-8", newline="")

    typer.echo(to_combined_csv(parsed.transactions), nl=False)


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (falls back to BANKFEED_LOG_LEVEL)."
    ),
) -> None:
    """Load ``.env`` from the working directory and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
