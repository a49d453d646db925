"""CLI entrypoint for the Safe coordinator."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Coroutine
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from .errors import CoordinatorError
from .logger import setup_logging
from .report import format_execution_result, format_safe_status
from .settings import CoordinatorSettings
from .state import AppState

T = TypeVar("T")

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Deploy threshold Safes and coordinate multi-owner transfers.",
)


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("safe_coordinator")


def _build_state(ctx: typer.Context, **overrides: Any) -> AppState:
    """Load settings with CLI overrides on top and configure logging."""
    init_kwargs = {k: v for k, v in overrides.items() if v is not None}
    log_level = (ctx.obj or {}).get("log_level")
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    try:
        settings = CoordinatorSettings(**init_kwargs)
    except ValueError as e:  # includes pydantic ValidationError
        typer.echo(f"❌ Invalid configuration:\n{e}", err=True)
        raise typer.Exit(code=1) from e

    setup_logging(settings.log_level, settings.secret_values())
    return AppState(settings=settings, logger=_build_logger())


def _run(state: AppState, coro: Coroutine[Any, Any, T]) -> T:
    """Run a pipeline coroutine, turning coordinator errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except CoordinatorError as e:
        state.logger.error("❌ Error: %s", e)
        raise typer.Exit(code=1) from e


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [safe_coordinator] table).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
):
    """Safe multi-party transaction coordinator."""
    if config_path:
        os.environ["SAFE_COORDINATOR_CONFIG"] = str(config_path)
    ctx.obj = {"log_level": log_level}


@app.command()
def deploy(
    ctx: typer.Context,
    threshold: Annotated[
        int | None,
        typer.Option("--threshold", "-t", help="Signatures required to execute."),
    ] = None,
    owner: Annotated[
        list[str] | None,
        typer.Option(
            "--owner",
            help="Extra owner address (repeatable); signer keys are always owners.",
        ),
    ] = None,
    salt_nonce: Annotated[
        int | None,
        typer.Option("--salt-nonce", help="CREATE2 salt nonce for the proxy."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Only print the predicted Safe address."),
    ] = False,
):
    """Predict and deploy a threshold Safe for the configured owners."""
    state = _build_state(
        ctx,
        threshold=threshold,
        owner_addresses=owner or None,
        salt_nonce=salt_nonce,
    )

    from .pipeline.run import predict_deployment, run_deploy

    if dry_run:
        pending = _run(state, predict_deployment(state))
        typer.echo(pending.predicted_address)
        return

    result = _run(state, run_deploy(state))
    typer.echo(result.safe_address)


@app.command()
def transfer(
    ctx: typer.Context,
    safe_address: Annotated[
        str | None,
        typer.Option("--safe-address", help="Safe to transfer from."),
    ] = None,
    recipient: Annotated[
        str | None,
        typer.Option("--recipient", "-r", help="Address receiving the ETH."),
    ] = None,
    amount: Annotated[
        str | None,
        typer.Option("--amount", "-a", help="Amount in ETH (e.g. 0.01)."),
    ] = None,
    dry_run: Annotated[
        bool | None,
        typer.Option(
            "--dry-run/--no-dry-run",
            help="Collect and relay signatures but do not execute.",
        ),
    ] = None,
    relay: Annotated[
        bool | None,
        typer.Option(
            "--relay/--no-relay",
            help="Share the proposal through the Safe Transaction Service.",
        ),
    ] = None,
):
    """Propose, sign, relay and execute an ETH transfer from a Safe."""
    state = _build_state(
        ctx,
        safe_address=safe_address,
        recipient=recipient,
        transfer_amount_eth=amount,
        dry_run=dry_run,
        relay_enabled=relay,
    )

    from .pipeline.run import run_transfer

    result = _run(state, run_transfer(state))
    if result.execution is not None:
        format_execution_result(result.execution, result.relay_result)


@app.command()
def status(
    ctx: typer.Context,
    safe_address: Annotated[
        str | None,
        typer.Option("--safe-address", help="Safe to inspect."),
    ] = None,
):
    """Show balance, owners, threshold and nonce of a Safe."""
    state = _build_state(ctx, safe_address=safe_address)

    from .pipeline.run import fetch_status

    safe_status = _run(state, fetch_status(state))
    format_safe_status(safe_status)


@app.command("show-config")
def show_config(ctx: typer.Context):
    """Print effective config (with secrets redacted) and exit."""
    state = _build_state(ctx)
    typer.echo(json.dumps(state.settings.as_safe_dict(), indent=2))


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
