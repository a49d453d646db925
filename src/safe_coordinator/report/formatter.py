"""Rich console formatter for Safe status and dry-run proposals."""

from __future__ import annotations

from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models import (
    ExecutionResult,
    RelayResult,
    SafeProposal,
    SafeStatus,
    SignatureSet,
    ValidationResult,
)
from ..units import format_wei


def _truncate_address(address: str) -> str:
    """Truncate address for display."""
    return f"{address[:10]}...{address[-4:]}"


def format_safe_status(status: SafeStatus, console: Console | None = None) -> None:
    """Print a Safe's balance, nonce and owners."""
    console = console or Console()

    info_table = Table(show_header=False, box=None, padding=(0, 1))
    info_table.add_column("Key", style="dim")
    info_table.add_column("Value", style="cyan")
    info_table.add_row("Address", status.address)
    info_table.add_row("Balance", format_wei(status.balance))
    info_table.add_row("Threshold", f"{status.threshold} of {len(status.owners)}")
    info_table.add_row("Nonce", str(status.nonce))

    owner_table = Table(expand=True)
    owner_table.add_column("#", style="dim", justify="right")
    owner_table.add_column("Owner", style="cyan", no_wrap=True)
    for index, owner in enumerate(status.owners, start=1):
        owner_table.add_row(str(index), owner)

    console.print()
    console.print(
        Panel(
            Group(info_table, "", owner_table),
            title="[bold white]Safe Status[/]",
            border_style="white",
            padding=(1, 2),
        )
    )
    console.print()


def format_proposal_table(
    proposal: SafeProposal,
    signatures: SignatureSet,
    validation: ValidationResult | None = None,
    console: Console | None = None,
) -> None:
    """Print a proposal and its collected signatures (dry run).

    Args:
        proposal: The proposal that would be executed
        signatures: Signatures collected so far
        validation: Result of the local validity check, if it ran
        console: Console to print to (stdout by default)
    """
    console = console or Console()
    intent = proposal.intent

    tx_table = Table(show_header=False, box=None, padding=(0, 1))
    tx_table.add_column("Key", style="dim")
    tx_table.add_column("Value", style="cyan")
    tx_table.add_row("Safe", _truncate_address(proposal.safe_address))
    tx_table.add_row("To", _truncate_address(intent.to))
    tx_table.add_row("Value", format_wei(intent.value))
    tx_table.add_row("Operation", intent.operation.name)
    tx_table.add_row("Nonce", str(intent.nonce))
    tx_table.add_row("Chain", str(proposal.chain_id))

    tx_panel = Panel(tx_table, title="[bold]Transaction[/]", border_style="blue")

    sig_table = Table(show_header=False, box=None, padding=(0, 1))
    sig_table.add_column("Signer", style="cyan")
    for signer in signatures.signers:
        sig_table.add_row(_truncate_address(signer))
    if validation is not None:
        verdict = "[green]valid[/]" if validation.valid else "[red]invalid[/]"
        sig_table.add_row(f"{verdict}: {validation.reason}")

    sig_panel = Panel(
        sig_table,
        title=f"[bold]Signatures ({len(signatures)})[/]",
        border_style="green",
    )

    hash_panel = Panel(
        Text(proposal.safe_tx_hash_hex, style="dim", overflow="fold"),
        title="[bold]Safe Tx Hash[/]",
        border_style="dim",
    )

    console.print()
    console.print(
        Panel(
            Group(Columns([tx_panel, sig_panel], equal=True, expand=True), "", hash_panel),
            title="[bold white]Safe Coordinator Dry Run[/]",
            border_style="white",
            padding=(1, 2),
        )
    )
    console.print()


def format_execution_result(
    result: ExecutionResult,
    relay: RelayResult | None = None,
    console: Console | None = None,
) -> None:
    """Print the outcome of an executed Safe transaction."""
    console = console or Console()

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="cyan")
    table.add_row("Tx Hash", result.tx_hash)
    table.add_row("Status", "[green]success[/]" if result.success else "[red]failed[/]")
    table.add_row("Block", str(result.block_number))
    table.add_row("Gas Used", str(result.gas_used))
    if relay is not None:
        table.add_row("Relay", "proposed" if relay.proposed else "skipped")
        if relay.ui_url:
            table.add_row("Safe UI", relay.ui_url)

    console.print()
    console.print(
        Panel(
            table,
            title="[bold white]Safe Transaction Executed[/]",
            border_style="green" if result.success else "red",
            padding=(1, 2),
        )
    )
    console.print()
