from __future__ import annotations

from eth_account import Account
from rich.console import Console

from safe_coordinator.constants import SEPOLIA_CHAIN_ID
from safe_coordinator.models import (
    ExecutionResult,
    RelayResult,
    SafeProposal,
    SafeStatus,
    TransactionIntent,
    ValidationResult,
)
from safe_coordinator.report import (
    format_execution_result,
    format_proposal_table,
    format_safe_status,
)
from safe_coordinator.safe.signatures import SignatureCollector
from safe_coordinator.safe.transaction_builder import calculate_safe_tx_hash

SAFE = "0x1234567890123456789012345678901234567890"
RECIPIENT = "0x2234567890123456789012345678901234567890"


def test_format_safe_status_lists_owners():
    console = Console(record=True, width=120)
    status = SafeStatus(
        address=SAFE,
        balance=10**17,
        owners=[RECIPIENT],
        threshold=1,
        nonce=3,
    )

    format_safe_status(status, console=console)

    output = console.export_text()
    assert "Safe Status" in output
    assert "0.1 ETH" in output
    assert "1 of 1" in output
    assert RECIPIENT in output


def test_format_proposal_table_shows_hash_and_verdict():
    console = Console(record=True, width=160)
    intent = TransactionIntent(to=RECIPIENT, value=10**16, nonce=2)
    proposal = SafeProposal(
        safe_address=SAFE,
        chain_id=SEPOLIA_CHAIN_ID,
        intent=intent,
        safe_tx_hash=calculate_safe_tx_hash(SAFE, SEPOLIA_CHAIN_ID, intent),
    )
    signer = Account.from_key("0x" + "11" * 32)
    signatures = SignatureCollector(1).collect(proposal.safe_tx_hash, [signer])

    format_proposal_table(
        proposal,
        signatures,
        ValidationResult(valid=True, reason="1 valid owner signature(s), threshold 1"),
        console=console,
    )

    output = console.export_text()
    assert "Safe Coordinator Dry Run" in output
    assert "Signatures (1)" in output
    assert "0.01 ETH" in output
    assert "valid" in output


def test_format_execution_result_includes_relay_link():
    console = Console(record=True, width=200)
    result = ExecutionResult(
        tx_hash="0x" + "cd" * 32, success=True, block_number=12, gas_used=90_000
    )
    relay = RelayResult(proposed=True, ui_url="https://app.safe.global/tx")

    format_execution_result(result, relay, console=console)

    output = console.export_text()
    assert "Safe Transaction Executed" in output
    assert "0x" + "cd" * 32 in output
    assert "https://app.safe.global/tx" in output
