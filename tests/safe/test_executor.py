"""Tests for on-chain execution of signed Safe transactions."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import requests
from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TimeExhausted

from safe_coordinator.abi import load_safe_abi
from safe_coordinator.constants import SEPOLIA_CHAIN_ID
from safe_coordinator.errors import ExecutionError
from safe_coordinator.models import SafeProposal, SignatureSet, TransactionIntent
from safe_coordinator.safe.executor import (
    Executor,
    encode_exec_transaction,
    normalize_submission_response,
)
from safe_coordinator.safe.signatures import SignatureCollector
from safe_coordinator.safe.transaction_builder import calculate_safe_tx_hash

SAFE = "0x1234567890123456789012345678901234567890"
RECIPIENT = "0x2234567890123456789012345678901234567890"
OWNERS = [Account.from_key("0x" + f"{i:02x}" * 32) for i in (0x11, 0x22, 0x33)]
TX_HASH = "0x" + "cd" * 32


@pytest.fixture
def proposal() -> SafeProposal:
    intent = TransactionIntent(to=RECIPIENT, value=10**16, nonce=0)
    return SafeProposal(
        safe_address=SAFE,
        chain_id=SEPOLIA_CHAIN_ID,
        intent=intent,
        safe_tx_hash=calculate_safe_tx_hash(SAFE, SEPOLIA_CHAIN_ID, intent),
    )


@pytest.fixture
def chain() -> MagicMock:
    chain = MagicMock()
    chain.send_transaction = AsyncMock(return_value=HexBytes(TX_HASH))
    chain.wait_for_receipt = AsyncMock(
        return_value={"status": 1, "blockNumber": 12, "gasUsed": 90_000}
    )
    return chain


@pytest.mark.parametrize(
    "response",
    [
        HexBytes(TX_HASH),
        bytes.fromhex(TX_HASH[2:]),
        TX_HASH,
        TX_HASH[2:],
        TX_HASH.upper().replace("0X", "0x"),
        (HexBytes(TX_HASH), {"to": SAFE}),
        {"transactionHash": TX_HASH},
        {"hash": HexBytes(TX_HASH)},
        SimpleNamespace(tx_hash=TX_HASH),
        SimpleNamespace(request=SimpleNamespace(hash=TX_HASH)),
    ],
)
def test_normalize_submission_response_shapes(response):
    assert normalize_submission_response(response) == TX_HASH


@pytest.mark.parametrize("response", [None, {}, "0x1234", {"hash": "not-a-hash"}])
def test_normalize_submission_response_rejects_missing_hash(response):
    with pytest.raises(ExecutionError):
        normalize_submission_response(response)


def test_encode_exec_transaction_packs_sorted_signatures(proposal):
    signatures = SignatureCollector(3).collect(proposal.safe_tx_hash, OWNERS)

    data = encode_exec_transaction(proposal, signatures)

    func, params = Web3().eth.contract(abi=load_safe_abi()).decode_function_input(data)
    assert func.fn_name == "execTransaction"
    assert params["to"] == RECIPIENT
    assert params["value"] == 10**16
    assert params["signatures"] == signatures.encode()


@pytest.mark.asyncio
async def test_execute_refuses_below_threshold(chain, proposal):
    signatures = SignatureCollector(1).collect(proposal.safe_tx_hash, OWNERS)

    with pytest.raises(ExecutionError, match="1 of 2"):
        await Executor(chain).execute(proposal, signatures, 2, OWNERS[0])
    chain.send_transaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_execute_refuses_signatures_for_other_hash(chain, proposal):
    other = SignatureSet(HexBytes(b"\x01" * 32))

    with pytest.raises(ExecutionError, match="do not belong"):
        await Executor(chain).execute(proposal, other, 0, OWNERS[0])


@pytest.mark.asyncio
async def test_execute_returns_receipt_details(chain, proposal):
    signatures = SignatureCollector(2).collect(proposal.safe_tx_hash, OWNERS)

    result = await Executor(chain).execute(proposal, signatures, 2, OWNERS[2])

    assert result.to_dict() == {
        "tx_hash": TX_HASH,
        "success": True,
        "block_number": 12,
        "gas_used": 90_000,
    }
    call = chain.send_transaction.await_args
    assert call.args == (OWNERS[2],)
    assert call.kwargs["to"] == SAFE


@pytest.mark.asyncio
async def test_execute_raises_on_failed_receipt(chain, proposal):
    chain.wait_for_receipt.return_value = {"status": 0, "blockNumber": 12}
    signatures = SignatureCollector(2).collect(proposal.safe_tx_hash, OWNERS)

    with pytest.raises(ExecutionError, match="failed on-chain"):
        await Executor(chain).execute(proposal, signatures, 2, OWNERS[0])


@pytest.mark.asyncio
async def test_execute_wraps_submission_errors(chain, proposal):
    chain.send_transaction.side_effect = ValueError("GS013")
    signatures = SignatureCollector(2).collect(proposal.safe_tx_hash, OWNERS)

    with pytest.raises(ExecutionError, match="GS013"):
        await Executor(chain).execute(proposal, signatures, 2, OWNERS[0])


@pytest.mark.asyncio
async def test_execute_wraps_receipt_timeout(chain, proposal):
    chain.wait_for_receipt.side_effect = TimeExhausted("timeout")
    signatures = SignatureCollector(2).collect(proposal.safe_tx_hash, OWNERS)

    with pytest.raises(ExecutionError, match="not mined"):
        await Executor(chain).execute(proposal, signatures, 2, OWNERS[0])


@pytest.mark.asyncio
async def test_execute_wraps_rpc_connection_errors(chain, proposal):
    chain.send_transaction.side_effect = requests.exceptions.ConnectionError("rpc down")
    signatures = SignatureCollector(2).collect(proposal.safe_tx_hash, OWNERS)

    with pytest.raises(ExecutionError, match="rpc down"):
        await Executor(chain).execute(proposal, signatures, 2, OWNERS[0])


@pytest.mark.asyncio
async def test_execute_wraps_receipt_polling_errors(chain, proposal):
    chain.wait_for_receipt.side_effect = requests.exceptions.ReadTimeout("rpc down")
    signatures = SignatureCollector(2).collect(proposal.safe_tx_hash, OWNERS)

    with pytest.raises(ExecutionError, match="Could not fetch receipt"):
        await Executor(chain).execute(proposal, signatures, 2, OWNERS[0])
