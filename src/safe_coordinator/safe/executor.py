"""On-chain execution of fully signed Safe transactions."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import requests
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from ..abi import load_safe_abi
from ..errors import ExecutionError
from ..models import ExecutionResult, SafeProposal, SignatureSet

if TYPE_CHECKING:
    from ..chain import ChainClient

logger = logging.getLogger(__name__)

# Field names under which known clients report the submitted transaction hash
TX_HASH_FIELDS = ("transactionHash", "transaction_hash", "tx_hash", "hash")


def _as_tx_hash(value: Any) -> str | None:
    if isinstance(value, (bytes, bytearray)) and len(value) == 32:
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        candidate = value if value.startswith("0x") else f"0x{value}"
        if len(candidate) == 66:
            try:
                bytes.fromhex(candidate[2:])
            except ValueError:
                return None
            return candidate.lower()
    return None


def normalize_submission_response(response: Any) -> str:
    """Extract the on-chain transaction hash from a submission response.

    Accepts a raw hash (bytes, HexBytes or hex string), a ``(tx_hash, tx)``
    tuple, a mapping, or an object exposing one of ``TX_HASH_FIELDS``,
    including a nested ``request.hash``.

    Raises:
        ExecutionError: If no transaction hash can be located
    """
    direct = _as_tx_hash(response)
    if direct is not None:
        return direct

    if isinstance(response, tuple) and response:
        return normalize_submission_response(response[0])

    def _field(container: Any, name: str) -> Any:
        if isinstance(container, Mapping):
            return container.get(name)
        return getattr(container, name, None)

    if response is not None:
        for name in TX_HASH_FIELDS:
            found = _as_tx_hash(_field(response, name))
            if found is not None:
                return found
        request = _field(response, "request")
        if request is not None:
            found = _as_tx_hash(_field(request, "hash"))
            if found is not None:
                return found

    raise ExecutionError(
        f"Could not locate a transaction hash in submission response: {response!r}"
    )


def encode_exec_transaction(proposal: SafeProposal, signatures: SignatureSet) -> bytes:
    """Encode ``execTransaction`` for ``proposal`` with packed ``signatures``."""
    intent = proposal.intent
    contract = Web3().eth.contract(abi=load_safe_abi())
    calldata_hex = contract.encode_abi(
        abi_element_identifier="execTransaction",
        args=[
            intent.to,
            intent.value,
            intent.data,
            int(intent.operation),
            intent.safe_tx_gas,
            intent.base_gas,
            intent.gas_price,
            Web3.to_checksum_address(intent.gas_token),
            Web3.to_checksum_address(intent.refund_receiver),
            signatures.encode(),
        ],
    )
    return bytes.fromhex(calldata_hex.removeprefix("0x"))


class Executor:
    """Submits a signed Safe transaction and waits for it to be mined."""

    def __init__(self, chain: ChainClient):
        self.chain = chain

    async def execute(
        self,
        proposal: SafeProposal,
        signatures: SignatureSet,
        threshold: int,
        relayer: LocalAccount,
    ) -> ExecutionResult:
        """Execute ``proposal`` on-chain, paying gas from ``relayer``.

        The relayer only pays for the call; it does not need to be one of
        the signers. No retry happens here.

        Raises:
            ExecutionError: If signatures are below threshold, submission
                fails, no transaction hash is returned, or the receipt
                reports failure
        """
        if bytes(signatures.safe_tx_hash) != bytes(proposal.safe_tx_hash):
            raise ExecutionError("Signatures do not belong to this proposal")
        if len(signatures) < threshold:
            raise ExecutionError(
                f"Refusing to execute {proposal.safe_tx_hash_hex}: "
                f"{len(signatures)} of {threshold} required signatures"
            )

        data = encode_exec_transaction(proposal, signatures)
        logger.info(
            "Executing Safe transaction %s via %s",
            proposal.safe_tx_hash_hex,
            relayer.address,
        )
        try:
            response = await self.chain.send_transaction(
                relayer, to=proposal.safe_address, data=data
            )
        except (Web3Exception, ValueError, requests.exceptions.RequestException) as e:
            raise ExecutionError(f"execTransaction submission failed: {e}") from e

        tx_hash = normalize_submission_response(response)
        logger.info("Execution tx hash: %s", tx_hash)

        try:
            receipt = await self.chain.wait_for_receipt(HexBytes(tx_hash))
        except TimeExhausted as e:
            raise ExecutionError(f"Execution {tx_hash} was not mined in time") from e
        except (Web3Exception, ValueError, requests.exceptions.RequestException) as e:
            raise ExecutionError(
                f"Could not fetch receipt for execution {tx_hash}: {e}"
            ) from e

        result = ExecutionResult(
            tx_hash=tx_hash,
            success=receipt["status"] == 1,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )
        if not result.success:
            raise ExecutionError(
                f"Execution {tx_hash} failed on-chain (block {result.block_number})"
            )
        logger.info(
            "Execution receipt status: success, block: %s", result.block_number
        )
        return result
