"""Transaction builder for Safe transaction proposals."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from eth_utils import keccak
from hexbytes import HexBytes
from web3 import Web3

from ..constants import ZERO_ADDRESS
from ..models import SafeOperation, SafeProposal, TransactionIntent

if TYPE_CHECKING:
    from ..chain import ChainClient

logger = logging.getLogger(__name__)

# EIP-712 typehashes from Safe.sol
DOMAIN_SEPARATOR_TYPEHASH = keccak(
    b"EIP712Domain(uint256 chainId,address verifyingContract)"
)
SAFE_TX_TYPEHASH = keccak(
    b"SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,uint256 baseGas,uint256 gasPrice,address gasToken,address refundReceiver,uint256 nonce)"
)


def _address_word(address: str) -> bytes:
    return bytes.fromhex(Web3.to_checksum_address(address)[2:]).rjust(32, b"\x00")


def calculate_safe_tx_hash(
    safe_address: str,
    chain_id: int,
    intent: TransactionIntent,
) -> HexBytes:
    """Calculate Safe transaction hash using EIP-712.

    This follows the exact implementation from Safe.sol:getTransactionHash()
    for Safe >= 1.3.0, where the domain includes the chain id.

    Args:
        safe_address: Safe contract address (verifying contract)
        chain_id: Network chain ID
        intent: Transaction fields, including the Safe nonce

    Returns:
        Safe transaction hash (contractTransactionHash)
    """
    domain_separator = keccak(
        DOMAIN_SEPARATOR_TYPEHASH
        + chain_id.to_bytes(32, "big")
        + _address_word(safe_address)
    )

    safe_tx_hash_data = (
        SAFE_TX_TYPEHASH
        + _address_word(intent.to)
        + intent.value.to_bytes(32, "big")
        + keccak(intent.data)
        + int(intent.operation).to_bytes(32, "big")
        + intent.safe_tx_gas.to_bytes(32, "big")
        + intent.base_gas.to_bytes(32, "big")
        + intent.gas_price.to_bytes(32, "big")
        + _address_word(intent.gas_token)
        + _address_word(intent.refund_receiver)
        + intent.nonce.to_bytes(32, "big")
    )

    safe_tx_hash_struct = keccak(safe_tx_hash_data)

    # Final EIP-712 hash: keccak256("\x19\x01" || domainSeparator || structHash)
    return HexBytes(keccak(b"\x19\x01" + domain_separator + safe_tx_hash_struct))


class TransactionProposalBuilder:
    """Builds Safe transaction proposals against the Safe's live nonce."""

    def __init__(self, chain: ChainClient, safe_address: str, chain_id: int):
        self.chain = chain
        self.safe_address = Web3.to_checksum_address(safe_address)
        self.chain_id = chain_id

    async def build(
        self,
        to: str,
        value: int,
        data: bytes = b"",
        operation: SafeOperation = SafeOperation.CALL,
        safe_tx_gas: int = 0,
        base_gas: int = 0,
        gas_price: int = 0,
        gas_token: str | None = None,
        refund_receiver: str | None = None,
    ) -> SafeProposal:
        """Create a proposal and its hash.

        The nonce is read right before hashing. Only one proposal per Safe
        should be in flight at a time; a concurrent flow reading the same
        nonce produces a conflicting transaction.
        """
        if value < 0:
            raise ValueError(f"value must be non-negative, got {value}")

        nonce = await self.chain.get_safe_nonce(self.safe_address)
        intent = TransactionIntent(
            to=Web3.to_checksum_address(to),
            value=value,
            data=bytes(data),
            operation=SafeOperation(operation),
            safe_tx_gas=safe_tx_gas,
            base_gas=base_gas,
            gas_price=gas_price,
            gas_token=Web3.to_checksum_address(gas_token or ZERO_ADDRESS),
            refund_receiver=Web3.to_checksum_address(
                refund_receiver or ZERO_ADDRESS
            ),
            nonce=nonce,
        )
        proposal = SafeProposal(
            safe_address=self.safe_address,
            chain_id=self.chain_id,
            intent=intent,
            safe_tx_hash=calculate_safe_tx_hash(self.safe_address, self.chain_id, intent),
        )
        logger.info(
            "Built Safe transaction to %s (value: %d wei, nonce: %d): %s",
            intent.to,
            intent.value,
            intent.nonce,
            proposal.safe_tx_hash_hex,
        )
        return proposal
