"""Thin async facade over web3 for the calls the coordinator needs."""

from __future__ import annotations

import asyncio
import logging

from eth_account.signers.local import LocalAccount
from eth_typing import URI, ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.types import TxParams, TxReceipt

from ..abi import load_safe_abi, load_safe_proxy_factory_abi

logger = logging.getLogger(__name__)


class ChainClient:
    """Balance, code, Safe state and transaction submission over JSON-RPC.

    Every blocking web3 call runs in a worker thread so pipeline stages can be
    awaited. Timeouts are owned by the HTTP provider and ``receipt_timeout``.
    """

    def __init__(self, w3: Web3, receipt_timeout: float = 300.0):
        self.w3 = w3
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_rpc(cls, rpc_url: str, request_timeout: float = 10.0) -> ChainClient:
        w3 = Web3(
            Web3.HTTPProvider(URI(rpc_url), request_kwargs={"timeout": request_timeout})
        )
        return cls(w3)

    async def get_chain_id(self) -> int:
        return await asyncio.to_thread(lambda: self.w3.eth.chain_id)

    async def get_balance(self, address: str) -> int:
        return await asyncio.to_thread(
            self.w3.eth.get_balance, Web3.to_checksum_address(address)
        )

    async def get_code(self, address: str) -> bytes:
        code = await asyncio.to_thread(
            self.w3.eth.get_code, Web3.to_checksum_address(address)
        )
        return bytes(code)

    async def is_contract(self, address: str) -> bool:
        return len(await self.get_code(address)) > 0

    def safe_contract(self, safe_address: str) -> Contract:
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(safe_address), abi=load_safe_abi()
        )

    def proxy_factory_contract(self, factory_address: str) -> Contract:
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(factory_address),
            abi=load_safe_proxy_factory_abi(),
        )

    async def get_safe_nonce(self, safe_address: str) -> int:
        contract = self.safe_contract(safe_address)
        return int(await asyncio.to_thread(contract.functions.nonce().call))

    async def get_safe_owners(self, safe_address: str) -> list[ChecksumAddress]:
        contract = self.safe_contract(safe_address)
        owners = await asyncio.to_thread(contract.functions.getOwners().call)
        return [Web3.to_checksum_address(owner) for owner in owners]

    async def get_safe_threshold(self, safe_address: str) -> int:
        contract = self.safe_contract(safe_address)
        return int(await asyncio.to_thread(contract.functions.getThreshold().call))

    async def get_proxy_creation_code(self, factory_address: str) -> bytes:
        contract = self.proxy_factory_contract(factory_address)
        code = await asyncio.to_thread(contract.functions.proxyCreationCode().call)
        return bytes(code)

    async def send_transaction(
        self,
        account: LocalAccount,
        to: str,
        data: bytes = b"",
        value: int = 0,
    ) -> HexBytes:
        """Sign ``to``/``data``/``value`` with ``account`` and broadcast it.

        Returns:
            Hash of the broadcast transaction
        """

        def _send() -> HexBytes:
            tx: TxParams = {
                "from": account.address,
                "to": Web3.to_checksum_address(to),
                "value": value,
                "data": HexBytes(data),
                "nonce": self.w3.eth.get_transaction_count(account.address, "pending"),
                "chainId": self.w3.eth.chain_id,
            }
            tx["gas"] = self.w3.eth.estimate_gas(tx)
            tx["gasPrice"] = self.w3.eth.gas_price
            logger.debug(
                "Sending tx from %s to %s (gas=%d, gasPrice=%d)",
                account.address,
                tx["to"],
                tx["gas"],
                tx["gasPrice"],
            )
            signed = account.sign_transaction(tx)
            return self.w3.eth.send_raw_transaction(signed.raw_transaction)

        return await asyncio.to_thread(_send)

    async def wait_for_receipt(self, tx_hash: bytes | str) -> TxReceipt:
        return await asyncio.to_thread(
            self.w3.eth.wait_for_transaction_receipt,
            HexBytes(tx_hash),
            timeout=self.receipt_timeout,
        )
