"""Deterministic Safe deployment through the SafeProxyFactory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import requests
from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from eth_utils import keccak
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from ..abi import load_safe_abi, load_safe_proxy_factory_abi
from ..constants import PREDETERMINED_SALT_NONCE, ZERO_ADDRESS, SafeDeployment
from ..errors import SubmissionError
from ..models import DeploymentResult, OwnerSet, PendingAccount, validate_threshold

if TYPE_CHECKING:
    from ..chain import ChainClient

logger = logging.getLogger(__name__)


def default_salt_nonce(chain_id: int) -> int:
    """Chain-specific default salt nonce, matching the Safe SDK's derivation."""
    return int.from_bytes(keccak(text=f"{PREDETERMINED_SALT_NONCE}{chain_id}"), "big")


def build_setup_data(
    owners: OwnerSet, threshold: int, fallback_handler: str
) -> bytes:
    """Encode the ``Safe.setup`` initializer call."""
    contract = Web3().eth.contract(abi=load_safe_abi())
    calldata_hex = contract.encode_abi(
        abi_element_identifier="setup",
        args=[
            list(owners),
            threshold,
            ZERO_ADDRESS,
            b"",
            Web3.to_checksum_address(fallback_handler),
            ZERO_ADDRESS,
            0,
            ZERO_ADDRESS,
        ],
    )
    return bytes.fromhex(calldata_hex.removeprefix("0x"))


def predict_safe_address(
    factory: str,
    singleton: str,
    initializer: bytes,
    salt_nonce: int,
    proxy_creation_code: bytes,
) -> ChecksumAddress:
    """CREATE2 address of ``createProxyWithNonce(singleton, initializer, salt_nonce)``."""
    salt = keccak(keccak(initializer) + salt_nonce.to_bytes(32, "big"))
    singleton_word = bytes.fromhex(Web3.to_checksum_address(singleton)[2:]).rjust(
        32, b"\x00"
    )
    init_code_hash = keccak(proxy_creation_code + singleton_word)
    factory_bytes = bytes.fromhex(Web3.to_checksum_address(factory)[2:])
    digest = keccak(b"\xff" + factory_bytes + salt + init_code_hash)
    return Web3.to_checksum_address(digest[12:])


class ThresholdAccountDeployer:
    """Predicts and deploys Safes for a fixed owner set and threshold."""

    def __init__(self, chain: ChainClient, chain_id: int, deployment: SafeDeployment):
        self.chain = chain
        self.chain_id = chain_id
        self.deployment = deployment

    async def predict(
        self,
        owners: OwnerSet,
        threshold: int,
        salt_nonce: int | None = None,
    ) -> PendingAccount:
        """Compute the Safe address without broadcasting anything.

        Raises:
            ConfigurationError: If the threshold does not fit the owner set
        """
        validate_threshold(owners, threshold)
        if salt_nonce is None:
            salt_nonce = default_salt_nonce(self.chain_id)

        initializer = build_setup_data(
            owners, threshold, self.deployment["fallback_handler"]
        )
        creation_code = await self.chain.get_proxy_creation_code(
            self.deployment["proxy_factory"]
        )
        predicted = predict_safe_address(
            self.deployment["proxy_factory"],
            self.deployment["singleton"],
            initializer,
            salt_nonce,
            creation_code,
        )
        logger.info("Predicted Safe address: %s", predicted)
        return PendingAccount(
            owners=owners,
            threshold=threshold,
            salt_nonce=salt_nonce,
            predicted_address=predicted,
            initializer=initializer,
        )

    def build_deployment_transaction(self, pending: PendingAccount) -> dict[str, object]:
        """Build the ``createProxyWithNonce`` call that deploys ``pending``."""
        factory = Web3().eth.contract(abi=load_safe_proxy_factory_abi())
        calldata_hex = factory.encode_abi(
            abi_element_identifier="createProxyWithNonce",
            args=[
                Web3.to_checksum_address(self.deployment["singleton"]),
                pending.initializer,
                pending.salt_nonce,
            ],
        )
        return {
            "to": Web3.to_checksum_address(self.deployment["proxy_factory"]),
            "data": bytes.fromhex(calldata_hex.removeprefix("0x")),
            "value": 0,
        }

    async def is_deployed(self, address: str) -> bool:
        return await self.chain.is_contract(address)

    async def deploy(
        self, pending: PendingAccount, deployer: LocalAccount
    ) -> DeploymentResult:
        """Deploy ``pending`` from ``deployer``, or detect an existing deployment.

        The deployer pays gas and need not be an owner. Deployment is
        deterministic, so a failed attempt can be retried with the same
        ``pending`` account.

        Raises:
            SubmissionError: If broadcasting fails, the transaction reverts,
                or no code exists at the predicted address afterwards
        """
        address = pending.predicted_address
        if await self.is_deployed(address):
            logger.info("Safe already deployed at %s; skipping deployment", address)
            return DeploymentResult(safe_address=address, already_deployed=True)

        tx = self.build_deployment_transaction(pending)
        logger.debug("Prepared deployment tx: %s", tx)
        try:
            tx_hash = await self.chain.send_transaction(
                deployer, to=str(tx["to"]), data=bytes(tx["data"]), value=0
            )
        except (Web3Exception, ValueError, requests.exceptions.RequestException) as e:
            raise SubmissionError(
                f"Deployment transaction from {deployer.address} was rejected: {e}"
            ) from e

        tx_hash_hex = "0x" + bytes(tx_hash).hex()
        logger.info("Sent deploy tx hash: %s", tx_hash_hex)

        try:
            receipt = await self.chain.wait_for_receipt(tx_hash)
        except TimeExhausted as e:
            raise SubmissionError(
                f"Deployment transaction {tx_hash_hex} was not mined in time"
            ) from e
        except (Web3Exception, ValueError, requests.exceptions.RequestException) as e:
            raise SubmissionError(
                f"Could not fetch receipt for deployment {tx_hash_hex}: {e}"
            ) from e

        if receipt["status"] != 1:
            raise SubmissionError(f"Deployment transaction {tx_hash_hex} reverted")
        logger.info("Deployment mined in block %s", receipt["blockNumber"])

        if not await self.is_deployed(address):
            raise SubmissionError(
                f"Deployment {tx_hash_hex} mined but no Safe code at {address}"
            )

        return DeploymentResult(
            safe_address=address,
            already_deployed=False,
            tx_hash=tx_hash_hex,
            block_number=receipt["blockNumber"],
        )
