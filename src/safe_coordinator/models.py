"""Data structures passed between coordinator stages."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass, field
from enum import IntEnum

from eth_typing import ChecksumAddress
from eth_utils import ValidationError
from hexbytes import HexBytes
from safe_eth.safe.safe_signature import (
    SafeSignature,
    SafeSignatureException,
    SafeSignatureType,
)
from web3 import Web3

from .constants import ZERO_ADDRESS
from .errors import ConfigurationError


class SafeOperation(IntEnum):
    CALL = 0
    DELEGATE_CALL = 1


@dataclass(frozen=True)
class OwnerSet:
    """Ordered, duplicate-free Safe owner addresses."""

    addresses: tuple[ChecksumAddress, ...]

    @classmethod
    def from_addresses(cls, addresses: Iterable[str]) -> OwnerSet:
        """Normalize to checksum addresses, rejecting duplicates.

        Raises:
            ConfigurationError: If an address is malformed or repeated
        """
        normalized: list[ChecksumAddress] = []
        seen: set[str] = set()
        for address in addresses:
            try:
                checksum = Web3.to_checksum_address(address)
            except ValueError as e:
                raise ConfigurationError(f"Invalid owner address: {address}") from e
            if checksum.lower() in seen:
                raise ConfigurationError(f"Duplicate owner address: {checksum}")
            seen.add(checksum.lower())
            normalized.append(checksum)
        return cls(tuple(normalized))

    def __len__(self) -> int:
        return len(self.addresses)

    def __iter__(self) -> Iterator[ChecksumAddress]:
        return iter(self.addresses)

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        return address.lower() in {a.lower() for a in self.addresses}


def validate_threshold(owners: OwnerSet, threshold: int) -> None:
    """Raise ConfigurationError unless 0 < threshold <= len(owners)."""
    if threshold <= 0:
        raise ConfigurationError(f"Threshold must be positive, got {threshold}")
    if len(owners) < threshold:
        raise ConfigurationError(
            f"Threshold {threshold} requires at least {threshold} owners, "
            f"got {len(owners)}"
        )


@dataclass(frozen=True)
class PendingAccount:
    """A Safe whose address is known but which may not be deployed yet."""

    owners: OwnerSet
    threshold: int
    salt_nonce: int
    predicted_address: ChecksumAddress
    initializer: bytes


@dataclass
class DeploymentResult:
    safe_address: ChecksumAddress
    already_deployed: bool
    tx_hash: str | None = None
    block_number: int | None = None


@dataclass(frozen=True)
class TransactionIntent:
    """Fields of a Safe transaction as hashed by ``Safe.getTransactionHash``."""

    to: ChecksumAddress
    value: int
    data: bytes = b""
    operation: SafeOperation = SafeOperation.CALL
    safe_tx_gas: int = 0
    base_gas: int = 0
    gas_price: int = 0
    gas_token: str = ZERO_ADDRESS
    refund_receiver: str = ZERO_ADDRESS
    nonce: int = 0

    def to_service_payload(self) -> dict[str, object]:
        """Map onto the Safe Transaction Service multisig-transaction schema."""
        return {
            "to": self.to,
            "value": str(self.value),
            "data": "0x" + self.data.hex(),
            "operation": int(self.operation),
            "safeTxGas": str(self.safe_tx_gas),
            "baseGas": str(self.base_gas),
            "gasPrice": str(self.gas_price),
            "gasToken": self.gas_token,
            "refundReceiver": self.refund_receiver,
            "nonce": self.nonce,
        }


@dataclass(frozen=True)
class SafeProposal:
    safe_address: ChecksumAddress
    chain_id: int
    intent: TransactionIntent
    safe_tx_hash: HexBytes

    @property
    def safe_tx_hash_hex(self) -> str:
        return "0x" + bytes(self.safe_tx_hash).hex()


_ECDSA_SIGNATURE_TYPES = (SafeSignatureType.EOA, SafeSignatureType.ETH_SIGN)


def recover_signer(safe_tx_hash: bytes, signature: bytes) -> ChecksumAddress:
    """Recover the EOA that produced ``signature`` over ``safe_tx_hash``.

    Both owner signature encodings the Safe contract verifies with ECDSA are
    accepted: a raw hash signature (``v`` 27/28) and an ``eth_sign``
    signature over the prefixed hash (``v`` 31/32).

    Raises:
        ValueError: If the signature is not a single ECDSA owner signature
    """
    try:
        parsed = SafeSignature.parse_signature(
            bytes(signature), bytes(safe_tx_hash), ignore_trailing=False
        )
    except (SafeSignatureException, ValueError) as e:
        raise ValueError(f"Malformed signature: {e}") from e
    if len(parsed) != 1:
        raise ValueError(f"Expected one signature, got {len(parsed)}")

    safe_signature = parsed[0]
    if safe_signature.signature_type not in _ECDSA_SIGNATURE_TYPES:
        raise ValueError(
            f"Unsupported signature type {safe_signature.signature_type.name} "
            f"(v={safe_signature.v})"
        )
    try:
        owner = safe_signature.owner
    except ValidationError as e:
        raise ValueError(f"Malformed signature: {e}") from e
    if owner == ZERO_ADDRESS:
        raise ValueError("Malformed signature: signer could not be recovered")
    return owner


class SignatureSet:
    """Owner signatures collected for a single Safe transaction hash.

    Every entry is checked against the hash when it is added, so the set only
    ever holds signatures that recover to their owner.
    """

    def __init__(self, safe_tx_hash: bytes):
        self.safe_tx_hash = HexBytes(safe_tx_hash)
        self._signatures: dict[ChecksumAddress, bytes] = {}

    def add(self, signer: str, signature: bytes) -> None:
        """Insert a signature, replacing any previous one from the same signer.

        Raises:
            ValueError: If the signature does not recover to ``signer``
        """
        signer = Web3.to_checksum_address(signer)
        if len(signature) != 65:
            raise ValueError(
                f"Signature from {signer} must be 65 bytes, got {len(signature)}"
            )
        recovered = recover_signer(self.safe_tx_hash, signature)
        if recovered != signer:
            raise ValueError(
                f"Signature recovers to {recovered}, expected {signer}"
            )
        self._signatures[signer] = bytes(signature)

    def get(self, signer: str) -> bytes | None:
        return self._signatures.get(Web3.to_checksum_address(signer))

    @property
    def signers(self) -> list[ChecksumAddress]:
        """Signers ordered by address, as the Safe contract expects them."""
        return sorted(self._signatures, key=lambda a: int(a, 16))

    def encode(self) -> bytes:
        """Concatenate signatures in ascending owner order."""
        return b"".join(self._signatures[signer] for signer in self.signers)

    def __len__(self) -> int:
        return len(self._signatures)

    def __contains__(self, signer: object) -> bool:
        if not isinstance(signer, str):
            return False
        return Web3.to_checksum_address(signer) in self._signatures

    def __iter__(self) -> Iterator[ChecksumAddress]:
        return iter(self.signers)


@dataclass
class ValidationResult:
    """Verdict of the local Safe validity predicate."""

    valid: bool
    reason: str
    signers: list[str] = field(default_factory=list)


@dataclass
class RelayResult:
    proposed: bool = False
    confirmed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    ui_url: str | None = None


@dataclass
class ExecutionResult:
    tx_hash: str
    success: bool
    block_number: int | None = None
    gas_used: int | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class SafeStatus:
    """On-chain snapshot of a deployed Safe."""

    address: str
    balance: int
    owners: list[str]
    threshold: int
    nonce: int
