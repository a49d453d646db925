"""Tests for owner sets, signature sets and transaction payloads."""

from __future__ import annotations

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak

from safe_coordinator.errors import ConfigurationError
from safe_coordinator.models import (
    OwnerSet,
    SafeOperation,
    SignatureSet,
    TransactionIntent,
    recover_signer,
    validate_threshold,
)

OWNER_A = "0x1111111111111111111111111111111111111111"
OWNER_B = "0x2222222222222222222222222222222222222222"

KEYS = ["0x" + "11" * 32, "0x" + "22" * 32, "0x" + "33" * 32]
HASH = keccak(b"safe transaction")


def _sign(key: str, digest: bytes = HASH) -> bytes:
    return bytes(Account.from_key(key).unsafe_sign_hash(digest).signature)


def test_owner_set_checksums_addresses():
    owners = OwnerSet.from_addresses([OWNER_A.lower(), OWNER_B])

    assert len(owners) == 2
    assert list(owners) == [OWNER_A, OWNER_B]
    assert OWNER_A.lower() in owners


def test_owner_set_rejects_duplicates():
    with pytest.raises(ConfigurationError, match="Duplicate"):
        OwnerSet.from_addresses([OWNER_A, OWNER_A.lower()])


def test_owner_set_rejects_invalid_address():
    with pytest.raises(ConfigurationError, match="Invalid owner address"):
        OwnerSet.from_addresses(["0x1234"])


def test_validate_threshold_bounds():
    owners = OwnerSet.from_addresses([OWNER_A, OWNER_B])

    validate_threshold(owners, 1)
    validate_threshold(owners, 2)
    with pytest.raises(ConfigurationError):
        validate_threshold(owners, 0)
    with pytest.raises(ConfigurationError):
        validate_threshold(owners, 3)


def test_recover_signer_returns_signing_account():
    account = Account.from_key(KEYS[0])

    assert recover_signer(HASH, _sign(KEYS[0])) == account.address


def test_recover_signer_rejects_unsupported_v():
    signature = bytearray(_sign(KEYS[0]))
    signature[-1] = 1

    with pytest.raises(ValueError, match="Unsupported signature type"):
        recover_signer(HASH, bytes(signature))


def _eth_sign(key: str, digest: bytes = HASH) -> bytes:
    signed = Account.from_key(key).sign_message(encode_defunct(primitive=digest))
    signature = bytearray(signed.signature)
    signature[-1] += 4
    return bytes(signature)


def test_recover_signer_accepts_eth_sign_signature():
    account = Account.from_key(KEYS[1])

    assert recover_signer(HASH, _eth_sign(KEYS[1])) == account.address


def test_signature_set_accepts_eth_sign_confirmation():
    account = Account.from_key(KEYS[2])
    signatures = SignatureSet(HASH)

    signatures.add(account.address, _eth_sign(KEYS[2]))

    assert signatures.signers == [account.address]


def test_recover_signer_rejects_out_of_range_recovery_id():
    signature = bytearray(_sign(KEYS[0]))
    signature[-1] = 29

    with pytest.raises(ValueError, match="Malformed signature"):
        recover_signer(HASH, bytes(signature))


def test_signature_set_orders_by_owner_address():
    accounts = [Account.from_key(key) for key in KEYS]
    signatures = SignatureSet(HASH)
    for key, account in zip(reversed(KEYS), reversed(accounts)):
        signatures.add(account.address, _sign(key))

    expected = sorted((a.address for a in accounts), key=lambda a: int(a, 16))
    assert signatures.signers == expected
    assert signatures.encode() == b"".join(
        signatures.get(signer) for signer in expected
    )
    assert len(signatures.encode()) == 65 * 3


def test_signature_set_rejects_wrong_signer():
    signer = Account.from_key(KEYS[0])
    signatures = SignatureSet(HASH)

    with pytest.raises(ValueError, match="recovers to"):
        signatures.add(signer.address, _sign(KEYS[1]))
    assert len(signatures) == 0


def test_signature_set_rejects_wrong_length():
    signer = Account.from_key(KEYS[0])
    signatures = SignatureSet(HASH)

    with pytest.raises(ValueError, match="65 bytes"):
        signatures.add(signer.address, _sign(KEYS[0])[:64])


def test_transaction_intent_service_payload():
    intent = TransactionIntent(
        to=OWNER_B, value=10**16, data=b"\x12\x34", nonce=7
    )

    payload = intent.to_service_payload()

    assert payload == {
        "to": OWNER_B,
        "value": "10000000000000000",
        "data": "0x1234",
        "operation": int(SafeOperation.CALL),
        "safeTxGas": "0",
        "baseGas": "0",
        "gasPrice": "0",
        "gasToken": "0x0000000000000000000000000000000000000000",
        "refundReceiver": "0x0000000000000000000000000000000000000000",
        "nonce": 7,
    }
