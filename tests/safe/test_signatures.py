"""Tests for owner signing, collection and local validation."""

from __future__ import annotations

import pytest
from eth_account import Account
from hexbytes import HexBytes

from safe_coordinator.constants import SEPOLIA_CHAIN_ID
from safe_coordinator.errors import ValidationWarning
from safe_coordinator.models import SafeProposal, SignatureSet, TransactionIntent
from safe_coordinator.safe.signatures import (
    SignatureCollector,
    sign_safe_tx_hash,
    validate_transaction,
)
from safe_coordinator.safe.transaction_builder import calculate_safe_tx_hash

SAFE = "0x1234567890123456789012345678901234567890"
RECIPIENT = "0x2234567890123456789012345678901234567890"
OWNERS = [Account.from_key("0x" + f"{i:02x}" * 32) for i in (0x11, 0x22, 0x33)]
OUTSIDER = Account.from_key("0x" + "44" * 32)


@pytest.fixture
def proposal() -> SafeProposal:
    intent = TransactionIntent(to=RECIPIENT, value=10**16, nonce=3)
    return SafeProposal(
        safe_address=SAFE,
        chain_id=SEPOLIA_CHAIN_ID,
        intent=intent,
        safe_tx_hash=calculate_safe_tx_hash(SAFE, SEPOLIA_CHAIN_ID, intent),
    )


def _owner_addresses() -> list[str]:
    return [owner.address for owner in OWNERS]


def test_signing_is_deterministic(proposal):
    first = sign_safe_tx_hash(OWNERS[0], proposal.safe_tx_hash)
    second = sign_safe_tx_hash(OWNERS[0], proposal.safe_tx_hash)

    assert first == second
    assert len(first) == 65
    assert first[-1] in (27, 28)


def test_collector_stops_at_threshold(proposal):
    collector = SignatureCollector(threshold=2)

    signatures = collector.collect(proposal.safe_tx_hash, OWNERS)

    assert len(signatures) == 2
    assert set(signatures.signers) == {OWNERS[0].address, OWNERS[1].address}


def test_collector_skips_owners_that_already_signed(proposal):
    existing = SignatureSet(proposal.safe_tx_hash)
    existing.add(
        OWNERS[0].address, sign_safe_tx_hash(OWNERS[0], proposal.safe_tx_hash)
    )
    collector = SignatureCollector(threshold=2)

    signatures = collector.collect(proposal.safe_tx_hash, OWNERS, existing)

    assert signatures is existing
    assert set(signatures.signers) == {OWNERS[0].address, OWNERS[1].address}


def test_collector_returns_partial_set_below_threshold(proposal):
    collector = SignatureCollector(threshold=3)

    signatures = collector.collect(proposal.safe_tx_hash, OWNERS[:1])

    assert len(signatures) == 1


def test_collector_rejects_non_positive_threshold():
    with pytest.raises(ValueError):
        SignatureCollector(threshold=0)


def test_validate_accepts_threshold_owner_signatures(proposal):
    signatures = SignatureCollector(2).collect(proposal.safe_tx_hash, OWNERS)

    result = validate_transaction(proposal, signatures, _owner_addresses(), 2)

    assert result.valid is True
    assert result.signers == signatures.signers


def test_validate_rejects_too_few_signatures(proposal):
    signatures = SignatureCollector(1).collect(proposal.safe_tx_hash, OWNERS)

    result = validate_transaction(proposal, signatures, _owner_addresses(), 2)

    assert result.valid is False
    assert "1 of 2" in result.reason


def test_validate_rejects_non_owner(proposal):
    signatures = SignatureSet(proposal.safe_tx_hash)
    for account in (OWNERS[0], OUTSIDER):
        signatures.add(account.address, sign_safe_tx_hash(account, proposal.safe_tx_hash))

    result = validate_transaction(proposal, signatures, _owner_addresses(), 2)

    assert result.valid is False
    assert OUTSIDER.address in result.reason


def test_validate_rejects_signatures_for_other_hash(proposal):
    other = SignatureSet(HexBytes(b"\x01" * 32))

    result = validate_transaction(proposal, other, _owner_addresses(), 1)

    assert result.valid is False


def test_collector_validate_warns_on_failure(proposal):
    collector = SignatureCollector(threshold=2)
    signatures = SignatureCollector(1).collect(proposal.safe_tx_hash, OWNERS)

    with pytest.warns(ValidationWarning, match="failed local validation"):
        result = collector.validate(proposal, signatures, _owner_addresses())

    assert result.valid is False
