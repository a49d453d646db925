"""Owner signature collection and local Safe validity checks."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Iterable, Sequence

from eth_account.signers.local import LocalAccount
from safe_eth.safe.safe_signature import SafeSignature

from ..errors import ValidationWarning
from ..models import SafeProposal, SignatureSet, ValidationResult

logger = logging.getLogger(__name__)


def sign_safe_tx_hash(account: LocalAccount, safe_tx_hash: bytes) -> bytes:
    """Sign a Safe transaction hash directly (no EIP-191 prefix).

    ECDSA nonces are derived per RFC 6979, so the same key and hash always
    produce the same 65-byte ``r || s || v`` signature with ``v`` in {27, 28}.
    """
    signed = account.unsafe_sign_hash(bytes(safe_tx_hash))
    return bytes(signed.signature)


def validate_transaction(
    proposal: SafeProposal,
    signatures: SignatureSet,
    owners: Iterable[str],
    threshold: int,
) -> ValidationResult:
    """Check a signed proposal the way ``Safe.checkSignatures`` would.

    The packed signatures must parse into owner signatures over the
    proposal hash, sorted by strictly ascending owner address, and there
    must be at least ``threshold`` of them.
    """
    if bytes(signatures.safe_tx_hash) != bytes(proposal.safe_tx_hash):
        return ValidationResult(
            valid=False, reason="Signatures were collected for a different hash"
        )

    owner_lookup = {owner.lower() for owner in owners}
    parsed = SafeSignature.parse_signature(
        signatures.encode(), bytes(proposal.safe_tx_hash)
    )
    signers = [str(signature.owner) for signature in parsed]

    previous = 0
    for signer in signers:
        if signer.lower() not in owner_lookup:
            return ValidationResult(
                valid=False, reason=f"{signer} is not a Safe owner", signers=signers
            )
        if int(signer, 16) <= previous:
            return ValidationResult(
                valid=False,
                reason="Signatures are not sorted by ascending owner address",
                signers=signers,
            )
        previous = int(signer, 16)

    if len(signers) < threshold:
        return ValidationResult(
            valid=False,
            reason=f"Only {len(signers)} of {threshold} required signatures",
            signers=signers,
        )

    return ValidationResult(
        valid=True,
        reason=f"{len(signers)} valid owner signature(s), threshold {threshold}",
        signers=signers,
    )


class SignatureCollector:
    """Collects owner signatures for a Safe transaction until the threshold is met."""

    def __init__(self, threshold: int):
        if threshold <= 0:
            raise ValueError(f"threshold must be positive, got {threshold}")
        self.threshold = threshold

    def collect(
        self,
        safe_tx_hash: bytes,
        signers: Sequence[LocalAccount],
        signatures: SignatureSet | None = None,
    ) -> SignatureSet:
        """Sign ``safe_tx_hash`` with each account in turn.

        Signing stops as soon as the set holds ``threshold`` signatures.
        Accounts that already signed (e.g. via the relay) are skipped.

        Args:
            safe_tx_hash: Hash returned by the proposal builder
            signers: Owner credentials available to this process
            signatures: Existing signatures to extend, if any

        Returns:
            The signature set, possibly still below threshold
        """
        if signatures is None:
            signatures = SignatureSet(safe_tx_hash)

        for account in signers:
            if len(signatures) >= self.threshold:
                break
            if account.address in signatures:
                logger.debug("Owner %s already signed", account.address)
                continue
            signatures.add(account.address, sign_safe_tx_hash(account, safe_tx_hash))
            logger.info(
                "Signature %d/%d added by %s",
                len(signatures),
                self.threshold,
                account.address,
            )

        if len(signatures) < self.threshold:
            logger.warning(
                "Collected %d of %d required signatures",
                len(signatures),
                self.threshold,
            )
        return signatures

    def validate(
        self,
        proposal: SafeProposal,
        signatures: SignatureSet,
        owners: Iterable[str],
    ) -> ValidationResult:
        """Run the local validity predicate; a failure only warns.

        Execution is the authoritative check, so an invalid result is
        reported as a ``ValidationWarning`` and returned to the caller.
        """
        result = validate_transaction(proposal, signatures, owners, self.threshold)
        if result.valid:
            logger.info("Local validation passed: %s", result.reason)
        else:
            warnings.warn(
                f"Safe transaction {proposal.safe_tx_hash_hex} failed local "
                f"validation: {result.reason}",
                ValidationWarning,
                stacklevel=2,
            )
        return result
