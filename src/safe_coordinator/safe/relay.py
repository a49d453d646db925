"""Best-effort relay of proposals and confirmations to the Safe Transaction Service."""

from __future__ import annotations

import asyncio
import logging

from hexbytes import HexBytes
from web3 import Web3

from ..errors import RelayError
from ..models import RelayResult, SafeProposal, SignatureSet
from .api_client import SafeAPIClient

logger = logging.getLogger(__name__)


class RelaySubmitter:
    """Shares a proposal and its signatures so other owners can confirm out-of-band.

    Nothing in here raises on relay failures; problems are logged and
    returned as warnings on the ``RelayResult``.
    """

    def __init__(self, api: SafeAPIClient):
        self.api = api

    @staticmethod
    def _record(result: RelayResult, action: str, error: RelayError) -> None:
        if error.status is not None:
            logger.warning(
                "%s (status: %s, body: %s)", action, error.status, error.body
            )
        else:
            logger.warning("%s: %s", action, error)
        result.warnings.append(f"{action}: {error}")

    async def _is_known(self, proposal: SafeProposal) -> bool:
        try:
            tx = await asyncio.to_thread(
                self.api.get_transaction, proposal.safe_tx_hash_hex
            )
        except RelayError as e:
            logger.debug("Could not look up %s on relay: %s", proposal.safe_tx_hash_hex, e)
            return False
        return tx is not None

    async def submit(
        self,
        proposal: SafeProposal,
        signatures: SignatureSet,
        sender: str | None = None,
    ) -> RelayResult:
        """Propose with one signature, then confirm with the rest.

        Confirmations are only sent once the relay knows the transaction,
        either because this proposal succeeded or because it was proposed
        earlier (e.g. by another owner's run).

        Args:
            proposal: Proposal to share
            signatures: Signatures collected locally
            sender: Owner to propose as; defaults to the first signer

        Returns:
            RelayResult describing what the relay accepted
        """
        result = RelayResult()
        if len(signatures) == 0:
            result.warnings.append("No signatures available to relay")
            logger.warning("No signatures available to relay; skipping relay")
            return result

        if sender is None or sender not in signatures:
            sender = signatures.signers[0]
        sender = Web3.to_checksum_address(sender)
        sender_signature = signatures.get(sender)
        assert sender_signature is not None

        logger.info("Proposing to Safe Transaction Service (sender: %s)", sender)
        try:
            await asyncio.to_thread(
                self.api.propose_transaction, proposal, sender, sender_signature
            )
            result.proposed = True
            result.confirmed.append(sender)
            result.ui_url = self.api.get_safe_ui_url(proposal.safe_tx_hash_hex)
            logger.info("Proposed transaction to relay: %s", result.ui_url)
        except RelayError as e:
            self._record(result, "Relay proposal failed", e)
            if not await self._is_known(proposal):
                result.warnings.append(
                    "Relay confirmations skipped: transaction unknown to the relay"
                )
                logger.warning(
                    "Falling back to direct execution (relay confirmations skipped)"
                )
                return result
            logger.info("Transaction already known to relay; sending confirmations")

        for signer in signatures.signers:
            if signer == sender:
                continue
            signature = signatures.get(signer)
            assert signature is not None
            try:
                await asyncio.to_thread(
                    self.api.confirm_transaction, proposal.safe_tx_hash_hex, signature
                )
                result.confirmed.append(signer)
                logger.info("Confirmed transaction on relay with %s signature", signer)
            except RelayError as e:
                self._record(result, f"Relay confirmation by {signer} failed", e)

        return result

    async def fetch_confirmations(self, proposal: SafeProposal) -> SignatureSet:
        """Load confirmations stored by the relay for ``proposal``.

        Confirmations that do not verify against the proposal hash are
        dropped. An unreachable relay yields an empty set.
        """
        signatures = SignatureSet(proposal.safe_tx_hash)
        try:
            tx = await asyncio.to_thread(
                self.api.get_transaction, proposal.safe_tx_hash_hex
            )
        except RelayError as e:
            logger.warning("Could not fetch relay confirmations: %s", e)
            return signatures
        if tx is None:
            return signatures

        confirmations = tx.get("confirmations") or []
        if not isinstance(confirmations, list):
            logger.warning(
                "Ignoring malformed relay confirmations for %s",
                proposal.safe_tx_hash_hex,
            )
            confirmations = []

        for confirmation in confirmations:
            if not isinstance(confirmation, dict):
                continue
            owner = confirmation.get("owner")
            signature = confirmation.get("signature")
            if not owner or not signature:
                continue
            try:
                signatures.add(owner, HexBytes(signature))
            except ValueError as e:
                logger.warning("Ignoring relay confirmation from %s: %s", owner, e)

        logger.info(
            "Fetched %d confirmation(s) from relay for %s",
            len(signatures),
            proposal.safe_tx_hash_hex,
        )
        return signatures
