"""Stages of the propose, sign, relay and execute flow."""

from __future__ import annotations

from eth_account.signers.local import LocalAccount

from ..models import RelayResult
from ..safe import (
    Executor,
    RelaySubmitter,
    SafeAPIClient,
    SignatureCollector,
    TransactionProposalBuilder,
)
from .context import PipelineContext


async def build_proposal(ctx: PipelineContext, to: str, value: int) -> None:
    s = ctx.state.settings
    builder = TransactionProposalBuilder(ctx.chain, ctx.safe_address, s.chain_id)
    ctx.proposal = await builder.build(to=to, value=value)


def owner_signers(
    ctx: PipelineContext, accounts: list[LocalAccount]
) -> list[LocalAccount]:
    """Keep only the configured accounts that own the Safe."""
    log = ctx.state.logger
    owners = {owner.lower() for owner in ctx.owners}
    signers = []
    for account in accounts:
        if account.address.lower() in owners:
            signers.append(account)
        else:
            log.warning("Configured key %s is not a Safe owner; skipping", account.address)
    return signers


def collect_signatures(ctx: PipelineContext, signers: list[LocalAccount]) -> None:
    proposal = ctx.proposal_required
    collector = SignatureCollector(ctx.threshold)
    ctx.signatures = collector.collect(proposal.safe_tx_hash, signers, ctx.signatures)


def validate_signatures(ctx: PipelineContext) -> None:
    collector = SignatureCollector(ctx.threshold)
    ctx.validation = collector.validate(
        ctx.proposal_required, ctx.signatures_required, ctx.owners
    )


def build_relay(ctx: PipelineContext) -> RelaySubmitter:
    s = ctx.state.settings
    api = SafeAPIClient(
        chain_id=s.chain_id,
        safe_address=ctx.safe_address,
        service_url=s.relay_url_resolved,
        api_key=s.relay_api_key.get_secret_value() if s.relay_api_key else None,
        timeout=s.request_timeout,
    )
    return RelaySubmitter(api)


async def relay_signatures(
    ctx: PipelineContext, relay: RelaySubmitter, sender: str
) -> RelayResult:
    """Share the proposal with the relay and pull back any remote confirmations."""
    log = ctx.state.logger
    proposal = ctx.proposal_required
    signatures = ctx.signatures_required

    ctx.relay_result = await relay.submit(proposal, signatures, sender=sender)
    for warning in ctx.relay_result.warnings:
        log.debug("Relay warning: %s", warning)

    if len(signatures) < ctx.threshold:
        remote = await relay.fetch_confirmations(proposal)
        owners = {owner.lower() for owner in ctx.owners}
        for signer in remote.signers:
            if signer.lower() not in owners:
                log.warning(
                    "Ignoring relay confirmation from %s: not a Safe owner", signer
                )
                continue
            if signer not in signatures:
                signature = remote.get(signer)
                assert signature is not None
                signatures.add(signer, signature)
        log.info(
            "Signatures after merging relay confirmations: %d/%d",
            len(signatures),
            ctx.threshold,
        )
    return ctx.relay_result


async def execute_proposal(ctx: PipelineContext, relayer: LocalAccount) -> None:
    """Execute on-chain; below-threshold signature sets are refused.

    Raises:
        ExecutionError: See ``Executor.execute``
    """
    executor = Executor(ctx.chain)
    ctx.execution = await executor.execute(
        ctx.proposal_required, ctx.signatures_required, ctx.threshold, relayer
    )
