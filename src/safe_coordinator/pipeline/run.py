"""High-level pipeline orchestration."""

from __future__ import annotations

from web3 import Web3

from ..chain import ChainClient
from ..errors import ConfigurationError
from ..models import DeploymentResult, PendingAccount, SafeStatus
from ..report import format_proposal_table
from ..safe import RelaySubmitter, ThresholdAccountDeployer
from ..state import AppState
from ..units import format_wei
from .context import PipelineContext
from .preflight import ensure_chain_id, load_safe_state
from .transfer import (
    build_proposal,
    build_relay,
    collect_signatures,
    execute_proposal,
    owner_signers,
    relay_signatures,
    validate_signatures,
)


def _chain_for(state: AppState, chain: ChainClient | None) -> ChainClient:
    if chain is not None:
        return chain
    s = state.settings
    return ChainClient.from_rpc(s.rpc_url_required, s.request_timeout)


async def predict_deployment(
    state: AppState, chain: ChainClient | None = None
) -> PendingAccount:
    """Derive the counterfactual Safe address for the configured owners.

    Nothing is broadcast; the prediction only needs the factory's proxy
    creation code.
    """
    s = state.settings
    s.require("rpc_url")
    chain = _chain_for(state, chain)
    await ensure_chain_id(chain, s.chain_id)

    owners = s.owners
    if len(owners) == 0:
        raise ConfigurationError(
            f"No owners configured; set {s.env_name('owner_private_keys')} "
            f"or {s.env_name('owner_addresses')}"
        )

    deployer = ThresholdAccountDeployer(chain, s.chain_id, s.safe_deployment)
    return await deployer.predict(owners, s.threshold, s.salt_nonce)


async def run_deploy(
    state: AppState, chain: ChainClient | None = None
) -> DeploymentResult:
    """Predict, then deploy the Safe unless code already exists there.

    Args:
        state: Application state containing settings and logger
        chain: Chain client to use instead of one built from ``rpc_url``

    Returns:
        DeploymentResult for the predicted address
    """
    s = state.settings
    log = state.logger
    s.require("rpc_url", "deployer_private_key")
    chain = _chain_for(state, chain)

    pending = await predict_deployment(state, chain)
    log.info(
        "Deploying %d-of-%d Safe for owners: %s",
        pending.threshold,
        len(pending.owners),
        ", ".join(pending.owners),
    )

    deployer = ThresholdAccountDeployer(chain, s.chain_id, s.safe_deployment)
    result = await deployer.deploy(pending, s.deployer_account)
    if result.already_deployed:
        log.info("Safe already deployed at %s", result.safe_address)
    else:
        log.info("Safe deployed at %s (tx: %s)", result.safe_address, result.tx_hash)
    return result


async def run_transfer(
    state: AppState,
    chain: ChainClient | None = None,
    relay: RelaySubmitter | None = None,
) -> PipelineContext:
    """Move ``transfer_amount_eth`` from the Safe to ``recipient``.

    This is a thin orchestrator that sequences the pipeline steps:
    1. Preflight checks (chain id, Safe code, owners, threshold)
    2. Proposal build against the live nonce
    3. Local signature collection
    4. Relay proposal and confirmations (best effort)
    5. Local validation (warning only)
    6. Execution (skipped on dry run)

    Args:
        state: Application state containing settings and logger
        chain: Chain client to use instead of one built from ``rpc_url``
        relay: Relay submitter to use instead of one built from settings

    Returns:
        The pipeline context holding proposal, signatures and results

    Raises:
        ConfigurationError: If required settings are missing or wrong
        ExecutionError: If execution is refused or fails on-chain
    """
    s = state.settings
    log = state.logger
    s.require("rpc_url", "owner_private_keys", "safe_address", "recipient")
    chain = _chain_for(state, chain)

    safe_address = Web3.to_checksum_address(s.safe_address_required)
    recipient = Web3.to_checksum_address(s.recipient_required)
    amount = s.transfer_amount_wei

    log.info(
        "Starting transfer",
        extra={"safe": safe_address, "recipient": recipient, "dry_run": s.dry_run},
    )

    ctx = PipelineContext(state=state, chain=chain, safe_address=safe_address)
    await ensure_chain_id(chain, s.chain_id)
    await load_safe_state(ctx)

    signers = owner_signers(ctx, s.owner_accounts)
    if not signers:
        raise ConfigurationError(
            f"None of {s.env_name('owner_private_keys')} belongs to an owner of {safe_address}"
        )

    log.info("Transfer: %s to %s", format_wei(amount), recipient)
    await build_proposal(ctx, recipient, amount)
    collect_signatures(ctx, signers)

    if s.relay_enabled:
        if relay is None:
            relay = build_relay(ctx)
        await relay_signatures(ctx, relay, sender=signers[0].address)
    else:
        log.info("Relay disabled; skipping Safe Transaction Service")

    validate_signatures(ctx)

    if s.dry_run:
        log.info("Dry run: not executing")
        format_proposal_table(
            ctx.proposal_required, ctx.signatures_required, ctx.validation
        )
        return ctx

    await execute_proposal(ctx, relayer=signers[0])

    balance_after = await chain.get_balance(safe_address)
    log.info(
        "Safe balance: %s -> %s",
        format_wei(ctx.balance_before or 0),
        format_wei(balance_after),
    )
    log.info("Transfer completed", extra={"safe": safe_address})
    return ctx


async def fetch_status(
    state: AppState, chain: ChainClient | None = None
) -> SafeStatus:
    """Read balance, owners, threshold and nonce of the configured Safe."""
    s = state.settings
    s.require("rpc_url", "safe_address")
    chain = _chain_for(state, chain)
    safe_address = Web3.to_checksum_address(s.safe_address_required)

    if not await chain.is_contract(safe_address):
        raise ConfigurationError(f"No Safe deployed at {safe_address}")

    return SafeStatus(
        address=safe_address,
        balance=await chain.get_balance(safe_address),
        owners=list(await chain.get_safe_owners(safe_address)),
        threshold=await chain.get_safe_threshold(safe_address),
        nonce=await chain.get_safe_nonce(safe_address),
    )
