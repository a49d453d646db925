"""Preflight checks run before any transaction is built or sent."""

from __future__ import annotations

from web3 import Web3

from ..chain import ChainClient
from ..errors import ConfigurationError
from ..units import format_wei
from .context import PipelineContext


async def ensure_chain_id(chain: ChainClient, expected: int) -> None:
    """Fail fast when the RPC endpoint serves a different chain.

    Raises:
        ConfigurationError: If the node reports another chain id
    """
    actual = await chain.get_chain_id()
    if actual != expected:
        raise ConfigurationError(
            f"RPC endpoint serves chain {actual}, configured chain_id is {expected}"
        )


async def load_safe_state(ctx: PipelineContext) -> None:
    """Check the Safe exists and load its owners, threshold and balance.

    Raises:
        ConfigurationError: If no contract is deployed at the Safe address
    """
    log = ctx.state.logger
    chain = ctx.chain

    if not await chain.is_contract(ctx.safe_address):
        raise ConfigurationError(f"No Safe deployed at {ctx.safe_address}")

    ctx.owners = await chain.get_safe_owners(ctx.safe_address)
    ctx.threshold = await chain.get_safe_threshold(ctx.safe_address)
    ctx.balance_before = await chain.get_balance(ctx.safe_address)

    log.info("Safe: %s", Web3.to_checksum_address(ctx.safe_address))
    log.info("Owners: %s", ", ".join(ctx.owners))
    log.info("Threshold: %d", ctx.threshold)
    log.info("Safe balance: %s", format_wei(ctx.balance_before))
