"""Network and Safe deployment constants."""

from typing import TypedDict

from eth_utils import keccak


class SafeDeployment(TypedDict):
    """Canonical Safe v1.4.1 contract addresses for a network."""

    singleton: str
    proxy_factory: str
    fallback_handler: str


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

SEPOLIA_CHAIN_ID = 11155111

# Canonical singleton factory deployments, identical on every supported chain.
# https://github.com/safe-global/safe-deployments/tree/main/src/assets/v1.4.1
_SAFE_V141_L2: SafeDeployment = {
    "singleton": "0x29fcB43b46531BcA003ddC8FCB67FFE91900C762",
    "proxy_factory": "0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67",
    "fallback_handler": "0xfd0732Dc9E303f09fCEf3a7388Ad10A83459Ec99",
}

_SAFE_V141_L1: SafeDeployment = {
    "singleton": "0x41675C099F32341bf84BFc5382aF534df5C7461a",
    "proxy_factory": "0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67",
    "fallback_handler": "0xfd0732Dc9E303f09fCEf3a7388Ad10A83459Ec99",
}

SAFE_DEPLOYMENTS: dict[int, SafeDeployment] = {
    1: _SAFE_V141_L1,
    11155111: _SAFE_V141_L2,
    100: _SAFE_V141_L2,
    137: _SAFE_V141_L2,
    8453: _SAFE_V141_L2,
    42161: _SAFE_V141_L2,
    10: _SAFE_V141_L2,
}

# Safe Transaction Service URLs by chain ID
SAFE_SERVICE_URLS = {
    1: "https://safe-transaction-mainnet.safe.global",
    11155111: "https://safe-transaction-sepolia.safe.global",
    100: "https://safe-transaction-gnosis-chain.safe.global",
    137: "https://safe-transaction-polygon.safe.global",
    8453: "https://safe-transaction-base.safe.global",
    42161: "https://safe-transaction-arbitrum.safe.global",
    10: "https://safe-transaction-optimism.safe.global",
}

# Network names for UI URL generation
NETWORK_PREFIXES = {
    1: "eth",
    11155111: "sep",
    100: "gno",
    137: "matic",
    8453: "base",
    42161: "arb1",
    10: "oeth",
}

# Salt the Safe SDK derives its chain-specific default salt nonce from
PREDETERMINED_SALT_NONCE = "0x" + keccak(text="Safe Account Abstraction").hex()
