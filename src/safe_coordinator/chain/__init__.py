"""Chain access used by the deployment and execution stages."""

from .client import ChainClient

__all__ = ["ChainClient"]
