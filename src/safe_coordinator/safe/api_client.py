"""Safe API client for interacting with Safe Transaction Service."""

from __future__ import annotations

import logging
from typing import Any

import backoff
import requests
from web3 import Web3

from ..constants import NETWORK_PREFIXES, SAFE_SERVICE_URLS
from ..errors import RelayError
from ..models import SafeProposal

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def get_safe_service_url(chain_id: int) -> str:
    """Get Safe Transaction Service URL for chain.

    Args:
        chain_id: Network chain ID (e.g., 1 for mainnet, 11155111 for sepolia)

    Returns:
        Safe Transaction Service API URL

    Raises:
        ValueError: If chain_id is not supported
    """
    if chain_id not in SAFE_SERVICE_URLS:
        raise ValueError(
            f"Unsupported chain_id: {chain_id}. "
            f"Supported chains: {list(SAFE_SERVICE_URLS.keys())}"
        )
    return SAFE_SERVICE_URLS[chain_id]


def _is_permanent_error(e: Exception) -> bool:
    return (
        isinstance(e, requests.exceptions.HTTPError)
        and e.response is not None
        and e.response.status_code not in RETRYABLE_STATUS_CODES
    )


class SafeAPIClient:
    """Client for interacting with Safe Transaction Service using requests library.

    Every failure surfaces as ``RelayError`` carrying the HTTP status and
    response body, so callers can log them and move on.
    """

    def __init__(
        self,
        chain_id: int,
        safe_address: str,
        service_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 10.0,
    ):
        """Initialize Safe API client.

        Args:
            chain_id: Network chain ID
            safe_address: Safe contract address
            service_url: Transaction Service base URL (defaults per chain)
            api_key: Optional bearer token for the hosted Safe API
            timeout: Per-request timeout in seconds
        """
        self.chain_id = chain_id
        self.safe_address = Web3.to_checksum_address(safe_address)
        self.service_url = (service_url or get_safe_service_url(chain_id)).rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

    @backoff.on_exception(
        backoff.expo,
        requests.exceptions.RequestException,
        max_tries=3,
        giveup=_is_permanent_error,
        jitter=backoff.full_jitter,
    )
    def _send(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> requests.Response:
        response = self.session.request(
            method, f"{self.service_url}{path}", json=payload, timeout=self.timeout
        )
        response.raise_for_status()
        return response

    def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> requests.Response:
        try:
            return self._send(method, path, payload)
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            body = e.response.text if e.response is not None else ""
            raise RelayError(f"{method} {path} failed", status=status, body=body) from e
        except requests.exceptions.RequestException as e:
            raise RelayError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _json(
        response: requests.Response, method: str, path: str
    ) -> dict[str, Any]:
        """Decode a JSON object body, raising RelayError for anything else."""
        try:
            data = response.json()
        except ValueError as e:
            raise RelayError(
                f"{method} {path} returned invalid JSON",
                status=response.status_code,
                body=response.text,
            ) from e
        if not isinstance(data, dict):
            raise RelayError(
                f"{method} {path} returned unexpected {type(data).__name__} body",
                status=response.status_code,
                body=response.text,
            )
        return data

    def get_safe_info(self) -> dict[str, object]:
        """Fetch Safe configuration (owners, threshold, nonce).

        Returns:
            Dictionary with owners, threshold, and nonce

        Raises:
            RelayError: If fetching Safe info fails
        """
        path = f"/api/v1/safes/{self.safe_address}/"
        info = self._json(self._request("GET", path), "GET", path)
        return {
            "owners": info.get("owners", []),
            "threshold": info.get("threshold", 0),
            "nonce": info.get("nonce", 0),
        }

    def propose_transaction(
        self,
        proposal: SafeProposal,
        sender: str,
        signature: bytes,
        origin: str | None = None,
    ) -> str:
        """Propose transaction to Safe for signing.

        Args:
            proposal: Proposal built for this client's Safe
            sender: Owner address proposing the transaction
            signature: ``sender``'s signature over the proposal hash
            origin: Optional origin identifier

        Returns:
            Safe transaction hash

        Raises:
            ValueError: If the proposal targets a different Safe
            RelayError: If proposing transaction fails
        """
        if proposal.safe_address != self.safe_address:
            raise ValueError(
                f"Proposal is for Safe {proposal.safe_address}, "
                f"client is bound to {self.safe_address}"
            )

        payload: dict[str, Any] = {
            **proposal.intent.to_service_payload(),
            "contractTransactionHash": proposal.safe_tx_hash_hex,
            "sender": Web3.to_checksum_address(sender),
            "signature": "0x" + bytes(signature).hex(),
        }
        if origin:
            payload["origin"] = origin

        path = f"/api/v1/safes/{self.safe_address}/multisig-transactions/"
        response = self._request("POST", path, payload)
        # 201 Created may have empty body, return calculated hash
        if response.status_code == 201 or not response.content:
            logger.info("Transaction proposed successfully: %s", proposal.safe_tx_hash_hex)
            return proposal.safe_tx_hash_hex
        body = self._json(response, "POST", path)
        return str(body.get("safeTxHash") or proposal.safe_tx_hash_hex)

    def confirm_transaction(self, safe_tx_hash: str, signature: bytes) -> None:
        """Add an owner confirmation to an already proposed transaction.

        Raises:
            RelayError: If the confirmation is rejected
        """
        self._request(
            "POST",
            f"/api/v1/multisig-transactions/{safe_tx_hash}/confirmations/",
            {"signature": "0x" + bytes(signature).hex()},
        )
        logger.info("Confirmation submitted for %s", safe_tx_hash)

    def get_transaction(self, safe_tx_hash: str) -> dict[str, Any] | None:
        """Fetch a multisig transaction, or None if the service does not know it.

        Raises:
            RelayError: On any failure other than 404
        """
        path = f"/api/v1/multisig-transactions/{safe_tx_hash}/"
        try:
            response = self._request("GET", path)
        except RelayError as e:
            if e.status == 404:
                return None
            raise
        return self._json(response, "GET", path)

    def get_safe_ui_url(self, safe_tx_hash: str) -> str:
        """Generate Safe UI URL for transaction.

        Args:
            safe_tx_hash: Safe transaction hash

        Returns:
            Safe web app URL for the transaction
        """
        network_prefix = NETWORK_PREFIXES.get(self.chain_id, "eth")
        return (
            f"https://app.safe.global/transactions/queue"
            f"?safe={network_prefix}:{self.safe_address}"
            f"#{safe_tx_hash}"
        )
