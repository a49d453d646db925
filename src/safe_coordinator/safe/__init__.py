"""Safe deployment, proposal, signing, relay and execution."""

from .api_client import SafeAPIClient, get_safe_service_url
from .deployer import ThresholdAccountDeployer, predict_safe_address
from .executor import Executor, normalize_submission_response
from .relay import RelaySubmitter
from .signatures import SignatureCollector, sign_safe_tx_hash, validate_transaction
from .transaction_builder import TransactionProposalBuilder, calculate_safe_tx_hash

__all__ = [
    "SafeAPIClient",
    "get_safe_service_url",
    "ThresholdAccountDeployer",
    "predict_safe_address",
    "Executor",
    "normalize_submission_response",
    "RelaySubmitter",
    "SignatureCollector",
    "sign_safe_tx_hash",
    "validate_transaction",
    "TransactionProposalBuilder",
    "calculate_safe_tx_hash",
]
