from __future__ import annotations

from dataclasses import dataclass, field

from ..chain import ChainClient
from ..models import (
    ExecutionResult,
    RelayResult,
    SafeProposal,
    SignatureSet,
    ValidationResult,
)
from ..state import AppState


@dataclass
class PipelineContext:
    state: AppState
    chain: ChainClient
    safe_address: str
    owners: list[str] = field(default_factory=list)
    threshold: int = 0
    balance_before: int | None = None
    proposal: SafeProposal | None = None
    signatures: SignatureSet | None = None
    validation: ValidationResult | None = None
    relay_result: RelayResult | None = None
    execution: ExecutionResult | None = None

    @property
    def proposal_required(self) -> SafeProposal:
        if self.proposal is None:
            raise RuntimeError(
                "Proposal has not been set. Ensure build_proposal() is called before accessing this property."
            )
        return self.proposal

    @property
    def signatures_required(self) -> SignatureSet:
        if self.signatures is None:
            raise RuntimeError(
                "Signatures have not been set. Ensure collect_signatures() is called before accessing this property."
            )
        return self.signatures
