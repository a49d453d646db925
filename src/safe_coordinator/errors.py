"""Error taxonomy for the Safe coordination workflow."""

from __future__ import annotations


class CoordinatorError(Exception):
    """Base class for all coordinator failures."""


class ConfigurationError(CoordinatorError):
    """Missing or invalid input detected before any network call is made."""


class SubmissionError(CoordinatorError):
    """Raised when the Safe deployment transaction cannot be broadcast or mined."""


class RelayError(CoordinatorError):
    """Transport or protocol failure while talking to the Safe Transaction Service.

    Relay failures never stop the workflow; callers log them and continue with
    direct execution.
    """

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is None:
            return base
        return f"{base} (status={self.status}, body={self.body})"


class ExecutionError(CoordinatorError):
    """On-chain execution failed or its transaction hash could not be located."""


class ValidationWarning(UserWarning):
    """An aggregated Safe transaction failed the local validity predicate."""
