"""Console rendering of coordinator results."""

from .formatter import format_execution_result, format_proposal_table, format_safe_status

__all__ = ["format_execution_result", "format_proposal_table", "format_safe_status"]
