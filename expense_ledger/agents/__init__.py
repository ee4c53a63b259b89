"""AI Agents package."""

from expense_ledger.agents.analysis_agent import (
    EMPTY_FALLBACK,
    NO_KEY_FALLBACK,
    OFFLINE_FALLBACK,
    AnalysisResponseError,
    SpendingAnalysisAgent,
    format_vnd,
)

__all__ = [
    "EMPTY_FALLBACK",
    "NO_KEY_FALLBACK",
    "OFFLINE_FALLBACK",
    "AnalysisResponseError",
    "SpendingAnalysisAgent",
    "format_vnd",
]
