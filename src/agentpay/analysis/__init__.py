"""Analysis collaborators (natural-language parsing and risk scoring)."""

from agentpay.analysis.base import AnalysisClient
from agentpay.analysis.chat import ChatCompletionAnalysisClient

__all__ = [
    "AnalysisClient",
    "ChatCompletionAnalysisClient",
]
