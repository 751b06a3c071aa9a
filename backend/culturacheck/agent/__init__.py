"""
Agent module for the CulturaCheck compliance advisor.

This module provides:
- Provider-neutral LLM client (OpenAI, Gemini, Anthropic)
- Prompt templates for checking, chat and keyword extraction
- Report types
- Rendering of retrieved rules into prompt sections
"""

from .types import (
    ChatMessage,
    CheckIssue,
    CheckReport,
    RiskLevel,
    score_label,
)
from .llm_client import LLMClient, LLMError

__all__ = [
    "ChatMessage",
    "CheckIssue",
    "CheckReport",
    "RiskLevel",
    "score_label",
    "LLMClient",
    "LLMError",
]
