"""
Report and chat types for the compliance agent.

Field names of CheckReport follow the JSON contract the model is prompted to
produce (camelCase), so a parsed response validates without remapping.
"""

from enum import Enum
from typing import List, Literal

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    """Overall risk verdict of a compliance check."""
    SAFE = "safe"
    CAUTION = "caution"
    DANGER = "danger"


class CheckIssue(BaseModel):
    """A single problem found in the checked content."""
    originalText: str = Field(default="", description="Offending excerpt from the input")
    issue: str = Field(description="What is wrong")
    severity: Literal["critical", "warning", "info"] = "warning"
    country: str = Field(default="", description="Affected market, or 阿拉伯世界通用")
    category: str = Field(default="", description="Rule category, e.g. 宗教禁忌")
    suggestion: str = Field(default="", description="Concrete rewrite advice")
    explanation: str = Field(default="", description="Cultural background")


class CheckReport(BaseModel):
    """Structured compliance report returned by check_content."""
    overallScore: int = Field(ge=0, le=100, description="0-100, higher is safer")
    riskLevel: RiskLevel
    summary: str = ""
    issues: List[CheckIssue] = Field(default_factory=list)
    revisedText: str = ""
    cultureTips: str = ""

    @property
    def score_label(self) -> str:
        return score_label(self.overallScore)


class ChatMessage(BaseModel):
    """One turn of chat history."""
    role: str
    content: str


def score_label(score: int) -> str:
    """Human-readable label for an overall score."""
    if score <= 40:
        return "严重风险"
    if score <= 70:
        return "需修改"
    if score <= 90:
        return "基本安全"
    return "文化友好"
