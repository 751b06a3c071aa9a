"""
Render retrieved knowledge records into prompt sections.
"""

from typing import List

from ..knowledge.types import SearchResult


CHECK_RULES_HEADING = "【以下为与本次内容相关的文化规则，审核时请参考】"
CHAT_RULES_HEADING = "【参考知识库】"


def format_rule_line(result: SearchResult) -> str:
    """One prompt line: country tag, category, severity, content."""
    chunk = result.chunk
    return f"- [{chunk.country.value}] {chunk.category.value}（{chunk.severity.value}）：{chunk.content}"


def _build_section(heading: str, results: List[SearchResult]) -> str:
    if not results:
        return ""
    lines = "\n".join(format_rule_line(r) for r in results)
    return f"\n\n{heading}\n{lines}"


def build_check_rules_section(results: List[SearchResult]) -> str:
    """Rules block appended to the compliance-check user prompt."""
    return _build_section(CHECK_RULES_HEADING, results)


def build_chat_rules_section(results: List[SearchResult]) -> str:
    """Rules block appended to the chat system prompt."""
    return _build_section(CHAT_RULES_HEADING, results)
