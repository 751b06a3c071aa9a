"""
Core types for the knowledge retrieval module.

Knowledge records are validated once, at the point where the corpus snapshot
is ingested. Country, category and severity are closed sets; a record carrying
a value outside them never reaches the ranker.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class Country(str, Enum):
    """Markets covered by the knowledge base."""
    SAUDI_ARABIA = "沙特阿拉伯"
    UAE = "阿联酋"
    QATAR = "卡塔尔"
    KUWAIT = "科威特"
    OMAN = "阿曼"
    BAHRAIN = "巴林"
    EGYPT = "埃及"
    PAN_ARAB = "阿拉伯世界通用"  # applies across the region


class Category(str, Enum):
    """Topical category of a cultural rule."""
    BUSINESS_ETIQUETTE = "商务礼仪"
    RELIGIOUS_TABOO = "宗教禁忌"
    DIETARY_CULTURE = "饮食文化"
    DRESS_CODE = "穿着规范"
    COMMUNICATION_STYLE = "沟通方式"
    HOLIDAYS = "节日习俗"
    NEGOTIATION = "商务谈判"
    SOCIAL_ETIQUETTE = "社交礼仪"
    VISUAL_DESIGN = "视觉设计"
    NUMBERS_AND_COLORS = "数字与颜色"
    WOMEN_IN_BUSINESS = "女性商务"
    GIFT_GIVING = "送礼文化"


class Severity(str, Enum):
    """Risk level of a cultural rule."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


SEVERITY_WEIGHT = {
    Severity.CRITICAL.value: 3,
    Severity.WARNING.value: 2,
    Severity.INFO.value: 1,
}


def severity_weight(severity: str) -> int:
    """Scoring weight for a severity level; unknown levels weigh 1."""
    return SEVERITY_WEIGHT.get(getattr(severity, "value", severity), 1)


class KnowledgeRecord(BaseModel):
    """A single cultural rule from the knowledge base."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique identifier within the corpus")
    content: str = Field(description="Natural-language description of the rule")
    country: Country
    category: Category
    severity: Severity
    tags: Tuple[str, ...] = Field(default_factory=tuple, description="Extra matchable terms")
    source: str = Field(default="", description="Attribution label, not scored")
    scenario: str = Field(default="", description="Usage-context hint, not scored")

    @property
    def weight(self) -> int:
        return severity_weight(self.severity)

    _match_text: str = PrivateAttr(default="")

    def model_post_init(self, __context) -> None:
        self._match_text = self.searchable_text.lower()

    @property
    def searchable_text(self) -> str:
        """Text the lexical ranker matches query tokens against."""
        return " ".join([self.content, self.category.value, " ".join(self.tags)])

    @property
    def match_text(self) -> str:
        """Lowercased ``searchable_text``, computed once at validation."""
        return self._match_text


@dataclass
class SearchResult:
    """A knowledge record paired with its relevance score for one query."""
    chunk: KnowledgeRecord
    score: float

    @property
    def record_id(self) -> str:
        return self.chunk.id
