"""
Knowledge retrieval module.

Contains:
- Knowledge record types and closed enums
- Load-once corpus store for the knowledge-base snapshot
- Dictionary-free mixed Chinese/English tokenizer
- Lexical ranker (term overlap x severity weight)
- Keyword expansion search (model-extracted keywords + raw query, merged)
"""

from .types import (
    Category,
    Country,
    KnowledgeRecord,
    SearchResult,
    Severity,
    severity_weight,
)
from .tokenizer import tokenize
from .corpus_store import (
    CorpusLoadError,
    CorpusStore,
    KnowledgeBaseError,
    QuarantinedRecord,
)
from .lexical_ranker import LexicalRanker
from .keyword_expansion import (
    KeywordExpansionSearch,
    KeywordExtractor,
    LLMKeywordExtractor,
    parse_keyword_array,
)

__all__ = [
    "Category",
    "Country",
    "KnowledgeRecord",
    "SearchResult",
    "Severity",
    "severity_weight",
    "tokenize",
    "CorpusLoadError",
    "CorpusStore",
    "KnowledgeBaseError",
    "QuarantinedRecord",
    "LexicalRanker",
    "KeywordExpansionSearch",
    "KeywordExtractor",
    "LLMKeywordExtractor",
    "parse_keyword_array",
]
