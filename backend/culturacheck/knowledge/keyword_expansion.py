"""
Keyword expansion search.

Broadens recall of the lexical ranker: an auxiliary model call extracts a
handful of salient and culturally related terms from the query, each term is
searched narrowly, the raw query is searched broadly, and the result sets are
merged by record id keeping each record's best score.

Expansion is best-effort. Any failure in the extraction step (service error,
malformed output, timeout) degrades to zero keywords, and the raw-query
search alone still runs.
"""

import asyncio
import json
import logging
import re
from typing import Dict, List, Optional, Protocol, runtime_checkable

from prometheus_client import Counter

from ..agent.prompts import KEYWORD_EXTRACTION_PROMPT
from .lexical_ranker import FilterValue, LexicalRanker, query_terms
from .types import SearchResult


logger = logging.getLogger("culturacheck.knowledge.keyword_expansion")

EXPANDED_SEARCH_LIMIT = 15
KEYWORD_SEARCH_LIMIT = 5
RAW_QUERY_SEARCH_LIMIT = 10
MAX_KEYWORDS = 8

KEYWORD_EXPANSION_FAILURES = Counter(
    "keyword_expansion_failures_total",
    "Keyword extraction calls that failed and fell back to the raw query",
    ["reason"],
)

_FENCE = re.compile(r"```(?:json)?\s*|```")
_ARRAY = re.compile(r"\[[\s\S]*\]")


@runtime_checkable
class KeywordExtractor(Protocol):
    """Capability that turns free text into search keywords. May raise."""

    def extract_keywords(self, text: str) -> List[str]:
        ...


def parse_keyword_array(raw: str, max_keywords: int = MAX_KEYWORDS) -> List[str]:
    """
    Parse a model response expected to hold a JSON array of strings.

    Markdown code fences are stripped and the first ``[...]`` span is parsed.
    Non-string and blank items are dropped, duplicates removed (first
    occurrence wins) and the list capped at ``max_keywords``.

    Raises:
        ValueError: If no JSON array can be parsed from the response
    """
    cleaned = _FENCE.sub("", raw or "").strip()
    match = _ARRAY.search(cleaned)
    if not match:
        raise ValueError(f"No JSON array in keyword response: {cleaned[:200]!r}")

    data = json.loads(match.group(0))
    if not isinstance(data, list):
        raise ValueError("Keyword response is not a JSON array")

    keywords: List[str] = []
    for item in data:
        if not isinstance(item, str):
            continue
        keyword = item.strip()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords[:max_keywords]


class LLMKeywordExtractor:
    """Keyword extractor backed by the external language model."""

    def __init__(self, llm_client, max_tokens: int = 200) -> None:
        """
        Args:
            llm_client: LLMClient used for the extraction call
            max_tokens: Response budget for the extraction call
        """
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._prompt = KEYWORD_EXTRACTION_PROMPT

    def extract_keywords(self, text: str) -> List[str]:
        raw = self._llm.complete(
            system=self._prompt,
            messages=[{"role": "user", "content": text}],
            max_tokens=self._max_tokens,
            temperature=0.0,
            tier="mini",
        )
        return parse_keyword_array(raw)


class KeywordExpansionSearch:
    """
    Orchestrates keyword extraction and the lexical sub-searches.

    Example:
        >>> expansion = KeywordExpansionSearch(ranker, LLMKeywordExtractor(llm))
        >>> results = await expansion.expanded_search("我们想在斋月期间去利雅得拜访客户")
        >>> len(results) <= 15
        True
    """

    def __init__(
        self,
        ranker: LexicalRanker,
        extractor: Optional[KeywordExtractor] = None,
        timeout: Optional[float] = None,
        result_limit: int = EXPANDED_SEARCH_LIMIT,
        keyword_limit: int = KEYWORD_SEARCH_LIMIT,
        raw_query_limit: int = RAW_QUERY_SEARCH_LIMIT,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            ranker: Lexical ranker used for every sub-search
            extractor: Keyword extractor; None disables expansion
            timeout: Seconds to wait for keyword extraction (None waits indefinitely)
            result_limit: Cap on the merged result list
            keyword_limit: Per-keyword search limit
            raw_query_limit: Limit for the raw-query search
        """
        self._ranker = ranker
        self._extractor = extractor
        self._timeout = timeout
        self._result_limit = result_limit
        self._keyword_limit = keyword_limit
        self._raw_query_limit = raw_query_limit

    @property
    def ranker(self) -> LexicalRanker:
        """Get the lexical ranker."""
        return self._ranker

    async def extract_keywords(self, query: str) -> List[str]:
        """
        Run the extractor off the event loop, absorbing every failure.

        Returns:
            Extracted keywords, or an empty list when extraction is disabled,
            the query is blank or the call fails
        """
        if self._extractor is None or not query or not query.strip():
            return []

        loop = asyncio.get_running_loop()
        try:
            call = loop.run_in_executor(None, self._extractor.extract_keywords, query)
            raw_keywords = await asyncio.wait_for(call, timeout=self._timeout)
            keywords = [k.strip() for k in raw_keywords if isinstance(k, str) and k.strip()]
        except asyncio.TimeoutError:
            KEYWORD_EXPANSION_FAILURES.labels(reason="timeout").inc()
            logger.warning(
                "Keyword extraction timed out, searching raw query only",
                extra={"timeout_s": self._timeout},
            )
            return []
        except Exception as exc:
            KEYWORD_EXPANSION_FAILURES.labels(reason=type(exc).__name__).inc()
            logger.warning(f"Keyword extraction failed, searching raw query only: {exc}")
            return []

        return keywords

    async def expanded_search(
        self,
        query: str,
        country: FilterValue = None,
        category: FilterValue = None,
    ) -> List[SearchResult]:
        """
        Search with model-expanded keywords plus the raw query.

        Args:
            query: Raw user text
            country: Optional country filter, forwarded to every sub-search
            category: Optional category filter, forwarded to every sub-search

        Returns:
            Up to ``result_limit`` results sorted by score (descending), one
            per record id, each carrying its best sub-search score
        """
        extracted = await self.extract_keywords(query)
        # a keyword with no usable tokens would hit the ranker's unranked fallback
        keywords = [k for k in extracted if query_terms(k)]
        if len(keywords) < len(extracted):
            logger.debug(
                "Skipped keywords without searchable terms",
                extra={"skipped": [k for k in extracted if k not in keywords]},
            )

        result_sets: List[List[SearchResult]] = [
            self._ranker.search(keyword, country=country, category=category, limit=self._keyword_limit)
            for keyword in keywords
        ]
        result_sets.append(
            self._ranker.search(query, country=country, category=category, limit=self._raw_query_limit)
        )

        merged = self._merge(result_sets)

        logger.info(
            "Expanded search completed",
            extra={
                "keywords": keywords,
                "sub_searches": len(result_sets),
                "results": len(merged),
            },
        )
        return merged[:self._result_limit]

    @staticmethod
    def _merge(result_sets: List[List[SearchResult]]) -> List[SearchResult]:
        """Deduplicate by record id keeping the maximum score, sorted descending."""
        best: Dict[str, SearchResult] = {}
        for results in result_sets:
            for result in results:
                current = best.get(result.record_id)
                if current is None or result.score > current.score:
                    best[result.record_id] = result
        return sorted(best.values(), key=lambda r: r.score, reverse=True)
