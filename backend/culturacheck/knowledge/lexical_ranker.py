"""
Lexical ranker over the knowledge base.

Scores records by term overlap with the query, weighted by severity. This is
substring matching, not semantic similarity: a query token counts as a hit
when it occurs anywhere in a record's searchable text (content, category and
tags), including inside a longer word.

    score = (distinct query tokens found in the record) x severity weight

Weights: critical=3, warning=2, info=1.
"""

import logging
from typing import List, Optional, Set, Tuple, Union

from .corpus_store import CorpusStore
from .tokenizer import MIN_TOKEN_LENGTH, tokenize
from .types import Category, Country, KnowledgeRecord, SearchResult


logger = logging.getLogger("culturacheck.knowledge.lexical_ranker")

DEFAULT_LIMIT = 10

FilterValue = Optional[Union[str, Country, Category]]


def _filter_value(value: FilterValue) -> Optional[str]:
    # "" arrives from empty query-string parameters and means no filter
    if not value:
        return None
    return getattr(value, "value", value)


def query_terms(query: str) -> Set[str]:
    """Lowercased distinct tokens of ``query`` that take part in matching."""
    return {t.lower() for t in tokenize(query) if len(t) >= MIN_TOKEN_LENGTH}


class LexicalRanker:
    """
    Term-overlap search over an immutable corpus.

    Example:
        >>> ranker = LexicalRanker(store)
        >>> results = ranker.search("斋月工作时间", country="沙特阿拉伯", limit=5)
        >>> [r.chunk.id for r in results]
        ['sa-ramadan-hours']
    """

    def __init__(self, store: CorpusStore) -> None:
        """
        Initialize the ranker.

        Args:
            store: Corpus store holding the knowledge records
        """
        self._store = store

    @property
    def store(self) -> CorpusStore:
        """Get the underlying corpus store."""
        return self._store

    def search(
        self,
        query: str,
        country: FilterValue = None,
        category: FilterValue = None,
        limit: int = DEFAULT_LIMIT,
    ) -> List[SearchResult]:
        """
        Rank knowledge records against a query.

        When the query yields no tokens, the first ``limit`` records passing
        the filters (in corpus order) are returned, each scored by its
        severity weight alone, so callers always get some context.

        Args:
            query: Free-form query text
            country: Optional exact country filter
            category: Optional exact category filter
            limit: Maximum number of results to return

        Returns:
            List of SearchResult objects sorted by score (descending); ties
            keep corpus order
        """
        if limit <= 0:
            return []

        candidates = self._filtered(_filter_value(country), _filter_value(category))
        tokens = query_terms(query)

        if not tokens:
            fallback = [
                SearchResult(chunk=record, score=record.weight)
                for record in candidates[:limit]
            ]
            return sorted(fallback, key=lambda r: r.score, reverse=True)

        results: List[SearchResult] = []
        for record in candidates:
            hits = self._count_hits(record, tokens)
            if hits == 0:
                continue
            results.append(SearchResult(chunk=record, score=hits * record.weight))

        # sorted() is stable, equal scores keep corpus order
        results = sorted(results, key=lambda r: r.score, reverse=True)

        logger.debug(
            "Lexical search completed",
            extra={"tokens": len(tokens), "matched": len(results), "limit": limit},
        )
        return results[:limit]

    def _filtered(self, country: Optional[str], category: Optional[str]) -> Tuple[KnowledgeRecord, ...]:
        records = self._store.records
        if country is None and category is None:
            return records
        return tuple(
            record for record in records
            if (country is None or record.country.value == country)
            and (category is None or record.category.value == category)
        )

    @staticmethod
    def _count_hits(record: KnowledgeRecord, tokens: Set[str]) -> int:
        searchable = record.match_text
        return sum(1 for token in tokens if token in searchable)
