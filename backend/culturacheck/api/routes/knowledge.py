from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...knowledge.keyword_expansion import KeywordExpansionSearch
from ...knowledge.lexical_ranker import LexicalRanker
from ...knowledge.types import SearchResult


router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])


def get_ranker_dep(request: Request) -> LexicalRanker:
    return request.app.state.ranker


def get_expansion_dep(request: Request) -> KeywordExpansionSearch:
    return request.app.state.expansion


def _serialize(result: SearchResult) -> Dict[str, Any]:
    chunk = result.chunk
    return {
        "id": chunk.id,
        "content": chunk.content,
        "country": chunk.country.value,
        "category": chunk.category.value,
        "severity": chunk.severity.value,
        "tags": list(chunk.tags),
        "scenario": chunk.scenario,
        "score": result.score,
    }


@router.get("/search")
async def search_knowledge(
    q: str = Query(default="", description="Free-form query"),
    country: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    limit: int = Query(default=10, ge=1, le=50),
    expand: bool = Query(default=False, description="Use model keyword expansion"),
    ranker: LexicalRanker = Depends(get_ranker_dep),
    expansion: KeywordExpansionSearch = Depends(get_expansion_dep),
) -> dict:
    results: List[SearchResult]
    if expand:
        results = await expansion.expanded_search(q, country=country, category=category)
    else:
        results = ranker.search(q, country=country, category=category, limit=limit)
    return {
        "query": q,
        "expanded": expand,
        "count": len(results),
        "results": [_serialize(r) for r in results],
    }
