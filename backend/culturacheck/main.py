from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

try:  # pragma: no cover - optional dependency
    from sentry_sdk import init as sentry_init  # type: ignore[import]
    from sentry_sdk.integrations.fastapi import FastApiIntegration  # type: ignore[import]
except ImportError:  # pragma: no cover
    sentry_init = None
    FastApiIntegration = None

from .agent.llm_client import LLMClient
from .api.routes import chat, check, knowledge
from .core.config import Settings, get_settings
from .knowledge.corpus_store import CorpusStore
from .knowledge.keyword_expansion import KeywordExpansionSearch, KeywordExtractor, LLMKeywordExtractor
from .knowledge.lexical_ranker import LexicalRanker
from .logging_utils import setup_logging
from .middleware.logging_middleware import RequestLoggingMiddleware
from .services.compliance_service import ComplianceService


logger = logging.getLogger("culturacheck.main")


def build_services(
    app: FastAPI,
    settings: Settings,
    llm_client: Optional[LLMClient] = None,
    keyword_extractor: Optional[KeywordExtractor] = None,
) -> None:
    """Load the knowledge base once and wire the request-time components onto app.state."""
    store = CorpusStore(settings.knowledge_base_path)
    store.load()  # CorpusLoadError aborts startup

    llm = llm_client or LLMClient(settings=settings)
    extractor = keyword_extractor or LLMKeywordExtractor(llm, max_tokens=settings.keyword_max_tokens)
    ranker = LexicalRanker(store)
    expansion = KeywordExpansionSearch(
        ranker,
        extractor,
        timeout=settings.keyword_extraction_timeout,
        result_limit=settings.expanded_search_limit,
        keyword_limit=settings.keyword_search_limit,
        raw_query_limit=settings.raw_query_search_limit,
    )

    app.state.corpus_store = store
    app.state.ranker = ranker
    app.state.expansion = expansion
    app.state.compliance_service = ComplianceService(expansion, llm, settings=settings)

    logger.info(
        "Services initialized",
        extra={
            "knowledge_records": len(store),
            "quarantined_records": len(store.quarantined),
            "llm_provider": llm.provider,
        },
    )


def create_app(
    settings: Optional[Settings] = None,
    llm_client: Optional[LLMClient] = None,
    keyword_extractor: Optional[KeywordExtractor] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)
    if settings.sentry_dsn and sentry_init and FastApiIntegration:
        sentry_init(
            dsn=settings.sentry_dsn,
            integrations=[FastApiIntegration()],
            environment=settings.environment,
            traces_sample_rate=0.2,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        build_services(app, settings, llm_client=llm_client, keyword_extractor=keyword_extractor)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(check.router)
    app.include_router(chat.router)
    app.include_router(knowledge.router)

    @app.get("/health")
    async def health():
        store = getattr(app.state, "corpus_store", None)
        return {
            "status": "ok",
            "knowledge_records": len(store) if store is not None else 0,
        }

    @app.get("/metrics")
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
