import json
import sys
from pathlib import Path
from typing import Any, Dict, Generator, Iterator, List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from fastapi.testclient import TestClient

from culturacheck.core.config import Settings
from culturacheck.knowledge.corpus_store import CorpusStore
from culturacheck.knowledge.lexical_ranker import LexicalRanker


SAMPLE_RECORDS: List[Dict[str, Any]] = [
    {
        "id": "sa-ramadan-hours",
        "content": "斋月期间工作时间缩短，通常为上午九点到下午三点",
        "country": "沙特阿拉伯",
        "category": "节日习俗",
        "severity": "warning",
        "tags": ["斋月", "工作时间"],
        "source": "test",
        "scenario": "商务会议准备",
    },
    {
        "id": "pan-pork-alcohol",
        "content": "宣传物料中禁止出现猪肉和酒精饮料",
        "country": "阿拉伯世界通用",
        "category": "饮食文化",
        "severity": "critical",
        "tags": ["猪肉", "酒精"],
        "source": "test",
        "scenario": "营销文案审核",
    },
    {
        "id": "pan-wasta",
        "content": "Wasta 指依靠人脉和家族关系办事的社会网络",
        "country": "阿拉伯世界通用",
        "category": "商务谈判",
        "severity": "info",
        "tags": ["Wasta", "人脉"],
        "source": "test",
        "scenario": "商务谈判准备",
    },
    {
        "id": "ae-business-cards",
        "content": "名片最好一面英文一面阿拉伯文",
        "country": "阿联酋",
        "category": "商务礼仪",
        "severity": "info",
        "tags": ["名片"],
        "source": "test",
        "scenario": "商务会议准备",
    },
    {
        "id": "sa-women-dress-ads",
        "content": "广告中女性形象应着装端庄",
        "country": "沙特阿拉伯",
        "category": "穿着规范",
        "severity": "critical",
        "tags": ["着装", "广告"],
        "source": "test",
        "scenario": "营销文案审核",
    },
    {
        "id": "eg-negotiation-pace",
        "content": "埃及谈判节奏较慢，讨价还价是常态",
        "country": "埃及",
        "category": "商务谈判",
        "severity": "warning",
        "tags": ["报价"],
        "source": "test",
        "scenario": "商务谈判准备",
    },
]

VALID_REPORT: Dict[str, Any] = {
    "overallScore": 35,
    "riskLevel": "danger",
    "summary": "内容在斋月期间展示白天进食画面",
    "issues": [
        {
            "originalText": "斋月午餐特惠",
            "issue": "斋月白天宣传餐饮",
            "severity": "critical",
            "country": "沙特阿拉伯",
            "category": "宗教禁忌",
            "suggestion": "改为开斋晚餐特惠",
            "explanation": "斋月白天公开饮食被视为冒犯",
        }
    ],
    "revisedText": "开斋晚餐特惠",
    "cultureTips": "斋月营销宜围绕开斋和家庭团聚",
}


def write_snapshot(directory: Path, records: List[Any], name: str = "knowledge-base.json") -> Path:
    """Write records as a knowledge-base snapshot and return its path."""
    path = directory / name
    path.write_text(json.dumps(records, ensure_ascii=False), encoding="utf-8")
    return path


class FakeExtractor:
    """Keyword extractor returning a fixed list and recording its inputs."""

    def __init__(self, keywords: Optional[List[str]] = None):
        self.keywords = list(keywords or [])
        self.calls: List[str] = []

    def extract_keywords(self, text: str) -> List[str]:
        self.calls.append(text)
        return list(self.keywords)


class FailingExtractor:
    """Keyword extractor whose model call always fails."""

    def __init__(self, exc: Optional[Exception] = None):
        self.exc = exc or RuntimeError("keyword service unavailable")
        self.calls = 0

    def extract_keywords(self, text: str) -> List[str]:
        self.calls += 1
        raise self.exc


class FakeLLMClient:
    """Stand-in for LLMClient with canned responses."""

    provider = "fake"

    def __init__(
        self,
        response: Optional[str] = None,
        chunks: Optional[List[str]] = None,
        error: Optional[Exception] = None,
    ):
        self.response = response if response is not None else json.dumps(VALID_REPORT, ensure_ascii=False)
        self.chunks = chunks if chunks is not None else ["斋月期间", "请避开", "白天宴请。"]
        self.error = error
        self.complete_calls: List[Dict[str, Any]] = []
        self.stream_calls: List[Dict[str, Any]] = []

    def complete(self, system, messages, max_tokens, temperature=0.0, tier="default") -> str:
        self.complete_calls.append(
            {
                "system": system,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "tier": tier,
            }
        )
        if self.error is not None:
            raise self.error
        return self.response

    def stream(self, system, messages, max_tokens, temperature=0.7, tier="default") -> Iterator[str]:
        self.stream_calls.append(
            {
                "system": system,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "tier": tier,
            }
        )
        if self.error is not None:
            raise self.error
        for chunk in self.chunks:
            yield chunk


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return write_snapshot(tmp_path, SAMPLE_RECORDS)


@pytest.fixture
def store(snapshot_path: Path) -> CorpusStore:
    store = CorpusStore(snapshot_path)
    store.load()
    return store


@pytest.fixture
def ranker(store: CorpusStore) -> LexicalRanker:
    return LexicalRanker(store)


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor(["斋月", "工作时间"])


@pytest.fixture
def test_settings(snapshot_path: Path) -> Settings:
    return Settings(
        knowledge_base_path=snapshot_path,
        environment="development",
        enable_file_logging=False,
        keyword_extraction_timeout=2.0,
    )


@pytest.fixture(scope="function")
def client(
    test_settings: Settings,
    fake_llm: FakeLLMClient,
    fake_extractor: FakeExtractor,
) -> Generator[TestClient, None, None]:
    from culturacheck.main import create_app

    app = create_app(settings=test_settings, llm_client=fake_llm, keyword_extractor=fake_extractor)
    with TestClient(app) as test_client:
        yield test_client
