from __future__ import annotations

import asyncio
import functools
import logging
import re
import time
from typing import AsyncIterator, Dict, Iterable, List, Optional

from json_repair import repair_json
from pydantic import ValidationError

from ..agent.llm_client import LLMClient
from ..agent.prompts import CHAT_PROMPT, CHECK_PROMPT, CHECK_USER_TEMPLATE, SYSTEM_PROMPT
from ..agent.rules_context import build_chat_rules_section, build_check_rules_section
from ..agent.types import ChatMessage, CheckReport
from ..core.config import Settings, get_settings
from ..knowledge.keyword_expansion import KeywordExpansionSearch
from ..knowledge.types import Country
from ..logging_utils import bind_country_context


_FENCE = re.compile(r"```(?:json)?\s*|```")
_CHAT_ROLES = ("user", "assistant")
_END_OF_STREAM = object()


class ReportParseError(Exception):
    """The model response could not be turned into a CheckReport."""


def parse_check_response(raw: str) -> CheckReport:
    """
    Extract and validate the JSON report from a model response.

    The span from the first ``{`` to the last ``}`` (or to the end of the
    text when the reply was cut off) is run through json-repair, so trailing
    commas, stray quotes and a truncated tail still yield a report.
    """
    cleaned = _FENCE.sub("", raw or "").strip()
    start = cleaned.find("{")
    if start < 0:
        raise ReportParseError(f"No JSON object in compliance report: {cleaned[:200]!r}")
    end = cleaned.rfind("}")
    payload = cleaned[start:end + 1] if end > start else cleaned[start:]
    try:
        data = repair_json(payload, return_objects=True)
        return CheckReport.model_validate(data)
    except (ValueError, ValidationError) as exc:
        raise ReportParseError(f"Invalid compliance report from model: {exc}") from exc


class ComplianceService:
    """Compliance checks and advisory chat grounded in the knowledge base."""

    CHECK_TEMPERATURE = 0.0
    CHAT_TEMPERATURE = 0.7

    def __init__(
        self,
        expansion: KeywordExpansionSearch,
        llm_client: LLMClient,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.expansion = expansion
        self.llm = llm_client
        self.logger = logging.getLogger("culturacheck.services.compliance")

    # --- Public API -----------------------------------------------------

    async def check_content(
        self,
        text: str,
        target_country: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> CheckReport:
        bind_country_context(target_country)
        country = self._resolve_country(target_country)

        results = await self.expansion.expanded_search(text, country=country)
        rules_section = build_check_rules_section(results)

        user_prompt = CHECK_USER_TEMPLATE.format(
            market=f"（目标市场：{target_country}）" if target_country else "",
            content_type=f"（类型：{content_type}）" if content_type else "",
            text=text,
            rules_section=rules_section,
        )

        start = time.perf_counter()
        loop = asyncio.get_running_loop()
        raw = await loop.run_in_executor(
            None,
            functools.partial(
                self.llm.complete,
                system=f"{SYSTEM_PROMPT}\n\n{CHECK_PROMPT}",
                messages=[{"role": "user", "content": user_prompt}],
                max_tokens=self.settings.check_max_tokens,
                temperature=self.CHECK_TEMPERATURE,
            ),
        )
        report = parse_check_response(raw)

        self.logger.info(
            "Compliance check completed",
            extra={
                "target_country": target_country or "-",
                "content_type": content_type or "-",
                "rules_used": len(results),
                "issues": len(report.issues),
                "overall_score": report.overallScore,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return report

    async def review_document(self, file_content: str, file_type: str) -> CheckReport:
        return await self.check_content(file_content, target_country=None, content_type=file_type)

    async def chat(
        self,
        message: str,
        history: Optional[Iterable[ChatMessage | Dict[str, str]]] = None,
    ) -> AsyncIterator[str]:
        results = await self.expansion.expanded_search(message)
        system = f"{SYSTEM_PROMPT}\n\n{CHAT_PROMPT}{build_chat_rules_section(results)}"
        messages = self._chat_messages(history or [], message)

        self.logger.info(
            "Chat turn started",
            extra={"rules_used": len(results), "history_turns": len(messages) - 1},
        )

        stream = self.llm.stream(
            system=system,
            messages=messages,
            max_tokens=self.settings.chat_max_tokens,
            temperature=self.CHAT_TEMPERATURE,
        )
        loop = asyncio.get_running_loop()
        while True:
            chunk = await loop.run_in_executor(None, next, stream, _END_OF_STREAM)
            if chunk is _END_OF_STREAM:
                break
            yield chunk

    # --- Internal utilities --------------------------------------------

    def _resolve_country(self, target_country: Optional[str]) -> Optional[Country]:
        if not target_country:
            return None
        try:
            return Country(target_country)
        except ValueError:
            self.logger.warning(
                f"Unknown target country {target_country!r}, searching all markets"
            )
            return None

    @staticmethod
    def _chat_messages(
        history: Iterable[ChatMessage | Dict[str, str]],
        message: str,
    ) -> List[Dict[str, str]]:
        messages: List[Dict[str, str]] = []
        for turn in history:
            role = turn.role if isinstance(turn, ChatMessage) else turn.get("role")
            content = turn.content if isinstance(turn, ChatMessage) else turn.get("content")
            if role in _CHAT_ROLES and isinstance(content, str):
                messages.append({"role": role, "content": content})
        messages.append({"role": "user", "content": message})
        return messages
