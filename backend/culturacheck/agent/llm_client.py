"""
Provider-neutral client for the external language model.

Wraps the OpenAI, Gemini and Anthropic SDKs behind two blocking calls:
``complete`` (one response as text) and ``stream`` (an iterator of text
deltas). Async callers offload these to an executor.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterator, List, Optional

from openai import OpenAI

try:
    from google import genai  # type: ignore
    from google.genai import types as genai_types  # type: ignore
except ImportError:  # pragma: no cover
    genai = None
    genai_types = None  # type: ignore

try:
    import anthropic  # type: ignore
except ImportError:  # pragma: no cover
    anthropic = None  # type: ignore

from ..core.config import Settings, get_settings


SUPPORTED_PROVIDERS = ("openai", "gemini", "anthropic")


class LLMError(Exception):
    """The language model call failed or returned nothing usable."""


class LLMClient:
    """
    Thin wrapper over the configured LLM provider.

    ``tier`` selects the model: "default" for report and chat generation,
    "mini" for cheap auxiliary calls such as keyword extraction.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        openai_client: Optional[OpenAI] = None,
        gemini_client: Optional[Any] = None,
        anthropic_client: Optional[Any] = None,
    ):
        self.settings = settings or get_settings()
        self.provider = (self.settings.llm_provider or "openai").lower()
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported llm_provider {self.provider!r}; expected one of {SUPPORTED_PROVIDERS}"
            )
        self.logger = logging.getLogger("culturacheck.agent.llm")

        self._openai = openai_client
        self._gemini_client = gemini_client
        self._anthropic = anthropic_client

        if self.provider == "gemini":
            self.model_map = {
                "default": self.settings.gemini_model_pro,
                "mini": self.settings.gemini_model_flash,
            }
        elif self.provider == "anthropic":
            self.model_map = {
                "default": self.settings.anthropic_model,
                "mini": self.settings.anthropic_model_mini,
            }
        else:
            self.model_map = {
                "default": self.settings.openai_model,
                "mini": self.settings.openai_model_mini,
            }

    def model_name(self, tier: str = "default") -> str:
        return self.model_map.get(tier, self.model_map["default"])

    # --- Public API -----------------------------------------------------

    def complete(
        self,
        system: str,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float = 0.0,
        tier: str = "default",
    ) -> str:
        """Run one completion and return the response text."""
        model_name = self.model_name(tier)
        start = time.perf_counter()
        try:
            if self.provider == "gemini":
                content = self._complete_gemini(model_name, system, messages, max_tokens, temperature)
            elif self.provider == "anthropic":
                content = self._complete_anthropic(model_name, system, messages, max_tokens, temperature)
            else:
                content = self._complete_openai(model_name, system, messages, max_tokens, temperature)
        except LLMError:
            raise
        except Exception as exc:
            raise LLMError(f"{self.provider} completion failed: {exc}") from exc

        self.logger.info(
            "LLM completion finished",
            extra={
                "provider": self.provider,
                "model": model_name,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        if not content:
            raise LLMError(f"{self.provider} returned an empty response")
        return content

    def stream(
        self,
        system: str,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float = 0.7,
        tier: str = "default",
    ) -> Iterator[str]:
        """Stream the response as text deltas."""
        model_name = self.model_name(tier)
        try:
            if self.provider == "gemini":
                yield from self._stream_gemini(model_name, system, messages, max_tokens, temperature)
            elif self.provider == "anthropic":
                yield from self._stream_anthropic(model_name, system, messages, max_tokens, temperature)
            else:
                yield from self._stream_openai(model_name, system, messages, max_tokens, temperature)
        except LLMError:
            raise
        except Exception as exc:
            raise LLMError(f"{self.provider} stream failed: {exc}") from exc

    # --- OpenAI ---------------------------------------------------------

    def _openai_client(self) -> OpenAI:
        if self._openai is None:
            self._openai = OpenAI(api_key=self.settings.openai_api_key) if self.settings.openai_api_key else OpenAI()
        return self._openai

    def _complete_openai(self, model_name, system, messages, max_tokens, temperature) -> str:
        response = self._openai_client().chat.completions.create(
            model=model_name,
            messages=[{"role": "system", "content": system}, *messages],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return response.choices[0].message.content or ""

    def _stream_openai(self, model_name, system, messages, max_tokens, temperature) -> Iterator[str]:
        stream = self._openai_client().chat.completions.create(
            model=model_name,
            messages=[{"role": "system", "content": system}, *messages],
            max_tokens=max_tokens,
            temperature=temperature,
            stream=True,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta

    # --- Gemini ---------------------------------------------------------

    def _init_gemini(self) -> None:
        if genai is None:  # pragma: no cover
            raise LLMError("google-genai is not installed. Run `pip install google-genai`.")
        if not self.settings.google_api_key:
            raise LLMError("Missing Google API key for Gemini models.")
        self._gemini_client = genai.Client(api_key=self.settings.google_api_key)

    def _gemini_request(self, system, messages, max_tokens, temperature):
        if self._gemini_client is None:
            self._init_gemini()
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
        ]
        config = genai_types.GenerateContentConfig(
            system_instruction=system,
            temperature=temperature,
            max_output_tokens=max_tokens,
        )
        return contents, config

    def _complete_gemini(self, model_name, system, messages, max_tokens, temperature) -> str:
        contents, config = self._gemini_request(system, messages, max_tokens, temperature)
        response = self._gemini_client.models.generate_content(
            model=model_name,
            contents=contents,
            config=config,
        )
        # Safely extract text from response
        if getattr(response, "text", None):
            return response.text
        if response.candidates:
            candidate = response.candidates[0]
            parts = getattr(getattr(candidate, "content", None), "parts", None) or []
            return "".join(part.text for part in parts if getattr(part, "text", None))
        return ""

    def _stream_gemini(self, model_name, system, messages, max_tokens, temperature) -> Iterator[str]:
        contents, config = self._gemini_request(system, messages, max_tokens, temperature)
        for chunk in self._gemini_client.models.generate_content_stream(
            model=model_name,
            contents=contents,
            config=config,
        ):
            if getattr(chunk, "text", None):
                yield chunk.text

    # --- Anthropic ------------------------------------------------------

    def _anthropic_client(self):
        if self._anthropic is None:
            if anthropic is None:  # pragma: no cover
                raise LLMError("anthropic is not installed. Run `pip install anthropic`.")
            if not self.settings.anthropic_api_key:
                raise LLMError("Missing Anthropic API key.")
            self._anthropic = anthropic.Anthropic(api_key=self.settings.anthropic_api_key)
        return self._anthropic

    def _complete_anthropic(self, model_name, system, messages, max_tokens, temperature) -> str:
        message = self._anthropic_client().messages.create(
            model=model_name,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=messages,
        )
        return "\n".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )

    def _stream_anthropic(self, model_name, system, messages, max_tokens, temperature) -> Iterator[str]:
        with self._anthropic_client().messages.stream(
            model=model_name,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=messages,
        ) as stream:
            for text in stream.text_stream:
                if text:
                    yield text
