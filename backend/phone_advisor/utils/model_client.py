"""Text-completion clients for the external model.

Each client makes exactly one attempt per call. Provider SDK errors, empty
completions and timeouts all surface as ``ModelCallError``; the turn
orchestrator treats that as a signal to use the fallback synthesizer.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import anthropic
import structlog
from google import genai
from google.genai import types

from phone_advisor.config import Settings

log = structlog.get_logger("model_client")


class ModelCallError(Exception):
    """The external model could not produce a completion."""


class TextModel(Protocol):
    name: str

    async def complete(self, system: str, prompt: str) -> str: ...


class GeminiTextModel:
    """google-genai client. The SDK call is sync, so it runs on a worker thread."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_seconds: float = 20.0,
        max_output_tokens: int = 2048,
        client: genai.Client | None = None,
    ) -> None:
        self.name = f"gemini:{model}"
        self._model = model
        self._timeout = timeout_seconds
        self._max_output_tokens = max_output_tokens
        self._client = client or genai.Client(api_key=api_key)

    async def complete(self, system: str, prompt: str) -> str:
        config = types.GenerateContentConfig(
            system_instruction=system,
            response_mime_type="application/json",
            max_output_tokens=self._max_output_tokens,
            temperature=0.2,
        )
        try:
            async with asyncio.timeout(self._timeout):
                response = await asyncio.to_thread(
                    self._client.models.generate_content,
                    model=self._model,
                    contents=prompt,
                    config=config,
                )
        except TimeoutError as exc:
            raise ModelCallError(f"Gemini timed out after {self._timeout}s") from exc
        except Exception as exc:
            raise ModelCallError(f"Gemini call failed: {exc}") from exc

        text = (response.text or "").strip()
        if not text:
            raise ModelCallError("Gemini returned an empty completion")
        return text


class AnthropicTextModel:
    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_seconds: float = 20.0,
        max_output_tokens: int = 2048,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self.name = f"anthropic:{model}"
        self._model = model
        self._timeout = timeout_seconds
        self._max_output_tokens = max_output_tokens
        # Retries are disabled: one attempt per turn, then the fallback answers.
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

    async def complete(self, system: str, prompt: str) -> str:
        try:
            async with asyncio.timeout(self._timeout):
                response = await self._client.messages.create(
                    model=self._model,
                    max_tokens=self._max_output_tokens,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                )
        except TimeoutError as exc:
            raise ModelCallError(f"Claude timed out after {self._timeout}s") from exc
        except anthropic.APIStatusError as exc:
            raise ModelCallError(f"Claude API error ({exc.status_code}): {exc}") from exc
        except anthropic.APIError as exc:
            raise ModelCallError(f"Claude call failed: {exc}") from exc

        text = " ".join(b.text for b in response.content if hasattr(b, "text")).strip()
        if not text:
            raise ModelCallError("Claude returned an empty completion")
        return text


def build_text_model(settings: Settings) -> TextModel | None:
    """Configured client, or None when the provider is off or has no key."""
    if settings.model_provider == "gemini" and settings.google_ai_api_key:
        return GeminiTextModel(
            api_key=settings.google_ai_api_key,
            model=settings.gemini_model,
            timeout_seconds=settings.model_timeout_seconds,
            max_output_tokens=settings.model_max_output_tokens,
        )
    if settings.model_provider == "anthropic" and settings.anthropic_api_key:
        return AnthropicTextModel(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            timeout_seconds=settings.model_timeout_seconds,
            max_output_tokens=settings.model_max_output_tokens,
        )
    log.info("model_disabled", provider=settings.model_provider)
    return None
