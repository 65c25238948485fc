"""Google Gemini API wrapper: model fallback, retries and error translation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Sequence

import httpx
from google import genai
from google.genai import errors, types

from cv_optimizer.config import settings
from cv_optimizer.services import retry
from cv_optimizer.services.error_classifier import is_retryable
from cv_optimizer.services.errors import (
    ContentBlockedError,
    EmptyResponseError,
    NetworkError,
    ProviderError,
    ProviderNotConfiguredError,
    QuotaExceededError,
)
from cv_optimizer.services.prompt_builder import build_optimize_prompt

logger = logging.getLogger(__name__)

QUOTA_MESSAGE = (
    "Gemini API quota exceeded. Please check your Google Cloud billing and quota limits. "
    "For more information: https://ai.google.dev/pricing"
)

_client: genai.Client | None = None
_invoker: "ModelInvoker | None" = None


def get_client() -> genai.Client | None:
    global _client
    if not settings.gemini_api_key:
        logger.warning("No GEMINI_API_KEY set - Gemini features disabled")
        return None
    if _client is None:
        _client = genai.Client(api_key=settings.gemini_api_key)
    return _client


class TextGenerator(ABC):
    """A provider able to turn a prompt into raw text with a given model."""

    @abstractmethod
    async def generate(self, model: str, prompt: str) -> str:
        """Return the raw text output. Raises ProviderError subclasses."""


def _finish_reason(candidate: Any) -> str:
    reason = getattr(candidate, "finish_reason", None)
    reason = getattr(reason, "value", reason)
    return str(reason or "").upper()


def extract_text(response: Any) -> str:
    """Pull the first candidate's text out of a generate-content response."""
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        raise ContentBlockedError(
            "Content was blocked by Gemini safety filters. Try with different input."
        )

    candidates = getattr(response, "candidates", None)
    if not candidates:
        raise EmptyResponseError(
            "Gemini returned no candidates. Check API key and model availability."
        )

    first = candidates[0]
    content = getattr(first, "content", None)
    parts = getattr(content, "parts", None) or []
    text = "".join(getattr(p, "text", None) or "" for p in parts)
    if text.strip():
        return text

    if _finish_reason(first) == "SAFETY":
        raise ContentBlockedError(
            "Content was blocked by Gemini safety filters. Try with different input."
        )
    raise EmptyResponseError("No content returned from Gemini AI.")


def to_provider_error(error: errors.APIError) -> ProviderError:
    """Translate an SDK error into the package taxonomy."""
    code = getattr(error, "code", None)
    status = str(getattr(error, "status", None) or "")
    message = getattr(error, "message", None) or str(error)

    if status == "RESOURCE_EXHAUSTED" or "quota" in message.lower():
        return QuotaExceededError(QUOTA_MESSAGE, status_code=code)
    return ProviderError(f"Gemini API error: {code} - {message}", status_code=code)


class GeminiGenerator(TextGenerator):
    def __init__(
        self,
        client: genai.Client,
        temperature: float = 0.7,
        max_output_tokens: int = 4096,
    ):
        self._client = client
        self._config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )

    async def generate(self, model: str, prompt: str) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=self._config,
            )
        except errors.APIError as e:
            logger.error("Gemini API error from %s: %s", model, e)
            raise to_provider_error(e) from e
        except httpx.TimeoutException as e:
            raise NetworkError(f"Gemini request timeout: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Gemini network connection error: {e}") from e

        return extract_text(response)


def is_model_unavailable(error: Exception) -> bool:
    """True when the failure says the model identifier itself is unknown."""
    return isinstance(error, ProviderError) and "not found" in str(error).lower()


class ModelInvoker:
    """Sends the optimization prompt through an ordered list of models.

    Each retry attempt tries the models in order and stops at the first
    success; it only moves on to the next model when the current one is not
    found. Every other failure ends the attempt and is left to the retry
    policy.
    """

    def __init__(
        self,
        generator: TextGenerator,
        models: Sequence[str],
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not models:
            raise ValueError("At least one model identifier is required")
        self.generator = generator
        self.models = list(models)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    async def _generate_with_fallback(self, prompt: str) -> str:
        for index, model in enumerate(self.models):
            try:
                return await self.generator.generate(model, prompt)
            except ProviderError as e:
                is_last = index == len(self.models) - 1
                if is_last or not is_model_unavailable(e):
                    raise
                logger.info("Model %s not available, falling back to %s", model, self.models[index + 1])
        raise RuntimeError("unreachable")

    async def invoke(
        self,
        prompt: str,
        on_retry: Callable[[int, Exception], None] | None = None,
    ) -> str:
        policy = retry.RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            on_retry=on_retry,
            retry_if=is_retryable,
        )
        return await retry.execute(
            lambda: self._generate_with_fallback(prompt), policy, sleep=self._sleep
        )

    async def optimize(
        self,
        resume_text: str,
        job_description: str,
        job_role: str = "",
        on_retry: Callable[[int, Exception], None] | None = None,
    ) -> str:
        """Return the model's raw text for a resume/job pair."""
        prompt = build_optimize_prompt(resume_text, job_description, job_role)
        logger.info(
            "Starting CV optimization (resume %d chars, job description %d chars)",
            len(resume_text), len(job_description),
        )
        raw = await self.invoke(prompt, on_retry=on_retry)
        logger.info("AI optimization completed (%d chars)", len(raw))
        return raw


def get_invoker() -> ModelInvoker:
    """Process-wide invoker built from settings."""
    global _invoker
    if _invoker is None:
        client = get_client()
        if client is None:
            raise ProviderNotConfiguredError(
                "Gemini API key not configured. Please set GEMINI_API_KEY."
            )
        generator = GeminiGenerator(
            client,
            temperature=settings.gemini_temperature,
            max_output_tokens=settings.gemini_max_output_tokens,
        )
        _invoker = ModelInvoker(
            generator,
            settings.gemini_models,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )
    return _invoker
