"""Tests for the Gemini wrapper: response extraction, error mapping, fallback and retries."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from google.genai import errors as genai_errors

from conftest import SAMPLE_RESUME, server_error
from cv_optimizer.services import gemini_client
from cv_optimizer.services.errors import (
    ContentBlockedError,
    EmptyResponseError,
    NetworkError,
    ProviderError,
    ProviderNotConfiguredError,
    QuotaExceededError,
)
from cv_optimizer.services.gemini_client import (
    GeminiGenerator,
    ModelInvoker,
    extract_text,
    is_model_unavailable,
    to_provider_error,
)

RAW = json.dumps(SAMPLE_RESUME)


def not_found(model="primary-model"):
    return ProviderError(f"Gemini API error: 404 - models/{model} is not found", status_code=404)


def _response(*texts, finish_reason=None, block_reason=None, candidates=True):
    parts = [SimpleNamespace(text=t) for t in texts]
    candidate = SimpleNamespace(content=SimpleNamespace(parts=parts), finish_reason=finish_reason)
    return SimpleNamespace(
        prompt_feedback=SimpleNamespace(block_reason=block_reason),
        candidates=[candidate] if candidates else [],
    )


class TestExtractText:
    def test_joins_parts(self):
        assert extract_text(_response('{"header": ', '{"name": "A"}}')) == '{"header": {"name": "A"}}'

    def test_no_candidates(self):
        with pytest.raises(EmptyResponseError, match="no candidates"):
            extract_text(_response(candidates=False))

    def test_prompt_blocked(self):
        with pytest.raises(ContentBlockedError):
            extract_text(_response("ignored", block_reason="SAFETY"))

    def test_empty_text_with_safety_finish(self):
        with pytest.raises(ContentBlockedError):
            extract_text(_response(finish_reason=SimpleNamespace(value="SAFETY")))

    def test_empty_text(self):
        with pytest.raises(EmptyResponseError, match="No content"):
            extract_text(_response("", "  ", finish_reason="STOP"))


class TestToProviderError:
    def test_resource_exhausted_is_quota(self):
        error = SimpleNamespace(code=429, status="RESOURCE_EXHAUSTED", message="Resource has been exhausted")
        mapped = to_provider_error(error)
        assert isinstance(mapped, QuotaExceededError)
        assert mapped.status_code == 429
        assert "quota exceeded" in str(mapped)

    def test_quota_in_message(self):
        error = SimpleNamespace(code=400, status=None, message="You exceeded your current quota")
        assert isinstance(to_provider_error(error), QuotaExceededError)

    def test_other_errors_keep_code_and_message(self):
        error = SimpleNamespace(code=404, status="NOT_FOUND", message="models/foo is not found")
        mapped = to_provider_error(error)
        assert type(mapped) is ProviderError
        assert str(mapped) == "Gemini API error: 404 - models/foo is not found"
        assert is_model_unavailable(mapped)


class TestGeminiGenerator:
    def _client(self, **kwargs):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(**kwargs)
        return client

    @pytest.mark.asyncio
    async def test_returns_text_and_passes_model(self):
        client = self._client(return_value=_response(RAW))
        generator = GeminiGenerator(client, temperature=0.2, max_output_tokens=100)
        assert await generator.generate("gemini-x", "prompt") == RAW
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-x"
        assert kwargs["contents"] == "prompt"
        assert kwargs["config"].temperature == 0.2
        assert kwargs["config"].max_output_tokens == 100

    @pytest.mark.asyncio
    async def test_api_error_is_translated(self):
        api_error = genai_errors.ClientError(
            429,
            {"error": {"code": 429, "message": "Quota exceeded for metric", "status": "RESOURCE_EXHAUSTED"}},
        )
        generator = GeminiGenerator(self._client(side_effect=api_error))
        with pytest.raises(QuotaExceededError):
            await generator.generate("gemini-x", "prompt")

    @pytest.mark.asyncio
    async def test_transport_errors_become_network_errors(self):
        request = httpx.Request("POST", "https://generativelanguage.googleapis.com")
        generator = GeminiGenerator(self._client(side_effect=httpx.ReadTimeout("slow", request=request)))
        with pytest.raises(NetworkError, match="timeout"):
            await generator.generate("gemini-x", "prompt")


class TestModelInvoker:
    def test_requires_models(self):
        with pytest.raises(ValueError):
            ModelInvoker(MagicMock(), [])

    @pytest.mark.asyncio
    async def test_falls_back_when_model_not_found(self, make_invoker, sleep_recorder):
        invoker, generator = make_invoker([not_found(), RAW])
        assert await invoker.invoke("prompt") == RAW
        assert [model for model, _ in generator.calls] == ["primary-model", "fallback-model"]
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_no_fallback_on_other_errors(self, make_invoker, sleep_recorder):
        invoker, generator = make_invoker([server_error(), RAW])
        assert await invoker.invoke("prompt") == RAW
        assert [model for model, _ in generator.calls] == ["primary-model", "primary-model"]
        assert sleep_recorder.delays == [1.0]

    @pytest.mark.asyncio
    async def test_last_model_not_found_is_final(self, make_invoker, sleep_recorder):
        invoker, generator = make_invoker([not_found(), not_found("fallback-model")])
        with pytest.raises(ProviderError, match="fallback-model is not found"):
            await invoker.invoke("prompt")
        assert len(generator.calls) == 2
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_two_server_errors_then_success(self, make_invoker, sleep_recorder):
        notices = []
        invoker, generator = make_invoker([server_error(), server_error(), RAW])
        result = await invoker.invoke("prompt", on_retry=lambda n, e: notices.append(n))
        assert result == RAW
        assert notices == [1, 2]
        assert sleep_recorder.delays == [1.0, 2.0]
        assert len(generator.calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, make_invoker, sleep_recorder):
        errors = [server_error(f"Gemini API error: 503 - try {n}") for n in range(3)]
        invoker, generator = make_invoker(list(errors))
        with pytest.raises(ProviderError) as exc_info:
            await invoker.invoke("prompt")
        assert exc_info.value is errors[-1]
        assert len(generator.calls) == 3
        assert sum(sleep_recorder.delays) == 3.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            QuotaExceededError("quota exceeded", status_code=429),
            ContentBlockedError("blocked"),
            EmptyResponseError("No content returned from Gemini AI."),
        ],
    )
    async def test_permanent_errors_are_not_retried(self, make_invoker, sleep_recorder, error):
        invoker, generator = make_invoker([error, RAW])
        with pytest.raises(type(error)):
            await invoker.invoke("prompt")
        assert len(generator.calls) == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self, make_invoker):
        invoker, generator = make_invoker([NetworkError("connection reset"), RAW])
        assert await invoker.invoke("prompt") == RAW
        assert len(generator.calls) == 2

    @pytest.mark.asyncio
    async def test_optimize_embeds_inputs_in_prompt(self, make_invoker):
        invoker, generator = make_invoker([RAW])
        await invoker.optimize("RESUME BODY", "JOB BODY", "Backend Developer")
        prompt = generator.calls[0][1]
        assert "RESUME BODY" in prompt
        assert "JOB BODY" in prompt
        assert "Target Job Role: Backend Developer" in prompt

    @pytest.mark.asyncio
    async def test_optimize_defaults_job_role(self, make_invoker):
        invoker, generator = make_invoker([RAW])
        await invoker.optimize("resume", "job", "   ")
        assert "Target Job Role: Not specified" in generator.calls[0][1]


def test_get_invoker_without_api_key(monkeypatch):
    monkeypatch.setattr(gemini_client, "_invoker", None)
    monkeypatch.setattr(gemini_client.settings, "gemini_api_key", "")
    with pytest.raises(ProviderNotConfiguredError):
        gemini_client.get_invoker()
