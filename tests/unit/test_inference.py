"""
Unit tests for inference providers and the fallback wrapper.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio
from httpx import Request, Response

from config import Settings
from uiforge.ml.inference import (
    HeuristicInferenceProvider,
    InferenceProvider,
    InferenceResult,
    OllamaInferenceProvider,
    check_ready,
    create_inference_provider,
    infer_with_fallback,
)

BASE_URL = "http://ollama.test"


@pytest_asyncio.fixture
async def provider():
    """Ollama provider pointed at a fake server."""
    provider = OllamaInferenceProvider(base_url=BASE_URL + "/", model="qwen2.5", timeout_seconds=1.0)
    yield provider
    await provider.close()


class SlowProvider(InferenceProvider):
    name = "slow"

    async def is_ready(self):
        return True

    async def infer(self, prompt, max_tokens=256, temperature=0.3):
        await asyncio.sleep(5)
        return InferenceResult(text="late", source="model")


class BrokenProvider(InferenceProvider):
    name = "broken"

    async def is_ready(self):
        return True

    async def infer(self, prompt, max_tokens=256, temperature=0.3):
        raise RuntimeError("model crashed")


class HangingReadinessProvider(InferenceProvider):
    name = "hanging-readiness"

    async def is_ready(self):
        await asyncio.sleep(5)
        return True

    async def infer(self, prompt, max_tokens=256, temperature=0.3):
        return InferenceResult(text="unused", source="model")


class CrashingReadinessProvider(InferenceProvider):
    name = "crashing-readiness"

    async def is_ready(self):
        raise RuntimeError("readiness check crashed")

    async def infer(self, prompt, max_tokens=256, temperature=0.3):
        return InferenceResult(text="unused", source="model")


class TestInferenceResult:
    def test_ok(self):
        assert InferenceResult(text="7", source="model").ok is True

    def test_blank_model_text_is_not_ok(self):
        assert InferenceResult(text="  ", source="model").ok is False

    def test_failed(self):
        result = InferenceResult.failed("boom")

        assert result.source == "error"
        assert result.error == "boom"
        assert result.ok is False


class TestHeuristicProvider:
    @pytest.mark.asyncio
    async def test_never_ready(self):
        provider = HeuristicInferenceProvider()

        assert await provider.is_ready() is False
        assert (await provider.infer("anything")).ok is False


class TestOllamaProvider:
    """Tests for OllamaInferenceProvider with a mocked HTTP client."""

    def test_base_url_is_normalized(self, provider):
        assert provider.base_url == BASE_URL

    @pytest.mark.asyncio
    async def test_ready_with_tagged_model(self, provider, monkeypatch):
        """A model name without tag matches a served 'name:tag'."""
        async def mock_get(url, **kwargs):
            return Response(200, json={"models": [{"name": "qwen2.5:0.5b"}]}, request=Request("GET", BASE_URL + url))

        monkeypatch.setattr(provider.client, "get", mock_get)

        assert await provider.is_ready() is True

    @pytest.mark.asyncio
    async def test_not_ready_when_model_missing(self, provider, monkeypatch):
        async def mock_get(url, **kwargs):
            return Response(200, json={"models": [{"name": "llama3:8b"}]}, request=Request("GET", BASE_URL + url))

        monkeypatch.setattr(provider.client, "get", mock_get)

        assert await provider.is_ready() is False

    @pytest.mark.asyncio
    async def test_not_ready_when_unreachable(self, provider, monkeypatch):
        async def mock_get(url, **kwargs):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(provider.client, "get", mock_get)

        assert await provider.is_ready() is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [[], {"models": "qwen2.5"}, "qwen2.5", None])
    async def test_not_ready_on_unexpected_body(self, provider, monkeypatch, body):
        """A 200 whose body is not a model listing reads as not ready."""
        async def mock_get(url, **kwargs):
            return Response(200, json=body, request=Request("GET", BASE_URL + url))

        monkeypatch.setattr(provider.client, "get", mock_get)

        assert await provider.is_ready() is False

    @pytest.mark.asyncio
    async def test_infer_success(self, provider, monkeypatch):
        captured = {}

        async def mock_post(url, **kwargs):
            captured["url"] = url
            captured["json"] = kwargs["json"]
            return Response(200, json={"response": "8"}, request=Request("POST", BASE_URL + url))

        monkeypatch.setattr(provider.client, "post", mock_post)

        result = await provider.infer("Score this", max_tokens=8, temperature=0.1)

        assert result.ok is True
        assert result.text == "8"
        assert captured["url"] == "/api/generate"
        assert captured["json"]["model"] == "qwen2.5"
        assert captured["json"]["stream"] is False
        assert captured["json"]["options"] == {"num_predict": 8, "temperature": 0.1}

    @pytest.mark.asyncio
    async def test_infer_server_error(self, provider, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(500, text="overloaded", request=Request("POST", BASE_URL + url))

        monkeypatch.setattr(provider.client, "post", mock_post)

        result = await provider.infer("Score this")

        assert result.source == "error"
        assert result.ok is False

    @pytest.mark.asyncio
    async def test_infer_invalid_json(self, provider, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(200, text="not json", request=Request("POST", BASE_URL + url))

        monkeypatch.setattr(provider.client, "post", mock_post)

        result = await provider.infer("Score this")

        assert result.error == "invalid response body"

    @pytest.mark.asyncio
    async def test_infer_non_object_body(self, provider, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(200, json=["8"], request=Request("POST", BASE_URL + url))

        monkeypatch.setattr(provider.client, "post", mock_post)

        result = await provider.infer("Score this")

        assert result.error == "invalid response body"


class TestInferWithFallback:
    """Tests for the timeout and error wrapper."""

    @pytest.mark.asyncio
    async def test_timeout(self):
        result = await infer_with_fallback(SlowProvider(), "prompt", timeout_seconds=0.05)

        assert result.source == "error"
        assert result.error == "timeout"

    @pytest.mark.asyncio
    async def test_provider_exception(self):
        result = await infer_with_fallback(BrokenProvider(), "prompt")

        assert result.source == "error"
        assert "model crashed" in result.error

    @pytest.mark.asyncio
    async def test_passthrough(self):
        result = await infer_with_fallback(HeuristicInferenceProvider(), "prompt")

        assert result.error == "no model backend configured"


class TestCheckReady:
    """Tests for the bounded readiness check."""

    @pytest.mark.asyncio
    async def test_hanging_check_is_not_ready(self):
        assert await asyncio.wait_for(check_ready(HangingReadinessProvider(), timeout_seconds=0.05), timeout=2) is False

    @pytest.mark.asyncio
    async def test_crashing_check_is_not_ready(self):
        assert await check_ready(CrashingReadinessProvider()) is False

    @pytest.mark.asyncio
    async def test_passthrough(self):
        assert await check_ready(SlowProvider()) is True
        assert await check_ready(HeuristicInferenceProvider()) is False

    @pytest.mark.asyncio
    async def test_unexpected_body_is_not_ready(self, provider, monkeypatch):
        async def mock_get(url, **kwargs):
            return Response(200, json=[], request=Request("GET", BASE_URL + url))

        monkeypatch.setattr(provider.client, "get", mock_get)

        assert await check_ready(provider) is False


class TestCreateInferenceProvider:
    def test_heuristic_default(self):
        provider = create_inference_provider(Settings(inference_backend="heuristic"))

        assert isinstance(provider, HeuristicInferenceProvider)

    @pytest.mark.asyncio
    async def test_ollama(self):
        provider = create_inference_provider(
            Settings(inference_backend="ollama", inference_url="http://localhost:1234", inference_model="m")
        )

        assert isinstance(provider, OllamaInferenceProvider)
        assert provider.model == "m"
        await provider.close()
