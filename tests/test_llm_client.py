"""
Tests for the Groq client and the LLM factory.

The HTTP layer is faked with httpx.MockTransport.
"""

import json

import httpx
import pytest

from obsicard.errors import ConfigurationError, TransientServiceError
from obsicard.llm import (
    BaseLLMClient,
    GenerationConfig,
    GroqClient,
    LLMProvider,
    estimate_cost,
    get_client,
    get_model_info,
    list_models,
    resolve_model_name,
)
from obsicard.llm.config import GROQ_BASE_URL


def _completion(content, usage=None):
    body = {
        "model": "llama-3.1-8b-instant",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
    }
    if usage is not None:
        body["usage"] = usage
    return body


def _client(handler, **kwargs):
    kwargs.setdefault("api_key", "gsk_test")
    return GroqClient(transport=httpx.MockTransport(handler), **kwargs)


class TestModelRegistry:

    def test_resolve_alias(self):
        assert resolve_model_name("llama-70b") == "llama-3.3-70b-versatile"
        assert resolve_model_name(" LLAMA ") == "llama-3.1-8b-instant"
        assert resolve_model_name("some-new-model") == "some-new-model"

    def test_get_model_info(self):
        info = get_model_info("gpt-oss")
        assert info.model_id == "openai/gpt-oss-20b"
        assert get_model_info("unknown") is None

    def test_list_models_is_copy(self):
        models = list_models()
        models.clear()
        assert list_models()

    def test_estimate_cost(self):
        cost = estimate_cost(1_000_000, 1_000_000, "llama-3.1-8b-instant")
        assert cost == pytest.approx(0.13)
        assert estimate_cost(100, 100, "not-registered") is None


class TestGetClient:

    def test_default_model(self):
        client = get_client(api_key="gsk_x")
        assert isinstance(client, GroqClient)
        assert client.model_id == "llama-3.1-8b-instant"
        assert client.provider == LLMProvider.GROQ

    def test_alias_and_base_url(self):
        client = get_client("versatile", api_key="k", base_url="http://localhost:8000/v1/")
        assert client.model_id == "llama-3.3-70b-versatile"
        assert client.endpoint == "http://localhost:8000/v1/chat/completions"
        assert client.provider == LLMProvider.OPENAI_COMPATIBLE

    def test_unknown_model_accepted(self, caplog):
        client = get_client("brand-new-model", api_key="k")
        assert client.model_id == "brand-new-model"
        assert "not in the registry" in caplog.text

    def test_not_cached(self):
        assert get_client(api_key="k") is not get_client(api_key="k")


class TestGroqGenerate:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion("[]", {"prompt_tokens": 12, "completion_tokens": 3}))

        async with _client(handler) as client:
            response = await client.generate(
                "Make cards",
                config=GenerationConfig(temperature=0.2, max_output_tokens=50),
                system_prompt="JSON only",
            )

        assert captured["url"] == f"{GROQ_BASE_URL}/chat/completions"
        assert captured["auth"] == "Bearer gsk_test"
        assert captured["body"] == {
            "model": "llama-3.1-8b-instant",
            "messages": [
                {"role": "system", "content": "JSON only"},
                {"role": "user", "content": "Make cards"},
            ],
            "temperature": 0.2,
            "max_tokens": 50,
        }
        assert response.text == "[]"
        assert response.input_tokens == 12
        assert response.output_tokens == 3
        assert response.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_without_system_prompt(self):
        def handler(request):
            messages = json.loads(request.content)["messages"]
            assert messages == [{"role": "user", "content": "hi"}]
            return httpx.Response(200, json=_completion("hello"))

        async with _client(handler) as client:
            response = await client.generate("hi")

        assert response.text == "hello"
        assert response.input_tokens is None

    @pytest.mark.asyncio
    async def test_non_200_is_transient(self):
        def handler(request):
            return httpx.Response(429, text="rate limited")

        async with _client(handler) as client:
            with pytest.raises(TransientServiceError, match="429"):
                await client.generate("x")

    @pytest.mark.asyncio
    async def test_rejected_key_is_configuration_error(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "Invalid API Key"}})

        async with _client(handler) as client:
            with pytest.raises(ConfigurationError):
                await client.generate("x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [{}, {"choices": []}, {"choices": [{}]}, _completion(""), _completion(None)],
    )
    async def test_missing_content_is_transient(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        async with _client(handler) as client:
            with pytest.raises(TransientServiceError):
                await client.generate("x")

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransientServiceError, match="connection refused"):
                await client.generate("x")

    @pytest.mark.asyncio
    async def test_aclose_resets(self):
        client = _client(lambda request: httpx.Response(200, json=_completion("ok")))
        await client.generate("x")
        await client.aclose()
        await client.aclose()

        # Re-initializes lazily after close
        response = await client.generate("x")
        assert response.text == "ok"
        await client.aclose()


class TestGroqConnection:

    @pytest.mark.asyncio
    async def test_missing_key(self):
        client = _client(lambda request: httpx.Response(200), api_key="")
        result = await client.test_connection()
        assert result == {"success": False, "message": "Groq API key is not configured"}

    @pytest.mark.asyncio
    async def test_bad_key_format(self):
        client = _client(lambda request: httpx.Response(200), api_key="sk-wrong")
        result = await client.test_connection()
        assert result["success"] is False
        assert "gsk_" in result["message"]

    @pytest.mark.asyncio
    async def test_api_error_message(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "Invalid API Key"}})

        async with _client(handler) as client:
            result = await client.test_connection()

        assert result["success"] is False
        assert result["message"] == "Groq API error: Invalid API Key"
        assert result["details"]["status"] == 401

    @pytest.mark.asyncio
    async def test_success(self):
        def handler(request):
            assert json.loads(request.content)["max_tokens"] == 10
            return httpx.Response(200, json=_completion("ok"))

        async with _client(handler) as client:
            result = await client.test_connection()

        assert result["success"] is True
        assert result["details"] == {"model": "llama-3.1-8b-instant"}


class TestBaseClient:

    def test_provider_must_implement_connection_check(self):
        class GenerateOnlyClient(BaseLLMClient):
            provider = LLMProvider.OPENAI_COMPATIBLE

            def _initialize(self):
                pass

            async def generate(self, prompt, config=None, system_prompt=None):
                raise NotImplementedError

        with pytest.raises(TypeError):
            GenerateOnlyClient("model", "key", "http://llm.test")
