"""Tests for provider selection and response parsing (transport mocked)."""

from unittest.mock import AsyncMock, patch

import pytest

from suggestion_backend.services.llm_service import LLMError, LLMService


@pytest.mark.asyncio
async def test_openai_request_and_parse():
    service = LLMService({"provider": "openai", "openai": {"apiKey": "sk-test", "model": "gpt-4o-mini"}})
    reply = {"choices": [{"message": {"content": "OK"}}]}

    with patch.object(service, "_request_json", AsyncMock(return_value=reply)) as request_json:
        assert await service.generate_response("Hi", json_mode=True) == "OK"

    url, payload, headers = request_json.call_args.args
    assert url.endswith("/chat/completions")
    assert payload["response_format"] == {"type": "json_object"}
    assert headers["Authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_gemini_request_and_parse():
    service = LLMService({"provider": "gemini", "gemini": {"apiKey": "AIza-test"}})
    reply = {"candidates": [{"content": {"parts": [{"text": "Hello"}]}}]}

    with patch.object(service, "_request_json", AsyncMock(return_value=reply)) as request_json:
        assert await service.generate_response("Hi") == "Hello"

    url, payload = request_json.call_args.args
    assert "gemini-2.5-flash:generateContent?key=AIza-test" in url
    assert payload["contents"][0]["parts"][0]["text"] == "Hi"


@pytest.mark.asyncio
async def test_vllm_without_key_has_no_auth_header():
    service = LLMService({"provider": "vllm", "vllm": {"endpoint": "http://llm:9000"}})
    reply = {"choices": [{"text": "done"}]}

    with patch.object(service, "_request_json", AsyncMock(return_value=reply)) as request_json:
        assert await service.generate_response("Hi") == "done"

    url, _, headers = request_json.call_args.args
    assert url == "http://llm:9000/v1/chat/completions"
    assert "Authorization" not in headers


@pytest.mark.asyncio
async def test_missing_key():
    with pytest.raises(ValueError, match="API key not configured"):
        await LLMService({"provider": "openai", "openai": {}}).generate_response("Hi")


@pytest.mark.asyncio
async def test_unsupported_provider():
    with pytest.raises(ValueError, match="Unsupported provider"):
        await LLMService({"provider": "other"}).generate_response("Hi")


def test_empty_choices_is_error():
    with pytest.raises(LLMError):
        LLMService({})._parse_openai_response({"choices": []})


@pytest.mark.asyncio
async def test_retry_on_rate_limit():
    service = LLMService({})
    operation = AsyncMock(side_effect=[LLMError("busy", 429), {"ok": True}])

    with patch("suggestion_backend.services.llm_service.asyncio.sleep", AsyncMock()) as sleep:
        assert await service._retry_with_backoff(operation) == {"ok": True}

    assert operation.await_count == 2
    sleep.assert_awaited_once_with(10)


@pytest.mark.asyncio
async def test_no_retry_on_client_error_status():
    service = LLMService({})
    operation = AsyncMock(side_effect=LLMError("bad request", 400))

    with pytest.raises(LLMError):
        await service._retry_with_backoff(operation)
    assert operation.await_count == 1


@pytest.mark.asyncio
async def test_default_provider_matches_config_default():
    service = LLMService({})
    assert service.provider == "gemini"
    with pytest.raises(ValueError, match="Gemini API key not configured"):
        await service.generate_response("Hi")
