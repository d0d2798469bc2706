"""Tests for LLMClient provider abstraction."""

import json
import logging

import httpx
import pytest
from unittest.mock import Mock

from reddisearch.common.llm_client import LLMClient


def _http(status=200, body=None, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body if body is not None else {})
    return httpx.Client(transport=httpx.MockTransport(handler))


def _gemini_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestLLMClientInit:
    def test_missing_gemini_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="reddisearch.common.llm_client"):
            client = LLMClient(provider="gemini")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_anthropic_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="reddisearch.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_openai_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="reddisearch.common.llm_client"):
            client = LLMClient(provider="openai")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_ollama_needs_no_key(self):
        client = LLMClient(provider="ollama", model="llama3", http_client=_http())
        assert client.is_available

    def test_auto_provider_raises(self):
        with pytest.raises(ValueError, match="auto"):
            LLMClient(provider="auto")

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="reddisearch.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_from_config(self):
        from reddisearch.common.config import LLMConfig
        cfg = LLMConfig(provider="ollama", ollama_model="mistral", ollama_endpoint="http://ollama:11434/")
        client = LLMClient.from_config(cfg, http_client=_http())
        assert client.provider == "ollama"
        assert client.model == "mistral"


class TestGemini:
    def test_request_shape_and_answer(self):
        seen = []
        client = LLMClient(
            provider="gemini",
            model="gemini-1.5-flash-latest",
            gemini_api_key="test-key",
            http_client=_http(body=_gemini_body("  Get a ThinkPad.  "), seen=seen),
        )

        text = client.generate("Which laptop?", temperature=0.3, max_tokens=200)

        assert text == "Get a ThinkPad."
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path.endswith("/models/gemini-1.5-flash-latest:generateContent")
        assert request.url.params["key"] == "test-key"
        payload = json.loads(request.content)
        assert payload["contents"][0]["parts"][0]["text"] == "Which laptop?"
        assert payload["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 200}

    def test_http_500_returns_none(self, caplog):
        client = LLMClient(
            provider="gemini", model="m", gemini_api_key="k",
            http_client=_http(status=500, body={"error": "boom"}),
        )
        with caplog.at_level(logging.WARNING, logger="reddisearch.common.llm_client"):
            assert client.generate("q") is None
        assert "HTTP 500" in caplog.text

    def test_no_candidates_returns_none(self):
        client = LLMClient(
            provider="gemini", model="m", gemini_api_key="k",
            http_client=_http(body={"candidates": []}),
        )
        assert client.generate("q") is None

    def test_malformed_json_returns_none(self, caplog):
        client = LLMClient(
            provider="gemini", model="m", gemini_api_key="k",
            http_client=_http(body="<html>not json</html>"),
        )
        with caplog.at_level(logging.WARNING, logger="reddisearch.common.llm_client"):
            assert client.generate("q") is None
        assert "Malformed" in caplog.text

    def test_transport_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = LLMClient(
            provider="gemini", model="m", gemini_api_key="k",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        assert client.generate("q") is None


class TestOllama:
    def test_request_shape_and_answer(self):
        seen = []
        client = LLMClient(
            provider="ollama",
            model="llama3",
            ollama_endpoint="http://ollama:11434",
            http_client=_http(body={"response": "Try a MacBook Air."}, seen=seen),
        )

        assert client.generate("Which laptop?", temperature=0.5, max_tokens=100) == "Try a MacBook Air."
        request = seen[0]
        assert str(request.url) == "http://ollama:11434/api/generate"
        assert json.loads(request.content) == {
            "model": "llama3",
            "prompt": "Which laptop?",
            "temperature": 0.5,
            "num_predict": 100,
            "stream": False,
        }


class TestSDKProviders:
    def test_anthropic_generate(self):
        client = LLMClient(provider="anthropic")
        sdk = Mock()
        sdk.messages.create.return_value = Mock(content=[Mock(text="answer")])
        client._client = sdk
        client.model = "claude-test"

        assert client.generate("q", max_tokens=50) == "answer"
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 50

    def test_openai_error_returns_none(self, caplog):
        client = LLMClient(provider="openai")
        sdk = Mock()
        sdk.chat.completions.create.side_effect = RuntimeError("rate limited")
        client._client = sdk

        with caplog.at_level(logging.WARNING, logger="reddisearch.common.llm_client"):
            assert client.generate("q") is None
        assert "Error calling openai" in caplog.text


class TestLLMClientGenerate:
    def test_generate_returns_none_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        assert client.generate("test") is None
