"""
Unit tests for classification providers.

Tests for:
- Request payloads per provider
- Envelope extraction
- Error mapping (timeout, network, quota, http, parse, validation)
- Provider factory ordering and skipping
"""

import json
import pytest
from unittest.mock import MagicMock

import requests

from classify.core.exceptions import ConfigError
from classify.core.types import ClassificationRequest, ErrorKind, ProviderConfig
from classify.providers.anthropic import AnthropicProvider
from classify.providers.factory import create_provider, create_providers
from classify.providers.gemini import GeminiProvider
from classify.providers.ollama import OllamaProvider
from classify.providers.openai import OpenAIProvider


VALID_OUTPUT = json.dumps({"label": "Technology", "confidence": 0.92, "reasoning": "code samples"})


def make_response(status_code=200, body=None, text=None):
    """Create a mocked requests response."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text if text is not None else json.dumps(body or {})
    if body is None and text is not None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def request_obj():
    return ClassificationRequest(
        title="Building a CLI in Python",
        excerpt="argparse and subcommands",
        source="realpython.com",
        hints=["Technology"],
        categories=["Technology", "Sports", "General"],
    )


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


class TestOllamaProvider:
    """Tests for OllamaProvider."""

    def test_success(self, session, request_obj):
        session.post.return_value = make_response(body={"message": {"content": VALID_OUTPUT}})
        provider = OllamaProvider(ProviderConfig(name="ollama"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.success is True
        assert attempt.provider == "ollama"
        assert attempt.raw_label == "Technology"
        assert attempt.confidence == 0.92
        assert attempt.model == "llama3.2"

        args, kwargs = session.post.call_args
        assert args[0] == "http://localhost:11434/api/chat"
        assert kwargs["json"]["stream"] is False
        assert kwargs["json"]["options"]["temperature"] == 0.1
        assert kwargs["json"]["options"]["num_predict"] == 300
        assert "format" in kwargs["json"]
        assert kwargs["timeout"] == 30.0

    def test_missing_message(self, session, request_obj):
        session.post.return_value = make_response(body={"done": True})
        provider = OllamaProvider(ProviderConfig(name="ollama"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.success is False
        assert attempt.error_kind == ErrorKind.PARSE

    def test_connection_error(self, session, request_obj):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        provider = OllamaProvider(ProviderConfig(name="ollama"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.success is False
        assert attempt.error_kind == ErrorKind.NETWORK
        assert "Failed to connect" in attempt.error_message

    def test_timeout(self, session, request_obj):
        session.post.side_effect = requests.exceptions.Timeout("read timed out")
        provider = OllamaProvider(ProviderConfig(name="ollama", timeout_seconds=5), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.error_kind == ErrorKind.TIMEOUT

    def test_unparsable_model_output(self, session, request_obj):
        session.post.return_value = make_response(body={"message": {"content": "Technology, probably"}})
        provider = OllamaProvider(ProviderConfig(name="ollama"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.success is False
        assert attempt.error_kind == ErrorKind.PARSE

    def test_invalid_model_output(self, session, request_obj):
        content = json.dumps({"label": "Technology", "confidence": 7, "reasoning": ""})
        session.post.return_value = make_response(body={"message": {"content": content}})
        provider = OllamaProvider(ProviderConfig(name="ollama"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.error_kind == ErrorKind.VALIDATION


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    def test_success(self, session, request_obj):
        body = {"choices": [{"message": {"content": VALID_OUTPUT}}]}
        session.post.return_value = make_response(body=body)
        provider = OpenAIProvider(ProviderConfig(name="openai", api_key="sk-test"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.success is True
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.openai.com/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["json"]["response_format"] == {"type": "json_object"}
        assert kwargs["json"]["messages"][0]["role"] == "system"

    def test_rate_limited_is_quota(self, session, request_obj):
        session.post.return_value = make_response(status_code=429, text="Too Many Requests")
        provider = OpenAIProvider(ProviderConfig(name="openai", api_key="sk-test"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.error_kind == ErrorKind.QUOTA

    def test_quota_marker_in_body(self, session, request_obj):
        session.post.return_value = make_response(
            status_code=403, text='{"error": {"code": "insufficient_quota"}}'
        )
        provider = OpenAIProvider(ProviderConfig(name="openai", api_key="sk-test"), session=session)

        assert provider.classify(request_obj).error_kind == ErrorKind.QUOTA

    def test_server_error_is_http(self, session, request_obj):
        session.post.return_value = make_response(status_code=500, text="Internal Server Error")
        provider = OpenAIProvider(ProviderConfig(name="openai", api_key="sk-test"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.error_kind == ErrorKind.HTTP
        assert "500" in attempt.error_message

    def test_non_json_envelope(self, session, request_obj):
        session.post.return_value = make_response(text="<html>gateway</html>")
        provider = OpenAIProvider(ProviderConfig(name="openai", api_key="sk-test"), session=session)

        assert provider.classify(request_obj).error_kind == ErrorKind.PARSE

    def test_empty_choices(self, session, request_obj):
        session.post.return_value = make_response(body={"choices": []})
        provider = OpenAIProvider(ProviderConfig(name="openai", api_key="sk-test"), session=session)

        assert provider.classify(request_obj).error_kind == ErrorKind.PARSE


class TestAnthropicProvider:

    def test_success_joins_text_blocks(self, session, request_obj):
        body = {"content": [
            {"type": "text", "text": VALID_OUTPUT[:10]},
            {"type": "text", "text": VALID_OUTPUT[10:]},
        ]}
        session.post.return_value = make_response(body=body)
        provider = AnthropicProvider(ProviderConfig(name="anthropic", api_key="key"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.success is True
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.anthropic.com/v1/messages"
        assert kwargs["headers"]["x-api-key"] == "key"
        assert kwargs["json"]["system"]

    def test_no_text_block(self, session, request_obj):
        session.post.return_value = make_response(body={"content": [{"type": "tool_use"}]})
        provider = AnthropicProvider(ProviderConfig(name="anthropic", api_key="key"), session=session)

        assert provider.classify(request_obj).error_kind == ErrorKind.PARSE


class TestGeminiProvider:

    def test_success(self, session, request_obj):
        body = {"candidates": [{"content": {"parts": [{"text": VALID_OUTPUT}]}}]}
        session.post.return_value = make_response(body=body)
        provider = GeminiProvider(ProviderConfig(name="gemini", api_key="g-key"), session=session)

        attempt = provider.classify(request_obj)

        assert attempt.success is True
        args, kwargs = session.post.call_args
        assert args[0].endswith("/models/gemini-1.5-flash:generateContent")
        assert kwargs["params"] == {"key": "g-key"}
        assert kwargs["json"]["generationConfig"]["responseMimeType"] == "application/json"

    def test_resource_exhausted_is_quota(self, session, request_obj):
        session.post.return_value = make_response(
            status_code=400, text='{"error": {"status": "RESOURCE_EXHAUSTED"}}'
        )
        provider = GeminiProvider(ProviderConfig(name="gemini", api_key="g-key"), session=session)

        assert provider.classify(request_obj).error_kind == ErrorKind.QUOTA


class TestProviderFactory:
    """Tests for create_provider / create_providers."""

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="Unknown provider"):
            create_provider(ProviderConfig(name="mystery"))

    def test_keeps_order_and_skips_keyless(self, session):
        configs = [
            ProviderConfig(name="gemini"),
            ProviderConfig(name="openai", api_key="sk"),
            ProviderConfig(name="anthropic", api_key="a", enabled=False),
            ProviderConfig(name="ollama"),
        ]

        providers = create_providers(configs, session=session)

        assert [p.name for p in providers] == ["openai", "ollama"]
        assert all(p.session is session for p in providers)

    def test_unknown_in_list(self):
        with pytest.raises(ConfigError):
            create_providers([ProviderConfig(name="mystery")])
