"""Tests for the Gemini client: request shape, response validation, error mapping."""

from types import SimpleNamespace as NS
from unittest.mock import patch

import pytest

from chat_relay.ai_service import (
    FALLBACK_REPLY,
    GENERATION_CONFIG,
    SAFETY_SETTINGS,
    GeminiClient,
)
from chat_relay.config import Settings
from chat_relay.errors import (
    ContentFilteredError,
    CredentialError,
    EmptyResponseError,
    GenerationError,
    QuotaExceededError,
)
from tests.conftest import FakeModel, make_response


def _client(model):
    return GeminiClient(Settings(gemini_api_key="k"), model=model)


class TestGenerate:
    def test_returns_top_candidate_text(self):
        model = FakeModel([make_response("Paris")])
        assert _client(model).generate("capital of France?") == "Paris"

    def test_sends_sampling_and_safety_settings(self):
        model = FakeModel()
        _client(model).generate("prompt text")
        call = model.calls[0]
        assert call["prompt"] == "prompt text"
        assert call["generation_config"] == {
            "temperature": 0.7,
            "top_p": 0.8,
            "max_output_tokens": 1000,
        }
        assert call["generation_config"] == GENERATION_CONFIG
        assert call["safety_settings"] == SAFETY_SETTINGS
        assert {s["category"] for s in SAFETY_SETTINGS} == {
            "HARM_CATEGORY_HARASSMENT",
            "HARM_CATEGORY_HATE_SPEECH",
            "HARM_CATEGORY_SEXUALLY_EXPLICIT",
            "HARM_CATEGORY_DANGEROUS_CONTENT",
        }
        assert all(s["threshold"] == "BLOCK_MEDIUM_AND_ABOVE" for s in SAFETY_SETTINGS)

    def test_missing_text_uses_fallback(self):
        model = FakeModel([make_response(text=None)])
        assert _client(model).generate("hi") == FALLBACK_REPLY

    def test_missing_content_uses_fallback(self):
        response = make_response(candidates=[NS(content=None, finish_reason="STOP")])
        assert _client(FakeModel([response])).generate("hi") == FALLBACK_REPLY

    def test_no_candidates(self):
        model = FakeModel([make_response(candidates=[])])
        with pytest.raises(EmptyResponseError):
            _client(model).generate("hi")

    def test_safety_finish_reason(self):
        model = FakeModel([make_response("ignored", finish_reason="SAFETY")])
        with pytest.raises(ContentFilteredError) as excinfo:
            _client(model).generate("hi")
        assert excinfo.value.status_code == 400

    def test_safety_finish_reason_enum(self):
        reason = NS(name="SAFETY")
        model = FakeModel([make_response("ignored", finish_reason=reason)])
        with pytest.raises(ContentFilteredError):
            _client(model).generate("hi")

    def test_blocked_prompt(self):
        model = FakeModel([make_response(candidates=[], block_reason="SAFETY")])
        with pytest.raises(ContentFilteredError):
            _client(model).generate("hi")

    def test_unspecified_block_reason_is_ignored(self):
        model = FakeModel([make_response("ok", block_reason="BLOCK_REASON_UNSPECIFIED")])
        assert _client(model).generate("hi") == "ok"


class TestErrorMapping:
    def test_api_key_error(self):
        model = FakeModel(error=Exception("400 API key not valid. Please pass a valid API key."))
        with pytest.raises(CredentialError):
            _client(model).generate("hi")

    def test_quota_error(self):
        model = FakeModel(error=Exception("429 Resource has been exhausted (e.g. check quota)."))
        with pytest.raises(QuotaExceededError):
            _client(model).generate("hi")

    def test_other_error_keeps_message(self):
        model = FakeModel(error=Exception("500 backend exploded"))
        with pytest.raises(GenerationError) as excinfo:
            _client(model).generate("hi")
        assert excinfo.value.message == "500 backend exploded"
        assert not isinstance(excinfo.value, (CredentialError, QuotaExceededError))

    def test_not_configured(self):
        client = GeminiClient(Settings(gemini_api_key=None))
        assert not client.configured
        with pytest.raises(CredentialError):
            client.generate("hi")


class TestConfigure:
    @patch("chat_relay.ai_service.genai")
    def test_builds_model_from_settings(self, mock_genai):
        client = GeminiClient(Settings(gemini_api_key="secret", gemini_model="gemini-test"))
        mock_genai.configure.assert_called_once_with(api_key="secret")
        mock_genai.GenerativeModel.assert_called_once_with(model_name="gemini-test")
        assert client.model is mock_genai.GenerativeModel.return_value


class TestPing:
    def test_ping_ok(self):
        model = FakeModel()
        assert _client(model).ping() is True
        assert model.calls[0]["generation_config"]["max_output_tokens"] == 100

    def test_ping_failure(self):
        model = FakeModel(error=Exception("boom"))
        assert _client(model).ping() is False
