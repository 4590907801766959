"""
Tests for transcript categorization.

The chat completions client is replaced with a dummy returning canned JSON.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from jobtalk.core.categorize import Categorizer, categorize_information, normalize_categorization
from jobtalk.core.errors import CategorizationError
from jobtalk.core.llm_handler import LLMHandler, LLMHandlerError, get_env_model_temperature
from jobtalk.core.types import SENTINEL, ContactInformation
from tests.helpers import JANE_DOE_RESPONSE, JANE_DOE_TRANSCRIPT, DummyAsyncOpenAI


@pytest.fixture(autouse=True)
def clean_model_env(monkeypatch):
    for var in ("JT_DEBUG", "LLM_MODEL", "IS_REASONING_MODEL", "MODEL_TEMPERATURE"):
        monkeypatch.delenv(var, raising=False)


def make_handler(tmp_path, **client_kwargs):
    client = DummyAsyncOpenAI(**client_kwargs)
    return LLMHandler(project_root=str(tmp_path), client=client), client


class TestLLMHandler:
    """Test request construction and response parsing."""

    def test_request_params(self, tmp_path):
        handler, _ = make_handler(tmp_path)
        params = handler.build_request_params("Paint the shed")

        assert params["model"] == "gpt-4o-mini"
        assert params["response_format"] == {"type": "json_object"}
        assert params["temperature"] == 0.2
        assert params["messages"][0]["role"] == "system"
        assert "Not mentioned" in params["messages"][0]["content"]
        assert "Paint the shed" in params["messages"][1]["content"]

    def test_reasoning_model_omits_temperature(self, tmp_path, monkeypatch):
        monkeypatch.setenv("IS_REASONING_MODEL", "true")
        monkeypatch.setenv("LLM_MODEL", "o3-mini")
        handler, _ = make_handler(tmp_path)
        params = handler.build_request_params("Paint the shed")

        assert params["model"] == "o3-mini"
        assert "temperature" not in params

    @pytest.mark.parametrize("value,expected", [("0.7", 0.7), ("5", 0.2), ("warm", 0.2)])
    def test_model_temperature(self, monkeypatch, value, expected):
        monkeypatch.setenv("MODEL_TEMPERATURE", value)
        assert get_env_model_temperature() == expected

    def test_returns_parsed_object(self, tmp_path):
        handler, client = make_handler(tmp_path, completion={"budget": "$500"})
        data = asyncio.run(handler.make_categorization_request("costs $500"))
        assert data == {"budget": "$500"}
        assert len(client.completions.calls) == 1

    def test_null_is_returned_as_none(self, tmp_path):
        handler, _ = make_handler(tmp_path, completion="null")
        assert asyncio.run(handler.make_categorization_request("hello")) is None

    @pytest.mark.parametrize("content", ["", "not json", "[1, 2]", '"text"'])
    def test_bad_content_raises(self, tmp_path, content):
        handler, _ = make_handler(tmp_path, completion=content)
        with pytest.raises(LLMHandlerError):
            asyncio.run(handler.make_categorization_request("hello"))

    def test_request_failure_is_attempted_once(self, tmp_path):
        handler, client = make_handler(tmp_path, completion_error=RuntimeError("rate limited"))
        with pytest.raises(LLMHandlerError, match="rate limited"):
            asyncio.run(handler.make_categorization_request("hello"))
        assert len(client.completions.calls) == 1


class TestNormalize:
    """Test normalization of raw model output."""

    def test_null_raises(self):
        with pytest.raises(CategorizationError, match="did not return the expected output"):
            normalize_categorization(None)

    def test_non_object_raises(self):
        with pytest.raises(CategorizationError):
            normalize_categorization(["scope"])

    def test_missing_fields_are_defaulted(self):
        fields = normalize_categorization({"scopeOfWork": "Fix the roof", "contactInformation": {"phone": "555-0000"}})
        assert fields.scope_of_work == "Fix the roof"
        assert fields.timeline == SENTINEL
        assert fields.budget == SENTINEL
        assert fields.contact_information.phone == "555-0000"
        assert fields.contact_information.name == SENTINEL


class TestCategorizer:
    """Test the categorizer end to end against a dummy model."""

    def test_empty_transcript_skips_model(self):
        handler = AsyncMock()
        fields = asyncio.run(Categorizer(handler=handler).categorize("   "))

        assert fields.scope_of_work == SENTINEL
        assert fields.timeline == SENTINEL
        assert fields.budget == SENTINEL
        assert fields.contact_information == ContactInformation()
        handler.make_categorization_request.assert_not_called()

    def test_empty_string_needs_no_client(self, monkeypatch):
        """No handler (and therefore no API key) is required for an empty transcript."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        fields = asyncio.run(categorize_information(""))
        assert fields.budget == SENTINEL

    def test_jane_doe_transcript(self, tmp_path):
        handler, client = make_handler(tmp_path, completion=JANE_DOE_RESPONSE)
        fields = asyncio.run(Categorizer(handler=handler).categorize(JANE_DOE_TRANSCRIPT))

        assert fields.contact_information.name == "Jane Doe"
        assert fields.contact_information.phone == "555-1234"
        assert fields.contact_information.email == SENTINEL
        assert "repaint" in fields.scope_of_work.lower()
        assert "one week" in fields.timeline
        assert "$500" in fields.budget

        user_message = client.completions.calls[0]["messages"][1]["content"]
        assert JANE_DOE_TRANSCRIPT in user_message

    def test_null_result_raises(self, tmp_path):
        handler, _ = make_handler(tmp_path, completion="null")
        with pytest.raises(CategorizationError) as exc_info:
            asyncio.run(Categorizer(handler=handler).categorize("Jane Doe"))
        assert exc_info.value.stage == "categorization"

    def test_invalid_json_raises(self, tmp_path):
        handler, _ = make_handler(tmp_path, completion="{not json")
        with pytest.raises(CategorizationError, match="Failed to categorize information"):
            asyncio.run(Categorizer(handler=handler).categorize("Jane Doe"))

    def test_service_failure_raises(self, tmp_path):
        handler, _ = make_handler(tmp_path, completion_error=TimeoutError("timed out"))
        with pytest.raises(CategorizationError, match="timed out"):
            asyncio.run(Categorizer(handler=handler).categorize("Jane Doe"))

    def test_debug_logs_request_and_response(self, tmp_path, monkeypatch):
        monkeypatch.setenv("JT_DEBUG", "1")
        handler, _ = make_handler(tmp_path, completion=JANE_DOE_RESPONSE)
        asyncio.run(Categorizer(handler=handler).categorize(JANE_DOE_TRANSCRIPT))

        debug_dir = tmp_path / ".jobtalk" / "debug"
        logged = sorted(p.name.split("_")[1] for p in debug_dir.glob("session_*/*.json"))
        assert logged == ["request", "response"]

        response_log = next(debug_dir.glob("session_*/llm_response_*.json"))
        assert json.loads(response_log.read_text(encoding="utf-8"))["original_text"] == JANE_DOE_TRANSCRIPT
