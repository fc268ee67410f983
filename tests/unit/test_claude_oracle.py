"""
Unit tests for ClaudeSuggestionOracle.

Run: pytest tests/unit/test_claude_oracle.py -v
"""

import json
from types import SimpleNamespace

import anthropic
import httpx
import pytest
from unittest.mock import MagicMock

from exceptions import ConfigurationError, UpstreamUnavailableError
from integrations.claude_oracle import (
    ClaudeSuggestionOracle,
    build_attribute_system_prompt,
    parse_mappings,
)
from models.attribute import AttributeType


def claude_reply(text: str) -> SimpleNamespace:
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture
def anthropic_client():
    return MagicMock()


@pytest.fixture
def oracle(anthropic_client):
    return ClaudeSuggestionOracle(api_key="test-key", model="test-model", client=anthropic_client)


class TestParseMappings:
    """Tests for parse_mappings()"""

    def test_plain_json(self):
        assert parse_mappings('{"mappings": [{"master_key": "a"}]}') == [{"master_key": "a"}]

    def test_strips_code_fences(self):
        text = '```json\n{"mappings": [{"canonical_id": "c1", "target_id": null}]}\n```'

        assert parse_mappings(text) == [{"canonical_id": "c1", "target_id": None}]

    def test_drops_non_object_entries(self):
        assert parse_mappings('{"mappings": [{"a": 1}, "x", 3]}') == [{"a": 1}]

    @pytest.mark.parametrize("text", ["not json", "[1, 2]", '{"mappings": {}}', "{}"])
    def test_malformed(self, text):
        with pytest.raises(ValueError):
            parse_mappings(text)


class TestSystemPrompt:

    def test_flags_prompt_has_no_values_shape(self):
        prompt = build_attribute_system_prompt(AttributeType.FLAGS)

        assert "do not have child values" in prompt
        assert '"values"' not in prompt

    def test_parameter_prompt_asks_for_values(self):
        prompt = build_attribute_system_prompt(AttributeType.VARIANTS)

        assert '"values"' in prompt
        assert "variant parameters" in prompt


class TestClaudeSuggestionOracle:

    def test_missing_api_key(self):
        oracle = ClaudeSuggestionOracle(api_key="")

        with pytest.raises(ConfigurationError) as exc_info:
            oracle.suggest_category_mappings({"canonical_categories": []})

        assert exc_info.value.code == "CONFIGURATION_ERROR"

    def test_sends_payload_and_returns_mappings(self, oracle, anthropic_client):
        # Arrange
        anthropic_client.messages.create.return_value = claude_reply(
            '{"mappings": [{"master_key": "new", "target_key": "nove", "confidence": 0.8}]}'
        )
        payload = {"type": "flags", "master_attributes": [{"key": "new", "label": "Novinka"}]}

        # Act
        result = oracle.suggest_attribute_mappings(AttributeType.FLAGS, payload)

        # Assert
        assert result == [{"master_key": "new", "target_key": "nove", "confidence": 0.8}]
        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert json.loads(kwargs["messages"][0]["content"]) == payload
        assert "Novinka" in kwargs["messages"][0]["content"]

    def test_connection_error(self, oracle, anthropic_client):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        anthropic_client.messages.create.side_effect = anthropic.APIConnectionError(request=request)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            oracle.suggest_category_mappings({})

        assert exc_info.value.code == "AI_UNAVAILABLE"
        assert exc_info.value.message == "AI mapping service is unavailable."

    def test_malformed_answer(self, oracle, anthropic_client):
        anthropic_client.messages.create.return_value = claude_reply("Sorry, I cannot help with that.")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            oracle.suggest_category_mappings({})

        assert exc_info.value.message == "AI response could not be parsed."
        assert exc_info.value.details["kind"] == "category"

    def test_non_text_blocks_ignored(self, oracle, anthropic_client):
        anthropic_client.messages.create.return_value = SimpleNamespace(content=[
            SimpleNamespace(type="thinking", thinking="..."),
            SimpleNamespace(type="text", text='{"mappings": []}'),
        ])

        assert oracle.suggest_category_mappings({}) == []
