"""Tests for the LLM client helpers (mediscore/services/llm.py)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from mediscore.models.extraction import DrugFields, InteractionFields
from mediscore.services import llm


class TestProviderDetection:
    """No API keys are configured in tests, so the client is unavailable."""

    def test_provider_is_dummy(self):
        assert llm.LLMClient().provider == "dummy"

    def test_not_available(self):
        assert llm.LLMClient().available() is False

    async def test_generate_json_raises_without_provider(self):
        with pytest.raises(RuntimeError, match="unavailable"):
            await llm.LLMClient().generate_json(system="s", user="u", response_model=DrugFields)

    def test_explicit_provider_wins(self):
        assert llm.detect_provider("OpenAI") == "openai"
        assert llm.detect_provider("auto") == "dummy"

    def test_provider_override_without_key_is_unavailable(self):
        assert llm.LLMClient(provider="anthropic").available() is False


class TestModelTiers:
    def test_openai_defaults(self):
        client = llm.LLMClient()
        client.provider = "openai"
        assert client.model_for_tier("fast") == "gpt-4o-mini"
        assert client.model_for_tier("high") == "gpt-4o"

    def test_unknown_tier_uses_standard(self):
        client = llm.LLMClient()
        client.provider = "anthropic"
        assert client.model_for_tier("bogus") == llm.DEFAULT_MODELS["anthropic"]["standard"]


class TestExtractJsonObject:
    def test_strips_json_fence(self):
        raw = '```json\n{"severity": "major"}\n```'
        assert llm.extract_json_object(raw) == '{"severity": "major"}'

    def test_strips_surrounding_prose(self):
        raw = 'Here you go: {"severity": "major"} hope that helps'
        assert llm.extract_json_object(raw) == '{"severity": "major"}'

    def test_no_object_unchanged(self):
        assert llm.extract_json_object("nothing here") == "nothing here"


class TestCoerceFields:
    def test_comma_string_becomes_list(self):
        data = llm.coerce_fields({"monitoring_parameters": "INR, Signs of bleeding"}, InteractionFields)
        assert data["monitoring_parameters"] == ["INR", "Signs of bleeding"]

    def test_literal_is_lowercased(self):
        data = llm.coerce_fields({"severity": " MAJOR "}, InteractionFields)
        assert data["severity"] == "major"
        assert InteractionFields.model_validate(data).severity == "major"

    def test_plain_strings_keep_case(self):
        data = llm.coerce_fields({"mechanism": " CYP2C19 inhibition "}, InteractionFields)
        assert data["mechanism"] == "CYP2C19 inhibition"

    def test_non_dict_becomes_empty(self):
        assert llm.coerce_fields(["not", "a", "dict"], DrugFields) == {}

    def test_none_values_untouched(self):
        assert llm.coerce_fields({"effects": None}, InteractionFields) == {"effects": None}


class TestAnthropicPath:
    async def test_invalid_json_is_coerced(self):
        block = MagicMock()
        block.text = '```json\n{"severity": "Major", "effects": "bleeding, bruising"}\n```'
        response = MagicMock()
        response.content = [block]

        client = llm.LLMClient()
        client.provider = "anthropic"
        client._anthropic = MagicMock()
        client._anthropic.messages.create = AsyncMock(return_value=response)

        fields = await client.generate_json(system="s", user="u", response_model=InteractionFields)
        assert fields.severity == "major"
        assert fields.effects == ["bleeding", "bruising"]
        kwargs = client._anthropic.messages.create.call_args.kwargs
        assert kwargs["system"] == "s"
        assert kwargs["messages"] == [{"role": "user", "content": "u"}]
