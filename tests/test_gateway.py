"""
PeopleCore HR Assistant
Tests — LLM Gateway (provider routing, local stub, usage logging, failures).
"""

import json

import pytest

from peoplecore.ai.gateway import LLMGateway, LLMProvider, LocalStubProvider
from peoplecore.ai.prompts import INTENT_SCHEMA
from peoplecore.core.exceptions import LLMGatewayError
from peoplecore.models.ai import TOKEN_COSTS, AIUsageLog, calculate_cost


class _BrokenProvider(LLMProvider):
    def chat(self, messages, model, **kwargs):
        raise TimeoutError("read timed out")


class TestCostCalculation:

    def test_known_model(self):
        assert calculate_cost("gpt-4o-mini", 1_000_000, 1_000_000) == pytest.approx(0.75)

    def test_unknown_model_is_free(self):
        assert calculate_cost("mystery-model", 5000, 5000) == 0.0

    def test_stub_listed(self):
        assert TOKEN_COSTS["local-stub"] == {"input": 0.0, "output": 0.0}


class TestProviderRouting:

    @pytest.mark.parametrize("model,provider", [
        ("moonshotai/kimi-k2-instruct-0905", "groq"),
        ("llama-3.3-70b-versatile", "groq"),
        ("gpt-4o", "openai"),
        ("gpt-4.1-nano", "openai"),
        ("claude-3-5-haiku-20241022", "anthropic"),
        ("claude-sonnet-4", "anthropic"),
        ("local-stub", "local"),
        ("some/other-open-model", "groq"),
    ])
    def test_provider_name_for(self, model, provider):
        assert LLMGateway.provider_name_for(model) == provider

    def test_local_always_registered(self, app):
        assert "local" in LLMGateway(app)._providers

    def test_falls_back_to_stub_without_key(self, app, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        _, name = LLMGateway(app)._get_provider("moonshotai/kimi-k2-instruct-0905")
        assert name == "local"

    def test_no_fallback_when_disabled(self, app, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        gw = LLMGateway(app)
        gw.allow_stub_fallback = False
        with pytest.raises(LLMGatewayError):
            gw._get_provider("gpt-4o-mini")


class TestLocalStub:

    def _ask(self, text, json_mode=True):
        return LocalStubProvider().chat(
            [{"role": "user", "content": text}], model="local-stub", json_mode=json_mode,
        )["content"]

    def test_intent_replies_are_json(self):
        assert json.loads(self._ask("Am I eligible for a car loan?")) == {
            "intent": "loan_check", "loanType": "Car",
        }
        assert json.loads(self._ask("What is my salary?"))["intent"] == "query"
        assert json.loads(self._ask("hello"))["intent"] == "conversation"
        assert json.loads(self._ask("What is the remote work policy?")) == {
            "intent": "policy_lookup", "query": "What is the remote work policy?",
        }

    def test_plain_mode_is_empty(self):
        assert self._ask("Summarise these rows", json_mode=False) == ""


class TestGatewayChat:

    def test_schema_appended_to_system_turn(self, app):
        messages = LLMGateway._with_intent_schema(
            [{"role": "system", "content": "S"}, {"role": "user", "content": "U"}], INTENT_SCHEMA,
        )
        assert messages[0]["content"].startswith("S\n\nRespond with exactly one JSON object")
        assert '"required"' in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "U"}

    def test_schema_without_system_turn_prepends_one(self):
        messages = LLMGateway._with_intent_schema([{"role": "user", "content": "U"}], "{intent}")
        assert messages[0]["role"] == "system"
        assert len(messages) == 2

    def test_chat_logs_usage(self, app):
        gw = LLMGateway(app)
        result = gw.chat(
            [{"role": "user", "content": "hello"}],
            model="local-stub", purpose="intent", user="emp-1", intent_schema=INTENT_SCHEMA,
        )
        assert result["provider"] == "local"
        assert json.loads(result["content"])["intent"] == "conversation"
        log = AIUsageLog.query.filter_by(purpose="intent").one()
        assert log.caller_id == "emp-1"
        assert log.total_tokens == log.prompt_tokens + log.completion_tokens
        assert log.success is True

    def test_failure_raises_and_is_logged(self, app):
        gw = LLMGateway(app)
        gw._providers["local"] = _BrokenProvider()
        with pytest.raises(LLMGatewayError, match="read timed out"):
            gw.chat([{"role": "user", "content": "hi"}], model="local-stub", purpose="summary")
        log = AIUsageLog.query.filter_by(purpose="summary").one()
        assert log.success is False
        assert "read timed out" in log.error_message

    def test_no_retry_on_failure(self, app):
        calls = []

        class _Counting(LLMProvider):
            def chat(self, messages, model, **kwargs):
                calls.append(model)
                raise ConnectionError("refused")

        gw = LLMGateway(app)
        gw._providers["local"] = _Counting()
        with pytest.raises(LLMGatewayError):
            gw.chat([{"role": "user", "content": "hi"}], model="local-stub")
        assert calls == ["local-stub"]
