"""
PeopleCore HR Assistant
Language-model gateway.

One entry point, ``LLMGateway.chat``, used twice per chat request:

    purpose="intent"        system prompt + history, JSON reply expected
    purpose="summary"       rows → prose (plain text)
    purpose="loan_summary"  eligibility verdicts or loan-related rows → prose

Providers are chosen from the model id. Groq is reached through its
OpenAI-compatible endpoint with the ``openai`` SDK; Anthropic through its own
SDK. Without a key the gateway answers from ``LocalStubProvider`` (outside
production). Calls are bounded by ``LLM_TIMEOUT_SECONDS`` and never retried;
every call, failed or not, is written to ``AIUsageLog``.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod

from peoplecore.core.exceptions import LLMGatewayError
from peoplecore.models import db
from peoplecore.models.ai import AIUsageLog, calculate_cost

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 2048


def _reply(content: str, prompt_tokens: int, completion_tokens: int, model: str) -> dict:
    return {
        "content": content or "",
        "prompt_tokens": int(prompt_tokens or 0),
        "completion_tokens": int(completion_tokens or 0),
        "model": model,
    }


class LLMProvider(ABC):
    """
    A chat-completion backend.

    ``chat`` returns ``{content, prompt_tokens, completion_tokens, model}``
    and may raise anything; the gateway wraps failures.
    Recognised kwargs: ``temperature``, ``max_tokens``, ``json_mode``.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout = timeout

    @abstractmethod
    def chat(self, messages: list, model: str, **kwargs) -> dict:
        ...


# ── OpenAI-compatible (OpenAI, Groq) ─────────────────────────────────────────

class OpenAIProvider(LLMProvider):
    env_key = "OPENAI_API_KEY"
    base_url = None
    default_model = "gpt-4o-mini"

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(timeout)
        self.api_key = os.getenv(self.env_key, "")
        self._client = None

    @property
    def client(self):
        if self._client is None:
            import openai

            options = {"api_key": self.api_key, "timeout": self.timeout, "max_retries": 0}
            if self.base_url:
                options["base_url"] = self.base_url
            self._client = openai.OpenAI(**options)
        return self._client

    def chat(self, messages: list, model: str | None = None, **kwargs) -> dict:
        model = model or self.default_model
        request = {
            "model": model,
            "messages": messages,
            "temperature": kwargs.get("temperature", DEFAULT_TEMPERATURE),
            "max_tokens": kwargs.get("max_tokens", DEFAULT_MAX_TOKENS),
        }
        if kwargs.get("json_mode"):
            request["response_format"] = {"type": "json_object"}

        completion = self.client.chat.completions.create(**request)
        usage = completion.usage
        return _reply(
            completion.choices[0].message.content,
            getattr(usage, "prompt_tokens", 0),
            getattr(usage, "completion_tokens", 0),
            model,
        )


class GroqProvider(OpenAIProvider):
    """Groq's hosted open models (default chat model lives here)."""

    env_key = "GROQ_API_KEY"
    base_url = GROQ_BASE_URL
    default_model = "moonshotai/kimi-k2-instruct-0905"


# ── Anthropic ─────────────────────────────────────────────────────────────────

class AnthropicProvider(LLMProvider):
    env_key = "ANTHROPIC_API_KEY"
    default_model = "claude-3-5-haiku-20241022"

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(timeout)
        self.api_key = os.getenv(self.env_key, "")
        self._client = None

    @property
    def client(self):
        if self._client is None:
            import anthropic

            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def chat(self, messages: list, model: str | None = None, **kwargs) -> dict:
        model = model or self.default_model
        # Messages API takes the system prompt out of band
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        turns = [m for m in messages if m["role"] != "system"]

        request = {
            "model": model,
            "messages": turns,
            "temperature": kwargs.get("temperature", DEFAULT_TEMPERATURE),
            "max_tokens": kwargs.get("max_tokens", DEFAULT_MAX_TOKENS),
        }
        if system:
            request["system"] = system

        message = self.client.messages.create(**request)
        text = "".join(getattr(block, "text", "") for block in message.content)
        return _reply(text, message.usage.input_tokens, message.usage.output_tokens, model)


# ── Offline stub ──────────────────────────────────────────────────────────────

_SALARY_SQL = (
    "SELECT e.id AS employee_id, e.full_name, s.base_salary, s.currency "
    "FROM employees e JOIN salaries s ON s.employee_id = e.id "
    "WHERE s.effective_to IS NULL"
)
_LEAVE_SQL = (
    "SELECT employee_id, year, annual_entitlement, used_days, remaining_days "
    "FROM leave_summaries"
)
_EMPLOYEES_SQL = (
    "SELECT id, employee_code, full_name, grade, department "
    "FROM employees WHERE status = 'Active'"
)
_STUB_GREETING = (
    "I can help with salaries, leave balances, loan eligibility "
    "and salary certificates. What would you like to know?"
)


class LocalStubProvider(LLMProvider):
    """
    Keyword-driven stand-in so the whole pipeline runs without a provider key.

    Intent calls (``json_mode``) get a canned intent object; plain-text calls
    (summaries) get an empty string, which sends the formatter to its
    deterministic rendering.
    """

    def chat(self, messages: list, model: str = "local-stub", **kwargs) -> dict:
        question = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
        content = json.dumps(self.intent_for(question)) if kwargs.get("json_mode") else ""
        # Rough token estimate so usage rows are not all zero
        return _reply(content, len(question.split()) * 2, len(content.split()) * 2, "local-stub")

    @staticmethod
    def intent_for(question: str) -> dict:
        text = question.lower()
        if "policy" in text or "handbook" in text or "remote" in text:
            return {"intent": "policy_lookup", "query": question.strip()}
        if "loan" in text:
            kind = next((k for k in ("car", "housing", "personal") if k in text), None)
            return {"intent": "loan_check", "loanType": kind.capitalize() if kind else "all"}
        if "certificate" in text:
            return {"intent": "generate_certificate", "employeeName": "me"}
        if "salary" in text or "paid" in text:
            return {"intent": "query", "sql": _SALARY_SQL,
                    "explanation": "Current salary from the open salary record."}
        if "leave" in text:
            return {"intent": "query", "sql": _LEAVE_SQL, "explanation": "Leave balance per year."}
        if any(word in text for word in ("grade", "department", "employee")):
            return {"intent": "query", "sql": _EMPLOYEES_SQL, "explanation": "Active employee records."}
        return {"intent": "conversation", "response": _STUB_GREETING}


# ── Gateway ───────────────────────────────────────────────────────────────────

class LLMGateway:
    """
    Routes chat calls to a provider and records usage.

        gw = LLMGateway(app)
        reply = gw.chat(messages, purpose="intent", user=identity.id, intent_schema=INTENT_SCHEMA)
        reply["content"]   # raw model text

    The reply dict also carries token counts, ``cost_usd``, ``latency_ms``
    and ``provider``. Any failure is raised as ``LLMGatewayError``.
    """

    PROVIDER_MAP = {
        "moonshotai/kimi-k2-instruct-0905": "groq",
        "llama-3.3-70b-versatile": "groq",
        "gpt-4o-mini": "openai",
        "gpt-4o": "openai",
        "claude-3-5-haiku-20241022": "anthropic",
        "claude-3-5-sonnet-20241022": "anthropic",
        "local-stub": "local",
    }
    PROVIDER_CLASSES = {
        "groq": GroqProvider,
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
    }
    DEFAULT_CHAT_MODEL = "moonshotai/kimi-k2-instruct-0905"

    def __init__(self, app=None):
        cfg = app.config if app is not None else {}
        self.default_model = (
            cfg.get("LLM_DEFAULT_CHAT_MODEL")
            or os.getenv("LLM_DEFAULT_CHAT_MODEL")
            or self.DEFAULT_CHAT_MODEL
        )
        self.timeout = float(cfg.get("LLM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
        self.default_temperature = float(cfg.get("LLM_TEMPERATURE", DEFAULT_TEMPERATURE))
        self.allow_stub_fallback = bool(cfg.get("LLM_ALLOW_STUB_FALLBACK", True))

        self._providers = {"local": LocalStubProvider(self.timeout)}
        for name, cls in self.PROVIDER_CLASSES.items():
            if os.getenv(cls.env_key):
                self._providers[name] = cls(self.timeout)

    @classmethod
    def provider_name_for(cls, model: str) -> str:
        """Known ids by table, otherwise by prefix; open-weight ids default to Groq."""
        if model in cls.PROVIDER_MAP:
            return cls.PROVIDER_MAP[model]
        if model.startswith("claude"):
            return "anthropic"
        if model.startswith(("gpt-", "o1", "o3")):
            return "openai"
        if model.startswith("local"):
            return "local"
        return "groq"

    def _get_provider(self, model: str) -> tuple[LLMProvider, str]:
        name = self.provider_name_for(model)
        provider = self._providers.get(name)
        if provider is not None:
            return provider, name
        if not self.allow_stub_fallback:
            raise LLMGatewayError(
                f"Provider '{name}' is not configured (missing API key?)", provider=name, model=model,
            )
        logger.warning("No key for provider '%s'; model '%s' answered by the local stub", name, model)
        return self._providers["local"], "local"

    @staticmethod
    def _with_intent_schema(messages: list, intent_schema) -> list:
        """Copy of ``messages`` with the JSON reply contract appended to the first system turn."""
        shape = intent_schema if isinstance(intent_schema, str) else json.dumps(intent_schema, indent=2)
        contract = f"Respond with exactly one JSON object and nothing else. The object must follow this shape:\n{shape}"

        out = [dict(m) for m in messages]
        system = next((m for m in out if m["role"] == "system"), None)
        if system is None:
            return [{"role": "system", "content": contract}, *out]
        system["content"] = f"{system['content']}\n\n{contract}"
        return out

    def chat(self, messages: list, model: str | None = None, *, purpose: str = "",
             user: str = "system", intent_schema=None, temperature: float | None = None,
             **kwargs) -> dict:
        """
        One completion. ``intent_schema`` switches the call to JSON mode and
        appends the reply contract; without it the call is plain text.
        ``kwargs`` (e.g. ``max_tokens``) go to the provider.
        """
        model = model or self.default_model
        provider, provider_name = self._get_provider(model)

        if intent_schema is not None:
            messages = self._with_intent_schema(messages, intent_schema)
        kwargs["json_mode"] = intent_schema is not None
        kwargs["temperature"] = self.default_temperature if temperature is None else temperature

        started = time.perf_counter()
        try:
            result = provider.chat(messages, model, **kwargs)
        except Exception as exc:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.warning("LLM %s call failed on %s/%s after %dms: %s",
                           purpose or "chat", provider_name, model, elapsed, exc)
            self._record_usage(provider_name, model, user, purpose, 0, 0, 0.0, elapsed, error=str(exc))
            raise LLMGatewayError(f"LLM call failed: {exc}", provider=provider_name, model=model) from exc

        elapsed = int((time.perf_counter() - started) * 1000)
        cost = calculate_cost(model, result["prompt_tokens"], result["completion_tokens"])
        result.update(cost_usd=cost, latency_ms=elapsed, provider=provider_name)

        self._record_usage(provider_name, model, user, purpose,
                           result["prompt_tokens"], result["completion_tokens"], cost, elapsed)
        logger.debug("LLM %s ok on %s/%s: %d+%d tokens in %dms", purpose or "chat", provider_name, model,
                     result["prompt_tokens"], result["completion_tokens"], elapsed)
        return result

    @staticmethod
    def _record_usage(provider, model, user, purpose, prompt_tokens, completion_tokens,
                      cost_usd, latency_ms, error=None):
        # The usage ledger must not turn a good answer into a failure
        try:
            db.session.add(AIUsageLog(
                caller_id=str(user or "system"),
                purpose=purpose,
                provider=provider,
                model=model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                cost_usd=cost_usd,
                latency_ms=latency_ms,
                success=error is None,
                error_message=error,
            ))
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            logger.error("Could not record AI usage: %s", exc)
