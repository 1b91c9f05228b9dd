"""
PeopleCore HR Assistant
Chat orchestrator.

Flow:
    1. Build the system prompt for the caller + bound the client history
    2. Gateway pass 1 (intent schema, low temperature)
    3. Parse the reply into one intent
    4. Route:
         conversation → reply text
         query        → validate → describe columns → row-level scope → execute → format
         loan_check   → eligibility engine → format
         actions      → dispatcher (re-checks authorization)
         policy       → dispatcher, handbook catalog (question text when no query)
         unknown      → fixed reply

Every failure kind is recovered here and becomes a reply; nothing but
programming errors escapes ``handle``.
"""

import logging

from peoplecore.ai.conversation import ConversationWindow
from peoplecore.ai.formatter import ResultFormatter
from peoplecore.ai.intents import (
    Conversation,
    CreateEmployee,
    DataQuery,
    GenerateCertificate,
    LoanEligibility,
    PolicyLookup,
    PromoteEmployee,
    parse_intent,
)
from peoplecore.ai.prompts import INTENT_SCHEMA, build_system_prompt
from peoplecore.ai.replies import (
    KIND_CHAT,
    KIND_ERROR,
    KIND_LOAN_CHECK,
    KIND_LOAN_CHECK_ALL,
    KIND_UNKNOWN,
    ChatReply,
)
from peoplecore.ai.sql_guard import apply_row_level_security, validate_sql
from peoplecore.core.exceptions import LLMGatewayError, QueryExecutionError
from peoplecore.services.action_service import ActionDispatcher
from peoplecore.services.loan_service import LoanService
from peoplecore.services.query_executor import QueryExecutor

logger = logging.getLogger(__name__)

UNAVAILABLE_ANSWER = "The assistant is unavailable right now. Please try again in a moment."
EXECUTION_FAILED_ANSWER = "I couldn't complete that request. Please try rephrasing your question."
UNKNOWN_ANSWER = (
    "I'm not sure how to help with that. I can answer questions about employees, "
    "salaries, leave and loans, or prepare a salary certificate."
)
EMPTY_CONVERSATION_ANSWER = "I'm sorry, I couldn't process that."

ALL_LOANS_HINTS = {"", "all", "any"}


class HRChatAssistant:
    """One instance per request; holds no per-caller state."""

    def __init__(self, gateway, executor=None, loan_service=None, dispatcher=None,
                 formatter=None, history_window: int = 10, temperature: float = 0.1):
        self.gateway = gateway
        self.executor = executor or QueryExecutor()
        self.loan_service = loan_service or LoanService()
        self.dispatcher = dispatcher or ActionDispatcher()
        self.formatter = formatter or ResultFormatter(gateway)
        self.window = ConversationWindow(history_window)
        self.temperature = temperature

    def handle(self, identity, message: str, prior_turns=None) -> ChatReply:
        system_turn = build_system_prompt(identity)
        messages = self.window.build_messages(system_turn, prior_turns, message)

        try:
            reply = self.gateway.chat(
                messages,
                purpose="intent",
                user=identity.id,
                intent_schema=INTENT_SCHEMA,
                temperature=self.temperature,
            )
        except LLMGatewayError as exc:
            logger.error("Intent call failed for %s: %s", identity.id, exc)
            return ChatReply(UNAVAILABLE_ANSWER, kind=KIND_ERROR)

        intent = parse_intent(reply.get("content"))
        logger.info("Chat intent=%s caller=%s role=%s",
                    type(intent).__name__, identity.id, identity.role,
                    extra={"intent": type(intent).__name__, "caller_id": identity.id})

        if isinstance(intent, Conversation):
            return ChatReply(intent.response_text or EMPTY_CONVERSATION_ANSWER, kind=KIND_CHAT)
        if isinstance(intent, DataQuery):
            return self._run_query(identity, message, intent)
        if isinstance(intent, LoanEligibility):
            return self._run_loan_check(identity, message, intent)
        if isinstance(intent, PolicyLookup) and not intent.query:
            intent = PolicyLookup(query=message)
        if isinstance(intent, (CreateEmployee, PromoteEmployee, GenerateCertificate, PolicyLookup)):
            return self.dispatcher.dispatch(intent, identity)
        return ChatReply(UNKNOWN_ANSWER, kind=KIND_UNKNOWN)

    # ── SQL path ──────────────────────────────────────────────────────────

    def _run_query(self, identity, question: str, intent: DataQuery) -> ChatReply:
        verdict = validate_sql(intent.sql, identity.role, identity.id)
        if not verdict.accepted:
            logger.warning("Rejected model SQL for %s: %s | %s", identity.id, verdict.reason, intent.sql)
            return ChatReply(
                f"I can't run that query: {verdict.reason}.",
                kind=KIND_ERROR,
                sql=intent.sql or None,
            )

        try:
            columns = [] if identity.is_hr else self.executor.describe_columns(
                verdict.sql, identity.id, identity.role,
            )
            statement = apply_row_level_security(verdict.sql, identity.role, identity.id, columns)
            result = self.executor.execute(statement, identity.id, identity.role)
        except QueryExecutionError as exc:
            answer = EXECUTION_FAILED_ANSWER
            if identity.is_hr:
                answer += f" Database error: {exc.detail}"
            return ChatReply(answer, kind=KIND_ERROR, sql=verdict.sql)

        return self.formatter.format_query(question, result, identity, sql=verdict.sql)

    # ── Loan path ─────────────────────────────────────────────────────────

    def _run_loan_check(self, identity, question: str, intent: LoanEligibility) -> ChatReply:
        hint = (intent.loan_type_hint or "").strip()
        if hint.lower() in ALL_LOANS_HINTS:
            results = self.loan_service.check_all(identity.id)
            kind = KIND_LOAN_CHECK_ALL
        else:
            results = [self.loan_service.check_eligibility(identity.id, hint)]
            kind = KIND_LOAN_CHECK
        return self.formatter.format_loans(question, results, identity, kind)
