"""
PeopleCore HR Assistant
Model reply → intent parsing.

``parse_intent`` is total: every reply text maps to exactly one intent and
nothing here raises. Anything that cannot be read as a JSON object with an
``intent`` tag becomes a ``Conversation`` carrying the raw text.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


# ── Intent types ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Conversation:
    response_text: str


@dataclass(frozen=True)
class DataQuery:
    sql: str
    explanation: str = ""


@dataclass(frozen=True)
class LoanEligibility:
    loan_type_hint: str = ""


@dataclass(frozen=True)
class CreateEmployee:
    fields: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PromoteEmployee:
    fields: dict = field(default_factory=dict)


@dataclass(frozen=True)
class GenerateCertificate:
    employee_name_hint: str = ""


@dataclass(frozen=True)
class PolicyLookup:
    query: str = ""


@dataclass(frozen=True)
class UnknownIntent:
    intent: str
    raw_text: str = ""


ParsedIntent = (
    Conversation | DataQuery | LoanEligibility | CreateEmployee
    | PromoteEmployee | GenerateCertificate | PolicyLookup | UnknownIntent
)

# Tag (lower-case) → canonical intent name
INTENT_ALIASES = {
    "conversation": "conversation",
    "chat": "conversation",
    "query": "query",
    "data_query": "query",
    "sql": "query",
    "loan_check": "loan_check",
    "loan_eligibility": "loan_check",
    "create_employee": "create_employee",
    "promote_employee": "promote_employee",
    "generate_certificate": "generate_certificate",
    "salary_certificate": "generate_certificate",
    "policy_lookup": "policy_lookup",
    "search_policies": "policy_lookup",
    "policy": "policy_lookup",
}

CREATE_FIELDS = ("fullName", "email", "grade", "salary", "department")
PROMOTE_FIELDS = ("employeeName", "newGrade", "newSalary")


# ── JSON extraction ───────────────────────────────────────────────────────────

_JSON_FENCE_RE = re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE_RE = re.compile(r"```[\w-]*\s*(.*?)```", re.DOTALL)


def _load_object(candidate: str) -> dict | None:
    try:
        value = json.loads(candidate)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _fenced_json(text: str):
    for match in _JSON_FENCE_RE.finditer(text):
        yield match.group(1).strip()


def _any_fence(text: str):
    for match in _ANY_FENCE_RE.finditer(text):
        yield match.group(1).strip()


def _whole_text(text: str):
    yield text.strip()


def _balanced_braces(text: str):
    """
    Yield every balanced ``{...}`` span, outermost-first by opening position.

    One left-to-right pass with a stack of open positions, so a reply full of
    unclosed braces costs linear time. Quotes only count inside a brace.
    """
    opens: list[int] = []
    spans: list[tuple[int, int]] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == "{":
            opens.append(i)
        elif not opens:
            continue
        elif ch == '"':
            in_string = True
        elif ch == "}":
            spans.append((opens.pop(), i))
    for start, end in sorted(spans):
        yield text[start:end + 1]


# Tried in order; the first candidate that parses to a JSON object wins
_STRATEGIES = (_fenced_json, _any_fence, _whole_text, _balanced_braces)


def extract_json_object(text: str | None) -> dict | None:
    """Pull the first JSON object out of a free-text model reply."""
    if not text or not text.strip():
        return None
    for strategy in _STRATEGIES:
        for candidate in strategy(text):
            obj = _load_object(candidate)
            if obj is not None:
                return obj
    return None


# ── Classification ────────────────────────────────────────────────────────────

def _text(value) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


def _pick(obj: dict, names: tuple[str, ...]) -> dict:
    return {name: obj[name] for name in names if obj.get(name) not in (None, "")}


def parse_intent(text: str | None) -> ParsedIntent:
    """Classify a model reply. Never raises."""
    raw = text or ""
    obj = extract_json_object(raw)
    if obj is None:
        logger.debug("Model reply is not a JSON object; treating as conversation")
        return Conversation(raw.strip())

    tag = obj.get("intent")
    if not isinstance(tag, str) or not tag.strip():
        return Conversation(raw.strip())

    tag = tag.strip().lower()
    kind = INTENT_ALIASES.get(tag)

    if kind == "conversation":
        response = _text(obj.get("response"))
        return Conversation(response or raw.strip())
    if kind == "query":
        return DataQuery(sql=_text(obj.get("sql")), explanation=_text(obj.get("explanation")))
    if kind == "loan_check":
        hint = obj.get("loanType", obj.get("loan_type"))
        return LoanEligibility(loan_type_hint=_text(hint))
    if kind == "create_employee":
        return CreateEmployee(fields=_pick(obj, CREATE_FIELDS))
    if kind == "promote_employee":
        return PromoteEmployee(fields=_pick(obj, PROMOTE_FIELDS))
    if kind == "generate_certificate":
        return GenerateCertificate(employee_name_hint=_text(obj.get("employeeName")))
    if kind == "policy_lookup":
        return PolicyLookup(query=_text(obj.get("query")))

    logger.info("Unrecognised intent tag from model: %s", tag)
    return UnknownIntent(intent=tag, raw_text=raw.strip())
