"""
PeopleCore HR Assistant
Result formatter — turns query results and loan verdicts into prose.

    empty result              → fixed "no records" reply
    ≤ 5 rows, not loan-related → direct bulleted ``Key: value`` rendering
    loan-related              → second model call with the loan rules restated
    otherwise                 → second model call on a bounded sample

Every model pass has a deterministic fallback for when it fails or is empty.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from decimal import Decimal

from peoplecore.ai.prompts import build_loan_messages, build_loan_query_messages, build_summary_messages
from peoplecore.ai.replies import KIND_DATA, ChatReply
from peoplecore.core.exceptions import LLMGatewayError
from peoplecore.models.ai import PURPOSE_LOAN_SUMMARY, PURPOSE_SUMMARY
from peoplecore.services.loan_service import loan_rules_digest

logger = logging.getLogger(__name__)

NO_RECORDS_ANSWER = "I couldn't find any records matching your request."
DIRECT_RENDER_MAX_ROWS = 5
DEFAULT_SAMPLE_ROWS = 20

_MONEY_HINTS = ("salary", "amount", "deduction")
_HIDDEN_IN_PROSE = {"id", "employee_id"}
_LOAN_WORD = re.compile(r"\bloans?\b", re.IGNORECASE)


# ── Value rendering ──────────────────────────────────────────────────────────

def _is_money(column: str) -> bool:
    lowered = column.lower()
    return any(hint in lowered for hint in _MONEY_HINTS)


def _is_finite(value) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    return math.isfinite(value)


def format_value(value, column: str = "") -> str:
    """None → N/A, numbers with separators (inf/nan as-is), ISO dates, Yes/No for booleans."""
    if value is None:
        return "N/A"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, int):
        if "year" in column.lower():
            return str(value)
        return f"{value:,}"
    if isinstance(value, (float, Decimal)):
        if not _is_finite(value):
            return str(value)
        if value == int(value):
            return f"{int(value):,}"
        return f"{value:,.2f}"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="minutes")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _render_cell(column: str, value) -> str:
    rendered = format_value(value, column)
    if isinstance(value, (float, Decimal)) and not _is_finite(value):
        return rendered
    if value is not None and _is_money(column) and not isinstance(value, bool):
        return f"AED {rendered}"
    return rendered


def humanize_column(column: str) -> str:
    """'base_salary' → 'Base Salary', 'fullName' → 'Full Name'."""
    spaced = []
    for i, ch in enumerate(column):
        if ch.isupper() and i and column[i - 1].islower():
            spaced.append(" ")
        spaced.append(ch)
    return "".join(spaced).replace("_", " ").strip().title()


def _prose_columns(columns: list) -> list:
    visible = [c for c in columns if c.lower() not in _HIDDEN_IN_PROSE]
    return visible or list(columns)


def render_rows(columns: list, rows: list) -> str:
    """Bulleted ``Key: value`` rendering for small result sets."""
    visible = _prose_columns(columns)
    if len(rows) == 1:
        lines = ["Here is what I found:"]
        lines += [f"- {humanize_column(c)}: {_render_cell(c, rows[0].get(c))}" for c in visible]
        return "\n".join(lines)

    lines = [f"Here is what I found ({len(rows)} records):"]
    for row in rows:
        cells = ", ".join(f"{humanize_column(c)}: {_render_cell(c, row.get(c))}" for c in visible)
        lines.append(f"- {cells}")
    return "\n".join(lines)


def _salary_column(columns: list) -> str | None:
    for column in columns:
        if "salary" in column.lower():
            return column
    return None


def _name_column(columns: list) -> str | None:
    for candidate in ("full_name", "fullname", "name", "employee_name"):
        for column in columns:
            if column.lower() == candidate:
                return column
    return None


def fallback_summary(result) -> str:
    """Deterministic summary used when the second model call is unavailable."""
    salary_col = _salary_column(result.columns)
    if salary_col and result.rows:
        name_col = _name_column(result.columns)
        lines = []
        for row in result.rows[:DIRECT_RENDER_MAX_ROWS]:
            amount = format_value(row.get(salary_col), salary_col)
            if name_col and row.get(name_col):
                lines.append(f"{row[name_col]}'s salary is AED {amount}")
            else:
                lines.append(f"The salary is AED {amount}")
        remaining = result.row_count - len(lines)
        if remaining > 0:
            lines.append(f"... and {remaining} more records.")
        return "\n".join(lines)
    return f"I found {result.row_count} records."


def is_loan_related(question: str, sql: str | None, columns: list) -> bool:
    """Mentions loans in the question, reads the loans table, or returns loan columns."""
    if _LOAN_WORD.search(question or "") or _LOAN_WORD.search(sql or ""):
        return True
    return any("loan" in c.lower() for c in columns)


def fallback_loan_query_summary(result) -> str:
    """Rows as found, followed by the loan rules so the figures can be read against them."""
    shown = result.rows[:DIRECT_RENDER_MAX_ROWS]
    text = render_rows(result.columns, shown)
    remaining = result.row_count - len(shown)
    if remaining > 0:
        text += f"\n... and {remaining} more records."
    return (
        f"{text}\n\n{loan_rules_digest()} "
        "Ask \"Am I eligible for a car loan?\" for a full eligibility check."
    )


def fallback_loan_summary(results: list) -> str:
    lines = []
    for r in results:
        line = f"{r.loan_type} loan: {r.reason}."
        if r.is_eligible and r.suggested_monthly_deduction is not None:
            line += (
                f" Suggested monthly deduction AED {format_value(r.suggested_monthly_deduction)}"
                f" over {r.suggested_tenure_months} months."
            )
        lines.append(line)
    return "\n".join(lines)


# ── Formatter ────────────────────────────────────────────────────────────────

class ResultFormatter:
    """Second-pass summarisation with deterministic fallbacks."""

    def __init__(self, gateway=None, sample_rows: int = DEFAULT_SAMPLE_ROWS):
        self.gateway = gateway
        self.sample_rows = sample_rows

    def _summarise(self, messages: list, *, purpose: str, user: str) -> str | None:
        if self.gateway is None:
            return None
        try:
            reply = self.gateway.chat(messages, purpose=purpose, user=user)
        except LLMGatewayError as exc:
            logger.warning("Summary call failed (%s); using fallback", exc)
            return None
        content = (reply.get("content") or "").strip()
        return content or None

    def format_query(self, question: str, result, identity, sql: str | None = None) -> ChatReply:
        if result.is_empty:
            return ChatReply(NO_RECORDS_ANSWER, kind=KIND_DATA, sql=sql, row_count=0, data=[])

        if is_loan_related(question, sql, result.columns):
            messages = build_loan_query_messages(question, result, identity.role, self.sample_rows)
            answer = (
                self._summarise(messages, purpose=PURPOSE_LOAN_SUMMARY, user=identity.id)
                or fallback_loan_query_summary(result)
            )
        elif result.row_count <= DIRECT_RENDER_MAX_ROWS:
            answer = render_rows(result.columns, result.rows)
        else:
            messages = build_summary_messages(question, result, identity.role, self.sample_rows)
            answer = self._summarise(messages, purpose=PURPOSE_SUMMARY, user=identity.id) or fallback_summary(result)

        if result.truncated:
            answer += f"\n\n(Showing the first {result.row_count} records.)"
        return ChatReply(answer, kind=KIND_DATA, sql=sql, row_count=result.row_count, data=result.rows)

    def format_loans(self, question: str, results: list, identity, kind: str) -> ChatReply:
        messages = build_loan_messages(question, results)
        answer = (
            self._summarise(messages, purpose=PURPOSE_LOAN_SUMMARY, user=identity.id)
            or fallback_loan_summary(results)
        )
        return ChatReply(answer, kind=kind, row_count=len(results), data=[r.to_dict() for r in results])
