"""
PeopleCore HR Assistant
Chat reply envelope.

Every pipeline path ends in one ``ChatReply``; ``to_dict`` renders the
public envelope ``{answer, kind, sql?, rowCount?, data?}``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

KIND_CHAT = "chat"
KIND_DATA = "data"
KIND_ERROR = "error"
KIND_LOAN_CHECK = "loan_check"
KIND_LOAN_CHECK_ALL = "loan_check_all"
KIND_CERTIFICATE = "certificate"
KIND_ACTION_SUCCESS = "action_success"
KIND_UNKNOWN = "unknown"

REPLY_KINDS = {
    KIND_CHAT, KIND_DATA, KIND_ERROR, KIND_LOAN_CHECK, KIND_LOAN_CHECK_ALL,
    KIND_CERTIFICATE, KIND_ACTION_SUCCESS, KIND_UNKNOWN,
}


def json_safe(value):
    """Native store values → JSON-friendly values (Decimal → float, inf/nan → text, dates → ISO)."""
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else str(value)
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value


@dataclass
class ChatReply:
    answer: str
    kind: str = KIND_CHAT
    sql: str | None = None
    row_count: int | None = None
    data: list | None = None

    def to_dict(self, role: str) -> dict:
        """Public envelope; ``sql`` is only surfaced to HR callers."""
        body = {"answer": self.answer, "kind": self.kind}
        if self.sql and role == "HR":
            body["sql"] = self.sql
        if self.row_count is not None:
            body["rowCount"] = self.row_count
        if self.data is not None:
            body["data"] = json_safe(self.data)
        return body
