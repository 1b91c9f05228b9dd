"""
PeopleCore HR Assistant
Read-only gate and row-level scoping for model-authored SQL.

validate_sql()              — textual safety gate (not a parser). The check
                              order is fixed and short-circuits.
apply_row_level_security()  — wraps an accepted statement so an Employee
                              only ever sees rows carrying their own id.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# ── Validation ────────────────────────────────────────────────────────────────

FORBIDDEN_KEYWORDS = (
    "DELETE", "DROP", "TRUNCATE", "UPDATE", "INSERT",
    "ALTER", "CREATE", "GRANT", "REVOKE",
)
_FORBIDDEN_RE = re.compile(r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b")
_COMMENT_TOKENS = ("--", "/*", "*/")


@dataclass(frozen=True)
class ValidationVerdict:
    accepted: bool
    reason: str
    sql: str = ""


def _strip_terminal_semicolon(sql: str) -> str:
    cleaned = sql.strip()
    if cleaned.endswith(";"):
        cleaned = cleaned[:-1].strip()
    return cleaned


def validate_sql(sql: str | None, role: str | None = None, caller_id: str | None = None) -> ValidationVerdict:
    """
    Decide whether ``sql`` may reach the store.

    Checks, in order:
        1. trim, strip at most one terminal ``;``
        2. no forbidden keyword as a whole word
        3. starts with SELECT
        4. no comment sequence (``--``, ``/*``, ``*/``)
        5. no remaining ``;``

    ``role`` and ``caller_id`` do not change the verdict; scoping happens in
    ``apply_row_level_security``.
    """
    if not sql or not sql.strip():
        return ValidationVerdict(False, "Empty SQL statement")

    cleaned = _strip_terminal_semicolon(sql)
    upper = cleaned.upper()

    match = _FORBIDDEN_RE.search(upper)
    if match:
        return ValidationVerdict(False, f"Forbidden keyword: {match.group(1)}", cleaned)

    if not upper.startswith("SELECT"):
        return ValidationVerdict(False, "Only SELECT statements are allowed", cleaned)

    for token in _COMMENT_TOKENS:
        if token in cleaned:
            return ValidationVerdict(False, f"SQL comments are not allowed ({token})", cleaned)

    if ";" in cleaned:
        return ValidationVerdict(False, "Multiple statements are not allowed", cleaned)

    return ValidationVerdict(True, "OK", cleaned)


# ── Row-level security ────────────────────────────────────────────────────────

# Identifying columns in preference order
IDENTITY_COLUMNS = ("employee_id", "id")
CALLER_PARAM = "rls_caller_id"
_BARE_COLON_RE = re.compile(r"(?<!\\):")


@dataclass(frozen=True)
class ScopedStatement:
    sql: str
    params: dict = field(default_factory=dict)
    scope_column: str | None = None


def find_identity_column(columns) -> str | None:
    """Return the inner statement's identifying column (original casing), if any."""
    by_lower = {}
    for name in columns or []:
        by_lower.setdefault(str(name).lower(), str(name))
    for candidate in IDENTITY_COLUMNS:
        if candidate in by_lower:
            return by_lower[candidate]
    return None


def escape_bind_markers(sql: str) -> str:
    """Escape literal colons so SQLAlchemy text() does not read them as bind parameters."""
    return _BARE_COLON_RE.sub(r"\\:", sql)


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def apply_row_level_security(sql: str, role: str, caller_id: str | None, columns) -> ScopedStatement:
    """
    Scope an accepted statement to the caller.

    HR statements pass through untouched. For everyone else the statement is
    wrapped as a subquery and filtered on its identifying column; the caller
    id travels as a bound parameter. A statement exposing neither
    ``employee_id`` nor ``id`` is filtered with ``1 = 0`` and yields no rows.

    The returned ``sql`` is in SQLAlchemy ``text()`` form: literal colons in
    the model-authored statement are backslash-escaped.
    """
    sql = escape_bind_markers(sql)
    if role == "HR":
        return ScopedStatement(sql=sql)

    column = find_identity_column(columns)
    if column is None or not caller_id:
        return ScopedStatement(
            sql=f"SELECT * FROM ({sql}) AS rls_scope WHERE 1 = 0",
        )

    return ScopedStatement(
        sql=(
            f"SELECT * FROM ({sql}) AS rls_scope "
            f"WHERE rls_scope.{_quote_identifier(column)} = :{CALLER_PARAM}"
        ),
        params={CALLER_PARAM: str(caller_id)},
        scope_column=column,
    )
