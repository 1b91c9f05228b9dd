"""
PeopleCore HR Assistant
Audit domain model.

Models:
    - QueryAuditLog: append-only trail of every model-authored SQL execution.

Each row records who ran which statement, how many rows came back and
whether the store accepted it. The same event is also emitted on the
``peoplecore.audit.sql`` logger so it can be shipped to a separate sink.
"""

import logging
from datetime import UTC, datetime

from peoplecore.models import db

sql_audit_logger = logging.getLogger("peoplecore.audit.sql")


class QueryAuditLog(db.Model):
    """Immutable record of one executed statement (success or failure)."""

    __tablename__ = "query_audit_logs"
    __table_args__ = (
        db.Index("idx_query_audit_caller", "caller_id"),
        db.Index("idx_query_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    caller_id = db.Column(
        db.String(36), nullable=False,
        comment="Identity id of the requester (not a FK: HR service users may not be employees)",
    )
    caller_role = db.Column(db.String(20), nullable=True)
    sql = db.Column(db.Text, nullable=False, comment="Statement as sent to the store, after scoping")
    row_count = db.Column(db.Integer, nullable=False, default=0)
    success = db.Column(db.Boolean, nullable=False, default=True)
    error = db.Column(db.Text, nullable=True)
    duration_ms = db.Column(db.Integer, default=0)

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "caller_id": self.caller_id,
            "caller_role": self.caller_role,
            "sql": self.sql,
            "row_count": self.row_count,
            "success": self.success,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        state = "ok" if self.success else "failed"
        return f"<QueryAuditLog {self.id}: {self.caller_id} {state} rows={self.row_count}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_query_audit(
    *,
    caller_id: str,
    sql: str,
    row_count: int = 0,
    success: bool = True,
    error: str | None = None,
    caller_role: str | None = None,
    duration_ms: int = 0,
) -> QueryAuditLog | None:
    """
    Append a single audit row and emit the matching log record.

    The row is committed on its own so that a failed query (whose work was
    rolled back) still leaves a trace. A broken audit sink is logged and
    swallowed; it never turns a successful answer into an error.
    """
    sql_audit_logger.info(
        "sql caller=%s role=%s success=%s rows=%d duration_ms=%d sql=%s%s",
        caller_id, caller_role, success, row_count, duration_ms,
        " ".join(sql.split()),
        f" error={error}" if error else "",
        extra={"caller_id": str(caller_id), "caller_role": caller_role},
    )

    log = QueryAuditLog(
        caller_id=str(caller_id),
        caller_role=caller_role,
        sql=sql,
        row_count=row_count,
        success=success,
        error=error,
        duration_ms=duration_ms,
    )
    try:
        db.session.add(log)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        sql_audit_logger.error("Failed to persist query audit row: %s", exc)
        return None
    return log
