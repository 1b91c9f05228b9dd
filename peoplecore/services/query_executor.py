"""
PeopleCore HR Assistant
Dynamic query executor.

Runs validated, scoped, model-authored SELECT statements:
    - scoped connection + transaction that is always rolled back
    - statement timeout (PostgreSQL SET LOCAL / SQLite progress-handler deadline)
    - at most ``max_rows`` rows kept, ``truncated`` flagged when more exist
    - every execution audited (QueryAuditLog row + peoplecore.audit.sql record)

Store errors never leak partial rows; they surface as QueryExecutionError.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from peoplecore.ai.sql_guard import ScopedStatement, escape_bind_markers
from peoplecore.core.exceptions import QueryExecutionError
from peoplecore.models import db
from peoplecore.models.audit import write_query_audit

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_ROWS = 500

# SQLite VM instructions between deadline checks
_SQLITE_PROGRESS_STEPS = 1000


@dataclass
class QueryResult:
    columns: list = field(default_factory=list)
    rows: list = field(default_factory=list)
    row_count: int = 0
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return self.row_count == 0


class QueryExecutor:
    """Executes one read-only statement per call against the relational store."""

    def __init__(self, engine=None, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
                 max_rows: int = DEFAULT_MAX_ROWS):
        self._engine = engine
        self.timeout_seconds = float(timeout_seconds)
        self.max_rows = int(max_rows)

    @property
    def engine(self):
        return self._engine if self._engine is not None else db.engine

    # ── Connection scope ──────────────────────────────────────────────────

    @contextmanager
    def _scoped_connection(self):
        """Yield a connection inside a transaction that is rolled back on every exit path."""
        with self.engine.connect() as conn:
            trans = conn.begin()
            state = {"timed_out": False}
            try:
                self._apply_timeout(conn, state)
                yield conn
            except SQLAlchemyError as exc:
                if state["timed_out"]:
                    raise QueryExecutionError(
                        f"Statement exceeded the {self.timeout_seconds:g}s time limit",
                    ) from exc
                raise
            finally:
                self._clear_timeout(conn)
                if trans.is_active:
                    trans.rollback()

    def _apply_timeout(self, conn, state: dict):
        dialect = conn.dialect.name
        if dialect == "postgresql":
            conn.exec_driver_sql(
                f"SET LOCAL statement_timeout = {int(self.timeout_seconds * 1000)}"
            )
        elif dialect == "sqlite":
            deadline = time.monotonic() + self.timeout_seconds

            def _check_deadline():
                if time.monotonic() > deadline:
                    state["timed_out"] = True
                    return 1
                return 0

            conn.connection.dbapi_connection.set_progress_handler(
                _check_deadline, _SQLITE_PROGRESS_STEPS,
            )
        else:
            logger.debug("No statement timeout support for dialect %s", dialect)

    @staticmethod
    def _clear_timeout(conn):
        if conn.dialect.name == "sqlite":
            dbapi_conn = conn.connection.dbapi_connection
            if dbapi_conn is not None:
                dbapi_conn.set_progress_handler(None, _SQLITE_PROGRESS_STEPS)

    # ── Public API ────────────────────────────────────────────────────────

    def describe_columns(self, sql: str, caller_id: str | None = None,
                         caller_role: str | None = None) -> list[str]:
        """Return the output columns of ``sql`` via a zero-row select."""
        shape_sql = f"SELECT * FROM ({escape_bind_markers(sql)}) AS rls_columns LIMIT 0"
        try:
            with self._scoped_connection() as conn:
                result = conn.execute(text(shape_sql))
                return list(result.keys())
        except QueryExecutionError as exc:
            self._audit_failure(caller_id, caller_role, shape_sql, exc.detail)
            raise
        except SQLAlchemyError as exc:
            detail = _error_detail(exc)
            self._audit_failure(caller_id, caller_role, shape_sql, detail)
            raise QueryExecutionError(detail, sql=shape_sql) from exc

    def execute(self, statement: ScopedStatement, caller_id: str,
                caller_role: str | None = None) -> QueryResult:
        """Run ``statement`` and map every row to a column→value dict."""
        start = time.perf_counter()
        try:
            with self._scoped_connection() as conn:
                result = conn.execute(text(statement.sql), statement.params)
                columns = list(result.keys())
                fetched = result.fetchmany(self.max_rows + 1)
        except QueryExecutionError as exc:
            self._audit_failure(caller_id, caller_role, statement.sql, exc.detail, start)
            raise QueryExecutionError(exc.detail, sql=statement.sql) from exc
        except SQLAlchemyError as exc:
            detail = _error_detail(exc)
            self._audit_failure(caller_id, caller_role, statement.sql, detail, start)
            raise QueryExecutionError(detail, sql=statement.sql) from exc

        truncated = len(fetched) > self.max_rows
        rows = [dict(zip(columns, row)) for row in fetched[:self.max_rows]]

        write_query_audit(
            caller_id=caller_id,
            caller_role=caller_role,
            sql=statement.sql,
            row_count=len(rows),
            success=True,
            duration_ms=_elapsed_ms(start),
        )
        if truncated:
            logger.info("Result truncated at %d rows for caller %s", self.max_rows, caller_id)
        return QueryResult(columns=columns, rows=rows, row_count=len(rows), truncated=truncated)

    @staticmethod
    def _audit_failure(caller_id, caller_role, sql, detail, start=None):
        logger.warning("Query failed for caller %s: %s", caller_id, detail)
        if caller_id is None:
            return
        write_query_audit(
            caller_id=caller_id,
            caller_role=caller_role,
            sql=sql,
            row_count=0,
            success=False,
            error=detail,
            duration_ms=_elapsed_ms(start) if start is not None else 0,
        )


def _error_detail(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    message = str(orig if orig is not None else exc).strip()
    return message.splitlines()[0] if message else type(exc).__name__


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
