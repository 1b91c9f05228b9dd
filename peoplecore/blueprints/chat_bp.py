"""
PeopleCore HR Assistant
Chat Blueprint.

Endpoints:
    CHAT    /api/v1/chat          POST   {message, priorTurns: [{role, text|content}]}
    AUDIT   /api/v1/chat/audit    GET    recent SQL audit rows (HR only)
"""

from flask import Blueprint, current_app, g, jsonify, request

from peoplecore.ai.assistant import HRChatAssistant
from peoplecore.ai.formatter import ResultFormatter
from peoplecore.ai.gateway import LLMGateway
from peoplecore.auth import ROLE_HR, require_identity, require_role
from peoplecore.models.audit import QueryAuditLog
from peoplecore.services.query_executor import QueryExecutor
from peoplecore.utils.errors import E, api_error

chat_bp = Blueprint("chat", __name__, url_prefix="/api/v1/chat")

MAX_MESSAGE_LENGTH = 4000
DEFAULT_AUDIT_LIMIT = 50
MAX_AUDIT_LIMIT = 500

# ── Rate limiting ─────────────────────────────────────────────────────────
from peoplecore import limiter  # noqa: E402


def _chat_rate_key():
    identity = getattr(g, "identity", None)
    if identity is not None:
        return f"caller:{identity.id}"
    return request.remote_addr or "unknown"


_chat_limit = limiter.shared_limit(
    lambda: current_app.config.get("CHAT_RATE_LIMIT", "30/minute"),
    scope="chat",
    key_func=_chat_rate_key,
)


# ── Lazy singletons stored on Flask app (test-isolation safe) ───────────────

def _get_gateway():
    if not hasattr(current_app, "_ai_gateway"):
        current_app._ai_gateway = LLMGateway(app=current_app)
    return current_app._ai_gateway


def _build_assistant() -> HRChatAssistant:
    cfg = current_app.config
    gateway = _get_gateway()
    return HRChatAssistant(
        gateway=gateway,
        executor=QueryExecutor(
            timeout_seconds=cfg.get("SQL_STATEMENT_TIMEOUT_SECONDS", 30),
            max_rows=cfg.get("SQL_MAX_ROWS", 500),
        ),
        formatter=ResultFormatter(gateway, sample_rows=cfg.get("SUMMARY_SAMPLE_ROWS", 20)),
        history_window=cfg.get("CHAT_HISTORY_WINDOW", 10),
        temperature=cfg.get("LLM_TEMPERATURE", 0.1),
    )


# ═════════════════════════════════════════════════════════════════════════════
# CHAT
# ═════════════════════════════════════════════════════════════════════════════

@chat_bp.route("", methods=["POST"])
@require_identity
@_chat_limit
def chat():
    """
    Answer one chat message for the authenticated caller.

    Body:
        message    — the user's question (required)
        priorTurns — prior turns, oldest first; only the most recent are used
        history    — accepted as an alias of priorTurns (priorTurns wins)
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return api_error(E.VALIDATION_REQUIRED, "message is required")
    if len(message) > MAX_MESSAGE_LENGTH:
        return api_error(E.VALIDATION_INVALID, f"message must be at most {MAX_MESSAGE_LENGTH} characters")

    field = "priorTurns" if "priorTurns" in data else "history"
    history = data.get(field) or []
    if not isinstance(history, list):
        return api_error(E.VALIDATION_INVALID, f"{field} must be a list of turns")

    identity = g.identity
    reply = _build_assistant().handle(identity, message.strip(), history)
    return jsonify(reply.to_dict(identity.role)), 200


# ═════════════════════════════════════════════════════════════════════════════
# AUDIT
# ═════════════════════════════════════════════════════════════════════════════

@chat_bp.route("/audit", methods=["GET"])
@require_identity
@require_role(ROLE_HR)
def audit_trail():
    """Most recent SQL audit rows, newest first. Query params: limit, caller_id."""
    limit = min(MAX_AUDIT_LIMIT, max(1, request.args.get("limit", DEFAULT_AUDIT_LIMIT, type=int)))
    q = QueryAuditLog.query

    caller_id = request.args.get("caller_id")
    if caller_id:
        q = q.filter(QueryAuditLog.caller_id == caller_id)

    rows = q.order_by(QueryAuditLog.timestamp.desc(), QueryAuditLog.id.desc()).limit(limit).all()
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)}), 200
