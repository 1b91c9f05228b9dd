"""JSON error bodies for the HTTP surface.

Every non-2xx response carries ``{"error": <message>, "code": <E.*>}`` and,
when there is something structured to add, ``"details"``. Chat-level
failures (rejected SQL, denied actions) are *not* errors at this layer;
they come back as 200 replies of kind ``error``.

    from peoplecore.utils.errors import api_error, E
    return api_error(E.VALIDATION_REQUIRED, "message is required")
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes, grouped by the HTTP status they default to."""

    # 400: malformed request body
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    # 401: no verified caller
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    # 403: caller lacks the role
    FORBIDDEN = "ERR_FORBIDDEN"
    # 404 / 405
    NOT_FOUND = "ERR_NOT_FOUND"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    # 409: unique value taken (employee email / code)
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    # 422: well-formed but violates an HR rule
    VALIDATION_RULE = "ERR_VALIDATION_RULE"
    # 429: chat rate limit
    RATE_LIMITED = "ERR_RATE_LIMITED"
    # 500
    INTERNAL = "ERR_INTERNAL"


_STATUS_GROUPS = {
    400: (E.VALIDATION_REQUIRED, E.VALIDATION_INVALID),
    401: (E.UNAUTHORIZED,),
    403: (E.FORBIDDEN,),
    404: (E.NOT_FOUND,),
    405: (E.METHOD_NOT_ALLOWED,),
    409: (E.CONFLICT_DUPLICATE,),
    422: (E.VALIDATION_RULE,),
    429: (E.RATE_LIMITED,),
    500: (E.INTERNAL,),
}
DEFAULT_STATUS: dict[str, int] = {
    code: status for status, codes in _STATUS_GROUPS.items() for code in codes
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """
    Build ``(response, status)`` for a Flask view or error handler.

    ``status`` overrides the code's default; unknown codes fall back to 400.
    Empty ``details`` are left out of the body.
    """
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or DEFAULT_STATUS.get(code, 400)
