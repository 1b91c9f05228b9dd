"""
Per-request timing and correlation ids.

Every response gets ``X-Request-ID`` (echoed from the client when supplied)
and ``X-Request-Duration-Ms``. Chat requests include up to two model round
trips, so the slow threshold is generous.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_THRESHOLD_MS = 5000
_UNLOGGED_PATHS = frozenset({"/api/v1/health"})


def _log_extra(response, duration_ms: float) -> dict:
    identity = getattr(g, "identity", None)
    return {
        "request_id": g.get("request_id", ""),
        "method": request.method,
        "path": request.path,
        "status": response.status_code,
        "duration_ms": duration_ms,
        "remote_addr": request.remote_addr,
        "caller_id": identity.id if identity else None,
        "caller_role": identity.role if identity else None,
    }


def init_request_timing(app: Flask):
    @app.before_request
    def _stamp_request():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish_request(response):
        started = g.get("request_started")
        if started is None:
            return response

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.get("request_id", "")
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"

        if request.path in _UNLOGGED_PATHS:
            return response

        line = "%s %s -> %d in %.0fms"
        args = (request.method, request.path, response.status_code, duration_ms)
        extra = _log_extra(response, duration_ms)
        if response.status_code >= 500:
            logger.error(line, *args, extra=extra)
        elif duration_ms > SLOW_THRESHOLD_MS:
            logger.warning("Slow request: " + line, *args, extra=extra)
        else:
            logger.debug(line, *args, extra=extra)
        return response
