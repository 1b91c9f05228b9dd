"""
Bearer-token middleware: turns ``Authorization: Bearer <jwt>`` into
``g.identity`` for every ``/api/v1/`` request.

It never answers a request itself. A missing, expired or forged token
leaves ``g.identity = None`` and the view's ``require_identity`` replies 401.
"""

import logging

import jwt as pyjwt
from flask import g, request

from peoplecore.auth import Identity
from peoplecore.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/"
PUBLIC_PREFIXES = ("/api/v1/health",)
BEARER = "bearer "


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if header[:len(BEARER)].lower() != BEARER:
        return None
    return header[len(BEARER):].strip() or None


def identity_from_request() -> Identity | None:
    token = _bearer_token()
    if token is None:
        return None
    try:
        claims = decode_access_token(token)
    except pyjwt.ExpiredSignatureError:
        logger.info("Expired bearer token on %s", request.path)
        return None
    except pyjwt.InvalidTokenError as exc:
        logger.warning("Rejected bearer token on %s: %s", request.path, exc)
        return None
    return Identity.from_claims(claims)


def init_jwt_middleware(app):
    @app.before_request
    def _resolve_identity():
        g.identity = None
        path = request.path
        if not path.startswith(API_PREFIX) or path.startswith(PUBLIC_PREFIXES):
            return
        g.identity = identity_from_request()
