"""
Access tokens for the HR assistant.

The identity provider in front of this service signs HS256 tokens with the
shared ``JWT_SECRET_KEY``; this module verifies them and, for local work
(``flask issue-token``), can mint the same shape:

    sub    employee id (equals employees.id, used for row scoping)
    role   "HR" | "Employee"
    email, name
    type   "access"
    iat, exp, jti
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
DEFAULT_ACCESS_EXPIRES = 7200


def _signing_key() -> str:
    cfg = current_app.config
    return cfg.get("JWT_SECRET_KEY") or cfg["SECRET_KEY"]


def generate_access_token(user_id: str, role: str, email: str = "", name: str = "",
                          expires_in: int | None = None) -> str:
    issued = datetime.now(timezone.utc)
    if expires_in is None:
        expires_in = current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)
    claims = {
        "sub": str(user_id),
        "role": role,
        "email": email,
        "name": name,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued,
        "exp": issued + timedelta(seconds=expires_in),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict:
    """
    Verify signature, expiry (with ``JWT_LEEWAY_SECONDS`` of clock skew) and
    the ``type`` claim. PyJWT exceptions propagate to the caller.
    """
    claims = jwt.decode(
        token,
        _signing_key(),
        algorithms=[ALGORITHM],
        leeway=current_app.config.get("JWT_LEEWAY_SECONDS", 0),
    )
    if claims.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected a {expected_type} token, got {claims.get('type')!r}")
    return claims


def decode_access_token(token: str) -> dict:
    return decode_token(token, ACCESS_TOKEN_TYPE)
