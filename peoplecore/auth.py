"""
PeopleCore HR Assistant
Caller identity and role-based access control.

Provides:
    - Identity: the verified caller, built from bearer-token claims
    - require_identity: decorator rejecting requests without a verified caller (401)
    - require_role: decorator raising AuthorizationError (403) for callers outside the given role

The JWT middleware populates ``g.identity``; views never parse tokens themselves.
"""

import functools
import logging
from dataclasses import dataclass

from flask import g, request

from peoplecore.core.exceptions import AuthorizationError
from peoplecore.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── Roles ────────────────────────────────────────────────────────────────────

ROLE_HR = "HR"
ROLE_EMPLOYEE = "Employee"
ROLES = {ROLE_HR, ROLE_EMPLOYEE}


@dataclass(frozen=True)
class Identity:
    """The authenticated caller. ``id`` is the employee id used for row scoping."""

    id: str
    role: str
    email: str = ""
    display_name: str = ""

    @property
    def is_hr(self) -> bool:
        return self.role == ROLE_HR

    @classmethod
    def from_claims(cls, claims: dict) -> "Identity | None":
        """Build an identity from token claims, or None when they are unusable.

        Role matching is case-insensitive; anything other than HR is treated
        as a plain employee so an unknown role never widens access.
        """
        sub = claims.get("sub")
        if not sub:
            return None
        raw_role = str(claims.get("role") or "").strip()
        role = ROLE_HR if raw_role.upper() == ROLE_HR else ROLE_EMPLOYEE
        return cls(
            id=str(sub),
            role=role,
            email=str(claims.get("email") or ""),
            display_name=str(claims.get("name") or ""),
        )


def current_identity() -> Identity | None:
    return getattr(g, "identity", None)


# ── Decorators ───────────────────────────────────────────────────────────────

def require_identity(f):
    """Decorator: require a verified bearer token for the endpoint."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_identity() is None:
            return api_error(E.UNAUTHORIZED, "Authentication required. Provide a Bearer token.")
        return f(*args, **kwargs)

    return decorated


def require_role(role: str):
    """
    Decorator: require an exact role.

    Usage:
        @require_identity
        @require_role("HR")
        def audit_trail(): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            identity = current_identity()
            if identity is None:
                return api_error(E.UNAUTHORIZED, "Authentication required")
            if identity.role != role:
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-only endpoint %s",
                    identity.role, role, request.path,
                )
                raise AuthorizationError("Insufficient permissions")
            return f(*args, **kwargs)
        return decorated
    return decorator
