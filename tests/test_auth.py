"""
Auth & Identity Tests

Tests cover:
  - Identity construction from token claims (role normalisation)
  - JWT token generation / verification / expiry / type checking
  - JWT middleware: g.identity population, 401 on bad tokens
  - Request timing headers
  - CLI: seed-demo, issue-token
"""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from peoplecore.auth import ROLE_EMPLOYEE, ROLE_HR, Identity
from peoplecore.models.hr import Employee, Salary
from peoplecore.services.jwt_service import (
    ALGORITHM,
    decode_access_token,
    decode_token,
    generate_access_token,
)


def _token(app, **claims):
    base = {
        "sub": "emp-1",
        "role": "Employee",
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    base.update(claims)
    return pyjwt.encode(base, app.config["JWT_SECRET_KEY"], algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# IDENTITY
# ═══════════════════════════════════════════════════════════════

class TestIdentity:

    @pytest.mark.parametrize("raw,expected", [
        ("HR", ROLE_HR),
        ("hr", ROLE_HR),
        (" Hr ", ROLE_HR),
        ("Employee", ROLE_EMPLOYEE),
        ("admin", ROLE_EMPLOYEE),
        (None, ROLE_EMPLOYEE),
    ])
    def test_role_normalisation(self, raw, expected):
        assert Identity.from_claims({"sub": "x", "role": raw}).role == expected

    def test_claims_mapped(self):
        ident = Identity.from_claims({"sub": 42, "role": "HR", "email": "a@b.co", "name": "Ann"})
        assert ident == Identity(id="42", role="HR", email="a@b.co", display_name="Ann")
        assert ident.is_hr

    def test_missing_subject(self):
        assert Identity.from_claims({"role": "HR"}) is None
        assert Identity.from_claims({"sub": "", "role": "HR"}) is None


# ═══════════════════════════════════════════════════════════════
# JWT SERVICE
# ═══════════════════════════════════════════════════════════════

class TestJwtService:

    def test_roundtrip_claims(self):
        token = generate_access_token("emp-1", "HR", email="a@hr.com", name="Admin")
        payload = decode_access_token(token)
        assert payload["sub"] == "emp-1"
        assert payload["role"] == "HR"
        assert payload["name"] == "Admin"
        assert payload["type"] == "access"
        assert payload["jti"]

    def test_expired(self):
        token = generate_access_token("emp-1", "Employee", expires_in=-60)
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_wrong_type(self, app):
        with pytest.raises(pyjwt.InvalidTokenError):
            decode_access_token(_token(app, type="refresh"))

    def test_wrong_secret(self):
        forged = pyjwt.encode({"sub": "x", "type": "access"}, "not-the-secret", algorithm=ALGORITHM)
        with pytest.raises(pyjwt.InvalidSignatureError):
            decode_token(forged)


# ═══════════════════════════════════════════════════════════════
# MIDDLEWARE
# ═══════════════════════════════════════════════════════════════

class TestMiddleware:

    def test_expired_token_is_401(self, client, gateway):
        token = generate_access_token("emp-1", "Employee", expires_in=-60)
        res = client.post("/api/v1/chat", json={"message": "hi"},
                          headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert gateway.calls == []

    def test_non_bearer_scheme_ignored(self, client, gateway):
        res = client.post("/api/v1/chat", json={"message": "hi"},
                          headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert res.status_code == 401

    def test_token_without_subject_is_401(self, client, app, gateway):
        token = _token(app, sub="")
        res = client.post("/api/v1/chat", json={"message": "hi"},
                          headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_lowercase_hr_role_reaches_hr_endpoint(self, client, app):
        token = _token(app, sub="hr-9", role="hr")
        res = client.get("/api/v1/chat/audit", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        assert res.get_json() == {"items": [], "count": 0}

    def test_caller_id_passed_to_model(self, client, app, gateway):
        gateway.script({"intent": "conversation", "response": "Hi"})
        token = _token(app, sub="emp-77")
        client.post("/api/v1/chat", json={"message": "hi"}, headers={"Authorization": f"Bearer {token}"})
        assert gateway.calls[0]["user"] == "emp-77"


class TestRequestTiming:

    def test_headers_added(self, client):
        res = client.get("/api/v1/health")
        assert res.headers.get("X-Request-ID")
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0

    def test_request_id_propagated(self, client):
        res = client.get("/api/v1/health", headers={"X-Request-ID": "trace-123"})
        assert res.headers["X-Request-ID"] == "trace-123"


# ═══════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════

class TestCli:

    def test_seed_demo_is_idempotent(self, app):
        runner = app.test_cli_runner()
        first = runner.invoke(args=["seed-demo"])
        assert "Seeded 3 demo employees." in first.output
        second = runner.invoke(args=["seed-demo"])
        assert "Seeded 0 demo employees." in second.output
        assert Employee.query.count() == 3
        assert Salary.query.count() == 3
        assert Employee.query.filter_by(employee_code="HR001").one().role == "HR"

    def test_issue_token(self, app, employees):
        result = app.test_cli_runner().invoke(args=["issue-token", "EMP001"])
        assert result.exit_code == 0
        payload = decode_access_token(result.output.strip().splitlines()[-1])
        assert payload["sub"] == employees["john"].id
        assert payload["role"] == "Employee"

    def test_issue_token_unknown_code(self, app):
        result = app.test_cli_runner().invoke(args=["issue-token", "EMP999"])
        assert result.exit_code != 0
        assert "No employee with code EMP999" in result.output
