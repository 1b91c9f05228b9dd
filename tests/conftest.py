"""
Fixtures shared by the PeopleCore test modules.

    app        one testing app for the whole run (in-memory SQLite)
    session    autouse; every test starts from freshly created tables
    client     test client
    employees  HR001 / EMP001 / EMP002 with opening salaries
    gateway    ScriptedGateway standing in for the app's LLM gateway
    *_identity / *_headers  callers and their bearer headers
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from peoplecore import create_app
from peoplecore.auth import Identity
from peoplecore.models import db as _db


# ── Gateway double ───────────────────────────────────────────────────────


class ScriptedGateway:
    """
    Stand-in for LLMGateway that replays scripted replies in order.

    A reply may be a string, a dict (sent as JSON text) or an exception
    instance (raised). Once the script runs out every call returns "".
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def script(self, *replies):
        self.replies.extend(replies)
        return self

    def chat(self, messages, model=None, *, purpose="", user="system",
             intent_schema=None, temperature=None, **kwargs):
        self.calls.append({
            "messages": messages,
            "purpose": purpose,
            "user": user,
            "intent_schema": intent_schema,
            "temperature": temperature,
        })
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return {
            "content": reply,
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "model": "scripted",
            "cost_usd": 0.0,
            "latency_ms": 0,
            "provider": "scripted",
        }

    def purposes(self):
        return [c["purpose"] for c in self.calls]


# ── Application and store ────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    return create_app("testing")


@pytest.fixture(scope="session")
def _schema(app):
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _schema):
    """Each test runs inside the app context against empty tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def gateway(app):
    """Install a ScriptedGateway for the chat endpoint; removed after the test."""
    scripted = ScriptedGateway()
    app._ai_gateway = scripted
    yield scripted
    if hasattr(app, "_ai_gateway"):
        del app._ai_gateway


# ── Seed data ────────────────────────────────────────────────────────────


def make_employee(code, name, email, *, role="Employee", grade="Grade 10", department="IT",
                  salary=Decimal("10000"), hire_date=date(2020, 3, 1), status="Active"):
    """Insert one employee with an open salary row and commit."""
    from peoplecore.models.hr import Employee, Salary

    employee = Employee(
        employee_code=code, full_name=name, email=email, role=role,
        grade=grade, department=department, status=status, hire_date=hire_date,
    )
    _db.session.add(employee)
    _db.session.flush()
    if salary is not None:
        _db.session.add(Salary(
            employee_id=employee.id, base_salary=salary, currency="AED", effective_from=hire_date,
        ))
    _db.session.commit()
    return employee


@pytest.fixture()
def employees():
    """HR001 Admin User, EMP001 John Doe, EMP002 Jane Smith."""
    return {
        "admin": make_employee(
            "HR001", "Admin User", "admin@hr.com", role="HR", grade="Grade 15",
            department="HR", salary=Decimal("25000"), hire_date=date(2015, 1, 1),
        ),
        "john": make_employee(
            "EMP001", "John Doe", "john.doe@hr.com", grade="Grade 10",
            department="IT", salary=Decimal("10000"), hire_date=date(2020, 3, 1),
        ),
        "jane": make_employee(
            "EMP002", "Jane Smith", "jane.smith@hr.com", grade="Grade 11",
            department="HR", salary=Decimal("12000"), hire_date=date(2019, 6, 15),
        ),
    }


def identity_for(employee):
    return Identity(
        id=employee.id, role=employee.role, email=employee.email, display_name=employee.full_name,
    )


@pytest.fixture()
def hr_identity(employees):
    return identity_for(employees["admin"])


@pytest.fixture()
def john_identity(employees):
    return identity_for(employees["john"])


@pytest.fixture()
def jane_identity(employees):
    return identity_for(employees["jane"])


def auth_headers(identity):
    """Bearer header for ``identity`` (requires an app context)."""
    from peoplecore.services.jwt_service import generate_access_token

    token = generate_access_token(
        identity.id, identity.role, email=identity.email, name=identity.display_name,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def hr_headers(hr_identity):
    return auth_headers(hr_identity)


@pytest.fixture()
def john_headers(john_identity):
    return auth_headers(john_identity)


@pytest.fixture()
def employee_factory():
    """``make_employee`` for tests that need extra people."""
    return make_employee
