"""
PeopleCore HR Assistant
Application factory.

    from peoplecore import create_app
    app = create_app()            # APP_ENV, else "development"
    app = create_app("testing")

Wiring order matters: logging first, then the store, then the request
hooks (timing → bearer identity), and the limiter last so the chat limit
can key on ``g.identity``.
"""

import logging
import os
from datetime import date
from decimal import Decimal

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as sa_engine
from sqlalchemy import event as sa_event

from peoplecore.config import config
from peoplecore.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from peoplecore.middleware.jwt_auth import init_jwt_middleware
from peoplecore.middleware.logging_config import configure_logging
from peoplecore.middleware.timing import init_request_timing
from peoplecore.models import db
from peoplecore.utils.errors import E, api_error

logger = logging.getLogger(__name__)

MAX_REQUEST_BYTES = 256 * 1024


@sa_event.listens_for(sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    # SQLite ships with FK enforcement off; salaries/loans cascade on employees
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
# Storage comes from RATELIMIT_STORAGE_URI; no default limits, the chat route sets its own
limiter = Limiter(key_func=get_remote_address, default_limits=[])


# ── Demo data ─────────────────────────────────────────────────────────────

DEMO_EMPLOYEES = [
    # code, name, email, role, grade, department, salary, hire date
    ("HR001", "Admin User", "admin@hr.com", "HR", "Grade 15", "HR", Decimal("25000"), date(2015, 1, 1)),
    ("EMP001", "John Doe", "john.doe@hr.com", "Employee", "Grade 10", "IT", Decimal("10000"), date(2020, 3, 1)),
    ("EMP002", "Jane Smith", "jane.smith@hr.com", "Employee", "Grade 11", "HR", Decimal("12000"), date(2019, 6, 15)),
]


def seed_demo_data() -> int:
    """Insert the demo employees (with opening salaries) that are missing. Returns count added."""
    from peoplecore.models.hr import Employee, Salary

    added = 0
    for code, name, email, role, grade, dept, salary, hired in DEMO_EMPLOYEES:
        if Employee.query.filter_by(employee_code=code).first():
            continue
        employee = Employee(
            employee_code=code, full_name=name, email=email, role=role,
            grade=grade, department=dept, status="Active", hire_date=hired,
        )
        db.session.add(employee)
        db.session.flush()
        db.session.add(Salary(
            employee_id=employee.id, base_salary=salary, currency="AED", effective_from=hired,
        ))
        added += 1
    db.session.commit()
    return added


# ── Factory ───────────────────────────────────────────────────────────────

def create_app(config_name=None):
    """Build a configured Flask app for ``config_name`` (development / testing / production)."""
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    app.config.setdefault("MAX_CONTENT_LENGTH", MAX_REQUEST_BYTES)

    configure_logging(app)
    _init_extensions(app)
    init_request_timing(app)
    init_jwt_middleware(app)
    limiter.init_app(app)

    _create_tables(app)

    from peoplecore.blueprints.chat_bp import chat_bp

    app.register_blueprint(chat_bp)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "PeopleCore HR Assistant"}

    _register_cli(app)
    _register_error_handlers(app)
    return app


def _init_extensions(app):
    db.init_app(app)
    migrate.init_app(app, db)

    origins = [o.strip() for o in (app.config.get("CORS_ORIGINS") or "").split(",") if o.strip()]
    if not origins or origins == ["*"]:
        CORS(app)
    else:
        CORS(app, origins=origins)


def _create_tables(app):
    # Models must be imported before create_all / flask db migrate can see them
    from peoplecore.models import ai as _ai_models          # noqa: F401
    from peoplecore.models import audit as _audit_models    # noqa: F401
    from peoplecore.models import hr as _hr_models          # noqa: F401

    with app.app_context():
        try:
            db.create_all()
        except Exception as exc:
            app.logger.warning("create_all skipped: %s", exc)


def _register_cli(app):
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed the demo employees (HR001, EMP001, EMP002) with salaries."""
        count = seed_demo_data()
        logger.info("Seeded %s demo employees.", count)
        click.echo(f"Seeded {count} demo employees.")

    @app.cli.command("issue-token")
    @click.argument("employee_code")
    @click.option("--expires-in", type=int, default=None, help="Lifetime in seconds.")
    def issue_token_cmd(employee_code, expires_in):
        """Print an access token for an existing employee (local development)."""
        from peoplecore.models.hr import Employee
        from peoplecore.services.jwt_service import generate_access_token

        employee = Employee.query.filter_by(employee_code=employee_code).first()
        if employee is None:
            raise click.ClickException(f"No employee with code {employee_code}")
        click.echo(generate_access_token(
            employee.id, employee.role, email=employee.email,
            name=employee.full_name, expires_in=expires_in,
        ))


def _register_error_handlers(app):
    @app.errorhandler(NotFoundError)
    def _domain_not_found(e):
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(ValidationError)
    def _domain_validation(e):
        return api_error(E.VALIDATION_RULE, str(e), details=e.details or None)

    @app.errorhandler(ConflictError)
    def _domain_conflict(e):
        return api_error(E.CONFLICT_DUPLICATE, str(e))

    @app.errorhandler(AuthorizationError)
    def _domain_forbidden(e):
        return api_error(E.FORBIDDEN, str(e))

    @app.errorhandler(404)
    def _route_not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, f"{request.method} is not allowed on {request.path}")

    @app.errorhandler(413)
    def _too_large(e):
        return api_error(E.VALIDATION_INVALID, "Request body too large", status=413)

    @app.errorhandler(429)
    def _rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"limit": e.description})

    @app.errorhandler(500)
    def _server_error(e):
        logger.error("Unhandled error on %s %s: %s", request.method, request.path, e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
