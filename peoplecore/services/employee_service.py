"""
Employee CRUD service used by the chat action handlers.

Generates sequential employee codes:  EMP{seq:03d}  (e.g. EMP001, EMP042)

Code generation is serialised by a process-wide lock held only around
read-max → insert → commit; the unique constraint on ``employee_code``
backs it up across processes.
"""

from __future__ import annotations

import logging
import re
import threading
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from peoplecore.core.exceptions import ConflictError, NotFoundError, ValidationError
from peoplecore.models import db
from peoplecore.models.hr import Employee, Salary, parse_grade_number

logger = logging.getLogger(__name__)

EMPLOYEE_CODE_PREFIX = "EMP"
_CODE_DIGITS = re.compile(r"^EMP(\d+)$")

_code_lock = threading.Lock()


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ── Field coercion ───────────────────────────────────────────────────────────

def normalize_grade(value) -> str:
    """'11' / 'grade 11' / 'Grade 11' → 'Grade 11'."""
    number = parse_grade_number(str(value) if value is not None else None)
    if number is None:
        raise ValidationError(f"Invalid grade: {value!r}", details={"grade": "expected e.g. 'Grade 10'"})
    return f"Grade {number}"


def normalize_email(value) -> str:
    """Syntax check only (no DNS); stored lower-cased so uniqueness is case-blind."""
    try:
        valid = validate_email((value or "").strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {value!r} ({e})", details={"email": "invalid"})
    return valid.normalized.lower()


def parse_salary(value) -> Decimal:
    """Accept 12000, '12,000', 'AED 12000'; must be positive."""
    raw = str(value if value is not None else "").upper().replace("AED", "").replace(",", "").strip()
    try:
        amount = Decimal(raw)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid salary: {value!r}", details={"salary": "expected a number"})
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Salary must be a positive number", details={"salary": str(value)})
    return amount.quantize(Decimal("0.01"))


# ── Lookups ──────────────────────────────────────────────────────────────────

def current_salary(employee: Employee) -> Salary | None:
    """The open salary row (``effective_to IS NULL``) with the latest ``effective_from``."""
    return (
        Salary.query
        .filter(Salary.employee_id == employee.id, Salary.effective_to.is_(None))
        .order_by(Salary.effective_from.desc())
        .first()
    )


def find_employee_by_name(name: str) -> Employee:
    """Case-insensitive exact match on ``full_name``."""
    wanted = (name or "").strip().lower()
    if not wanted:
        raise NotFoundError("Employee", name)
    employee = (
        Employee.query
        .filter(func.lower(Employee.full_name) == wanted)
        .order_by(Employee.employee_code.asc())
        .first()
    )
    if employee is None:
        raise NotFoundError("Employee", name)
    return employee


def _next_employee_code() -> str:
    codes = (
        db.session.query(Employee.employee_code)
        .filter(Employee.employee_code.like(f"{EMPLOYEE_CODE_PREFIX}%"))
        .all()
    )
    highest = 0
    for (code,) in codes:
        match = _CODE_DIGITS.match(code or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{EMPLOYEE_CODE_PREFIX}{highest + 1:03d}"


# ── Commands ─────────────────────────────────────────────────────────────────

def create_employee(
    full_name: str,
    email: str,
    grade,
    salary,
    department: str = "",
    *,
    role: str = "Employee",
    hire_date: date | None = None,
    manager_id: str | None = None,
) -> Employee:
    """Create an employee with an opening salary row and the next EMP### code."""
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("Full name is required", details={"fullName": "required"})
    email = normalize_email(email)
    grade = normalize_grade(grade)
    amount = parse_salary(salary)
    hire_date = hire_date or _today()

    if Employee.query.filter(func.lower(Employee.email) == email).first():
        raise ConflictError("Employee", "email", email)

    with _code_lock:
        code = _next_employee_code()
        employee = Employee(
            employee_code=code,
            full_name=full_name,
            email=email,
            role=role,
            grade=grade,
            department=(department or "").strip(),
            manager_id=manager_id,
            status="Active",
            hire_date=hire_date,
        )
        try:
            db.session.add(employee)
            db.session.flush()
            db.session.add(Salary(
                employee_id=employee.id,
                base_salary=amount,
                currency="AED",
                effective_from=hire_date,
            ))
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Employee", "email or employee_code", email)

    logger.info("Employee created: %s %s (%s)", code, full_name, grade)
    return employee


def promote_employee(name: str, new_grade=None, new_salary=None) -> tuple[Employee, dict]:
    """
    Change grade and/or salary. A salary change closes the open salary row
    today and opens a new one effective today.

    Returns (employee, changes) where changes maps field → {old, new}.
    """
    if new_grade in (None, "") and new_salary in (None, ""):
        raise ValidationError("Provide a new grade or a new salary")

    employee = find_employee_by_name(name)
    changes: dict = {}

    if new_grade not in (None, ""):
        grade = normalize_grade(new_grade)
        if grade != employee.grade:
            changes["grade"] = {"old": employee.grade, "new": grade}
            employee.grade = grade

    if new_salary not in (None, ""):
        amount = parse_salary(new_salary)
        today = _today()
        open_row = current_salary(employee)
        old_amount = open_row.base_salary if open_row is not None else None
        if old_amount is None or Decimal(old_amount) != amount:
            for row in Salary.query.filter(
                Salary.employee_id == employee.id, Salary.effective_to.is_(None),
            ).all():
                row.effective_to = today
            db.session.add(Salary(
                employee_id=employee.id,
                base_salary=amount,
                currency="AED",
                effective_from=today,
            ))
            changes["salary"] = {
                "old": float(old_amount) if old_amount is not None else None,
                "new": float(amount),
            }

    db.session.commit()
    logger.info("Employee promoted: %s changes=%s", employee.employee_code, changes)
    return employee, changes
