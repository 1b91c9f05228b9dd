"""
PeopleCore HR Assistant
HR domain models.

Models:
    - Employee:      people records; ``grade_number`` mirrors the digits in ``grade``
    - Salary:        effective-dated base salary rows (open row = current salary)
    - LeaveRequest:  leave applications
    - LeaveSummary:  per-year leave balance
    - Loan:          granted staff loans (Car, Housing, Personal)
    - Skill / EmployeeSkill: skill catalog and assignments

These tables are what model-authored SELECT statements run against, so the
column names here are the ones advertised in the schema prompt.
"""

import re
import uuid
from datetime import date, datetime, timezone

from sqlalchemy.orm import validates

from peoplecore.models import db

# ── Constants ────────────────────────────────────────────────────────────────

EMPLOYEE_ROLES = {"HR", "Employee"}
EMPLOYEE_STATUSES = {"Active", "Archived"}
LEAVE_STATUSES = {"Pending", "Approved", "Rejected", "Cancelled"}
LOAN_TYPES = {"Car", "Housing", "Personal"}
LOAN_STATUSES = {"Active", "PaidOff", "Defaulted"}
SKILL_LEVELS = {"Beginner", "Intermediate", "Expert"}

_GRADE_DIGITS = re.compile(r"\d+")


def _uuid() -> str:
    return str(uuid.uuid4())


def parse_grade_number(grade: str | None) -> int | None:
    """'Grade 12' → 12. Returns None when the text carries no digits."""
    if not grade:
        return None
    match = _GRADE_DIGITS.search(str(grade))
    return int(match.group()) if match else None


def _iso(value):
    return value.isoformat() if value else None


# ── Employee ─────────────────────────────────────────────────────────────────

class Employee(db.Model):
    """An employee (or HR user). ``id`` is the identity used for row-level security."""

    __tablename__ = "employees"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    employee_code = db.Column(db.String(20), nullable=False, unique=True)
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(20), nullable=False, default="Employee", comment="HR | Employee")
    grade = db.Column(db.String(30), nullable=False, default="", comment="Stored as 'Grade N'")
    grade_number = db.Column(db.Integer, nullable=True, index=True, comment="Numeric part of grade")
    department = db.Column(db.String(100), nullable=False, default="")
    manager_id = db.Column(db.String(36), db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="Active", comment="Active | Archived")
    hire_date = db.Column(db.Date, nullable=False, default=date.today)
    termination_date = db.Column(db.Date, nullable=True)

    salaries = db.relationship(
        "Salary", backref="employee", lazy="dynamic",
        cascade="all, delete-orphan", order_by="Salary.effective_from.desc()",
    )
    leave_requests = db.relationship(
        "LeaveRequest", backref="employee", lazy="dynamic",
        cascade="all, delete-orphan", foreign_keys="LeaveRequest.employee_id",
    )
    loans = db.relationship("Loan", backref="employee", lazy="dynamic", cascade="all, delete-orphan")

    @validates("grade")
    def _sync_grade_number(self, key, value):
        self.grade_number = parse_grade_number(value)
        return value

    def to_dict(self):
        return {
            "id": self.id,
            "employee_code": self.employee_code,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "grade": self.grade,
            "grade_number": self.grade_number,
            "department": self.department,
            "manager_id": self.manager_id,
            "status": self.status,
            "hire_date": _iso(self.hire_date),
            "termination_date": _iso(self.termination_date),
        }

    def __repr__(self):
        return f"<Employee {self.employee_code}: {self.full_name}>"


# ── Salary ───────────────────────────────────────────────────────────────────

class Salary(db.Model):
    """Effective-dated salary; the row with ``effective_to IS NULL`` is current."""

    __tablename__ = "salaries"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    employee_id = db.Column(
        db.String(36), db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    base_salary = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="AED")
    effective_from = db.Column(db.Date, nullable=False, default=date.today)
    effective_to = db.Column(db.Date, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "base_salary": float(self.base_salary) if self.base_salary is not None else None,
            "currency": self.currency,
            "effective_from": _iso(self.effective_from),
            "effective_to": _iso(self.effective_to),
        }


# ── Leave ────────────────────────────────────────────────────────────────────

class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    employee_id = db.Column(
        db.String(36), db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    type = db.Column(db.String(30), nullable=False, default="Annual")
    status = db.Column(db.String(20), nullable=False, default="Pending")
    reason = db.Column(db.Text, nullable=True)
    approved_by_id = db.Column(db.String(36), db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class LeaveSummary(db.Model):
    __tablename__ = "leave_summaries"

    employee_id = db.Column(
        db.String(36), db.ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True,
    )
    year = db.Column(db.Integer, primary_key=True)
    annual_entitlement = db.Column(db.Integer, nullable=False, default=30)
    used_days = db.Column(db.Integer, nullable=False, default=0)
    remaining_days = db.Column(db.Integer, nullable=False, default=30)


# ── Loan ─────────────────────────────────────────────────────────────────────

class Loan(db.Model):
    """A granted staff loan. Eligibility itself is computed, never stored here."""

    __tablename__ = "loans"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    employee_id = db.Column(
        db.String(36), db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    loan_type = db.Column(db.String(20), nullable=False, comment="Car | Housing | Personal")
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    interest_rate = db.Column(db.Numeric(6, 4), nullable=False, comment="0.04 for 4%")
    tenure_months = db.Column(db.Integer, nullable=False)
    monthly_deduction = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="Active", comment="Active | PaidOff | Defaulted")
    start_date = db.Column(db.Date, nullable=False, default=date.today)
    end_date = db.Column(db.Date, nullable=True)
    was_eligible = db.Column(db.Boolean, default=True)
    eligibility_reason = db.Column(db.Text, nullable=True)


# ── Skills ───────────────────────────────────────────────────────────────────

class Skill(db.Model):
    __tablename__ = "skills"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), nullable=False, unique=True)


class EmployeeSkill(db.Model):
    __tablename__ = "employee_skills"

    employee_id = db.Column(
        db.String(36), db.ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True,
    )
    skill_id = db.Column(
        db.String(36), db.ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True,
    )
    level = db.Column(db.String(20), nullable=False, default="Beginner")
