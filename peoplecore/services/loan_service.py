"""
PeopleCore HR Assistant
Staff loan eligibility engine.

Rules (per loan type):

    | Loan     | Grade >= | Salary >= | Tenure >= | Other                   | Max amount               | Months | Rate |
    |----------|----------|-----------|-----------|-------------------------|--------------------------|--------|------|
    | Car      | 10       | 8,000     | -         | no active car loan      | min(5 x salary, 100,000) | 48     | 4%   |
    | Housing  | 12       | 15,000    | 2 years   | no active housing loan  | min(10 x salary, 500,000)| 120    | 3%   |
    | Personal | -        | -         | -         | active employee         | 1 x salary               | 12     | 6%   |

``evaluate_loan`` is pure: identical facts always give an identical result.
``LoanService`` only gathers those facts from the store.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from peoplecore.models import db
from peoplecore.models.hr import Employee, Loan
from peoplecore.services.employee_service import current_salary

logger = logging.getLogger(__name__)

SUPPORTED_LOAN_TYPES = ("Car", "Housing", "Personal")

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class LoanRule:
    min_grade: int | None
    min_salary: Decimal | None
    min_tenure_years: float | None
    salary_multiple: int
    cap: Decimal | None
    tenure_months: int
    annual_rate: Decimal


LOAN_RULES = {
    "Car": LoanRule(10, Decimal("8000"), None, 5, Decimal("100000"), 48, Decimal("0.04")),
    "Housing": LoanRule(12, Decimal("15000"), 2.0, 10, Decimal("500000"), 120, Decimal("0.03")),
    "Personal": LoanRule(None, None, None, 1, None, 12, Decimal("0.06")),
}


@dataclass(frozen=True)
class LoanFacts:
    grade_number: int | None
    base_salary: Decimal
    tenure_years: float
    has_active_loan_of_type: bool
    employment_status: str


@dataclass
class LoanEligibilityResult:
    loan_type: str
    is_eligible: bool
    reason: str
    max_amount: Decimal | None = None
    suggested_tenure_months: int | None = None
    suggested_monthly_deduction: Decimal | None = None
    requirements_met: list = field(default_factory=list)
    requirements_missing: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "loanType": self.loan_type,
            "isEligible": self.is_eligible,
            "reason": self.reason,
            "maxAmount": float(self.max_amount) if self.max_amount is not None else None,
            "suggestedTenureMonths": self.suggested_tenure_months,
            "suggestedMonthlyDeduction": (
                float(self.suggested_monthly_deduction)
                if self.suggested_monthly_deduction is not None else None
            ),
            "requirementsMet": list(self.requirements_met),
            "requirementsMissing": list(self.requirements_missing),
        }


# ── Pure calculations ─────────────────────────────────────────────────────────

def calculate_emi(principal, annual_rate, months: int) -> Decimal:
    """
    Amortised monthly payment ``P·r·(1+r)^n / ((1+r)^n − 1)`` with ``r = annual/12``.

    Decimal arithmetic, rounded half-up to 2 places. A zero rate gives ``P/n``.
    """
    if months <= 0:
        raise ValueError("months must be positive")
    principal = Decimal(str(principal))
    monthly_rate = Decimal(str(annual_rate)) / 12
    if monthly_rate == 0:
        return (principal / months).quantize(_CENT, rounding=ROUND_HALF_UP)
    factor = (1 + monthly_rate) ** months
    payment = principal * monthly_rate * factor / (factor - 1)
    return payment.quantize(_CENT, rounding=ROUND_HALF_UP)


def normalize_loan_type(loan_type: str | None) -> str | None:
    """'car' / ' CAR ' → 'Car'; anything unsupported → None."""
    if not loan_type:
        return None
    wanted = loan_type.strip().lower()
    for name in SUPPORTED_LOAN_TYPES:
        if name.lower() == wanted:
            return name
    return None


def _money(amount: Decimal) -> str:
    return f"{amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"


def loan_rules_digest() -> str:
    """One-sentence restatement of the rule table, e.g. for policy answers and fallbacks."""
    parts = []
    for loan_type, rule in LOAN_RULES.items():
        needs = []
        if rule.min_grade is not None:
            needs.append(f"Grade {rule.min_grade}+")
        if rule.min_salary is not None:
            needs.append(f"salary AED {_money(rule.min_salary)}+")
        if rule.min_tenure_years:
            needs.append(f"{rule.min_tenure_years:g} years of service")
        parts.append(f"{loan_type} needs {', '.join(needs) or 'active employment'}")
    return "Loan rules: " + "; ".join(parts) + "."


def evaluate_loan(loan_type: str, facts: LoanFacts) -> LoanEligibilityResult:
    """Apply the rule table for ``loan_type`` to ``facts``."""
    canonical = normalize_loan_type(loan_type)
    if canonical is None:
        return LoanEligibilityResult(
            loan_type=loan_type,
            is_eligible=False,
            reason=f"Unknown loan type: {loan_type}. Supported: Car, Housing, Personal",
        )

    rule = LOAN_RULES[canonical]
    label = canonical.lower()
    grade = facts.grade_number or 0
    salary = Decimal(str(facts.base_salary or 0))
    met, missing = [], []

    if rule.min_grade is not None:
        if grade >= rule.min_grade:
            met.append(f"Grade {grade} meets minimum (Grade {rule.min_grade})")
        else:
            missing.append(f"Grade {grade} below minimum (Grade {rule.min_grade})")

    if rule.min_salary is not None:
        if salary >= rule.min_salary:
            met.append(f"Salary AED {_money(salary)} meets minimum (AED {_money(rule.min_salary)})")
        else:
            missing.append(f"Salary AED {_money(salary)} below minimum (AED {_money(rule.min_salary)})")

    if rule.min_tenure_years is not None:
        tenure = f"{facts.tenure_years:.1f}"
        minimum = f"{rule.min_tenure_years:g}"
        if facts.tenure_years >= rule.min_tenure_years:
            met.append(f"Tenure {tenure} years meets minimum ({minimum} years)")
        else:
            missing.append(f"Tenure {tenure} years below minimum ({minimum} years)")

    if canonical == "Personal":
        if facts.employment_status == "Active":
            met.append("Active employee")
        else:
            missing.append("Employee not active")
    elif facts.has_active_loan_of_type:
        missing.append(f"Already has active {label} loan")
    else:
        met.append(f"No existing active {label} loan")

    if missing:
        reason = (
            "Not eligible for personal loan" if canonical == "Personal"
            else f"Not eligible for {label} loan: " + ", ".join(missing)
        )
        return LoanEligibilityResult(
            loan_type=canonical, is_eligible=False, reason=reason,
            requirements_met=met, requirements_missing=missing,
        )

    max_amount = salary * rule.salary_multiple
    if rule.cap is not None:
        max_amount = min(max_amount, rule.cap)

    if canonical == "Car":
        reason = f"Eligible for car loan up to AED {_money(max_amount)} based on grade and salary"
    elif canonical == "Housing":
        reason = f"Eligible for housing loan up to AED {_money(max_amount)}"
    else:
        reason = f"Eligible for personal loan up to AED {_money(max_amount)} (1x salary)"

    return LoanEligibilityResult(
        loan_type=canonical,
        is_eligible=True,
        reason=reason,
        max_amount=max_amount,
        suggested_tenure_months=rule.tenure_months,
        suggested_monthly_deduction=calculate_emi(max_amount, rule.annual_rate, rule.tenure_months),
        requirements_met=met,
        requirements_missing=missing,
    )


# ── Store-backed service ──────────────────────────────────────────────────────

class LoanService:
    """Gathers loan facts for an employee and runs the pure engine."""

    def get_active_loan(self, employee_id: str, loan_type: str) -> Loan | None:
        canonical = normalize_loan_type(loan_type) or loan_type
        return Loan.query.filter_by(
            employee_id=employee_id, loan_type=canonical, status="Active",
        ).first()

    def gather_facts(self, employee: Employee, loan_type: str | None, as_of: date | None = None) -> LoanFacts:
        as_of = as_of or datetime.now(timezone.utc).date()
        salary = current_salary(employee)
        tenure_years = (as_of - employee.hire_date).days / 365.25 if employee.hire_date else 0.0
        has_active = (
            self.get_active_loan(employee.id, loan_type) is not None
            if normalize_loan_type(loan_type) else False
        )
        return LoanFacts(
            grade_number=employee.grade_number,
            base_salary=salary.base_salary if salary is not None else Decimal("0"),
            tenure_years=tenure_years,
            has_active_loan_of_type=has_active,
            employment_status=employee.status,
        )

    def check_eligibility(self, employee_id: str, loan_type: str, as_of: date | None = None) -> LoanEligibilityResult:
        employee = db.session.get(Employee, employee_id)
        if employee is None:
            return LoanEligibilityResult(
                loan_type=normalize_loan_type(loan_type) or loan_type,
                is_eligible=False,
                reason="Employee not found",
            )
        result = evaluate_loan(loan_type, self.gather_facts(employee, loan_type, as_of))
        logger.info("Loan check: employee=%s type=%s eligible=%s",
                    employee.employee_code, result.loan_type, result.is_eligible)
        return result

    def check_all(self, employee_id: str, as_of: date | None = None) -> list[LoanEligibilityResult]:
        return [self.check_eligibility(employee_id, t, as_of) for t in SUPPORTED_LOAN_TYPES]
